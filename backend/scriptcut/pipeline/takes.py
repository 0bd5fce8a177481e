"""Take deduplication.

Groups repeated takes of the same spoken line and keeps the best one.
"""
import logging
import re
from collections import Counter
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .config import PipelineConfig, DEFAULT_PIPELINE_CONFIG
from .segments import Cluster, Segment

logger = logging.getLogger(__name__)

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Strip punctuation, collapse whitespace, lowercase."""
    processed = _PUNCTUATION_RE.sub("", text)
    processed = _WHITESPACE_RE.sub(" ", processed)
    return processed.strip().lower()


def levenshtein_distance(s1: str, s2: str) -> int:
    """Edit distance using a single rolling row."""
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)

    codes2 = np.fromiter((ord(c) for c in s2), dtype=np.int64, count=len(s2))
    idx = np.arange(len(s2) + 1)
    previous = idx.copy()

    for i, c1 in enumerate(s1, start=1):
        cost = (codes2 != ord(c1)).astype(np.int64)
        current = np.empty_like(previous)
        current[0] = i
        # Deletion and substitution
        current[1:] = np.minimum(previous[1:] + 1, previous[:-1] + cost)
        # Insertion: current[j] = min(current[j], current[j-1] + 1)
        current = np.minimum.accumulate(current - idx) + idx
        previous = current

    return int(previous[-1])


def normalized_edit_distance(s1: str, s2: str) -> float:
    """Edit distance divided by the longer string's length (0-1)."""
    longest = max(len(s1), len(s2))
    if longest == 0:
        return 0.0
    return levenshtein_distance(s1, s2) / longest


def cosine_similarity(text1: str, text2: str) -> float:
    """Word-frequency cosine similarity over the union vocabulary."""
    words1 = text1.split()
    words2 = text2.split()
    if not words1 or not words2:
        return 0.0

    counts1 = Counter(words1)
    counts2 = Counter(words2)
    vocabulary = sorted(set(counts1) | set(counts2))

    v1 = np.array([counts1[w] for w in vocabulary], dtype=float)
    v2 = np.array([counts2[w] for w in vocabulary], dtype=float)

    magnitude = np.linalg.norm(v1) * np.linalg.norm(v2)
    if magnitude == 0:
        return 0.0
    return float(np.dot(v1, v2) / magnitude)


def are_texts_similar(
    text1: str,
    text2: str,
    config: Optional[PipelineConfig] = None,
) -> bool:
    """
    Similarity test on normalized texts.

    Short texts need an exact match. Otherwise either signal is enough:
    edit distance within the threshold, or cosine similarity above it.
    """
    config = config or DEFAULT_PIPELINE_CONFIG

    if len(text1) < config.short_text_chars or len(text2) < config.short_text_chars:
        return text1 == text2

    distance_pct = normalized_edit_distance(text1, text2) * 100.0
    if distance_pct <= config.levenshtein_threshold_pct:
        return True

    return cosine_similarity(text1, text2) >= config.cosine_similarity_threshold


def cluster_segments(
    segments: Sequence[Segment],
    config: Optional[PipelineConfig] = None,
) -> List[Cluster]:
    """
    Single-pass agglomeration in input order.

    Each unassigned segment opens a cluster and claims every later
    unassigned segment similar to it. Clusters are never revisited.
    """
    config = config or DEFAULT_PIPELINE_CONFIG
    normalized = [normalize_text(s.text) for s in segments]
    assigned = [False] * len(segments)
    clusters: List[Cluster] = []

    for i, segment in enumerate(segments):
        if assigned[i]:
            continue

        cluster = Cluster(members=[segment])
        assigned[i] = True

        for j in range(i + 1, len(segments)):
            if assigned[j]:
                continue
            if are_texts_similar(normalized[i], normalized[j], config):
                cluster.members.append(segments[j])
                assigned[j] = True

        clusters.append(cluster)

    return clusters


def dedupe_takes(
    segments: Sequence[Segment],
    config: Optional[PipelineConfig] = None,
) -> Tuple[List[Segment], List[Cluster]]:
    """
    Keep one canonical take per cluster.

    Returns (canonical segments sorted by start time, clusters).
    """
    logger.info("Deduplicating takes...")

    clusters = cluster_segments(segments, config)
    canonical = sorted((c.canonical for c in clusters), key=lambda s: s.start)

    logger.info(f"Deduplication: {len(segments)} -> {len(canonical)} segments")
    return canonical, clusters
