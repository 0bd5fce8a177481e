"""Dialogue sequencing.

Reorders speaker-labelled segments into an alternating conversation using
greedy nearest-neighbour search over oracle-scored reply likelihood.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from . import prompts
from .config import PipelineConfig, DEFAULT_PIPELINE_CONFIG
from .scorer import ScorerPool
from .segments import Segment

logger = logging.getLogger(__name__)

SegmentKey = Tuple[str, float, float, str]


def segment_key(segment: Segment) -> SegmentKey:
    """Stable identity used for reply-score caching."""
    return (segment.source_file, segment.start, segment.end, segment.text)


@dataclass
class DialogueStep:
    """One greedy step of the sequencer."""
    position: int
    segment_index: int
    speaker_id: str
    combined_score: Optional[float]
    relaxed: bool  # Speaker alternation was dropped for this step

    def to_dict(self) -> dict:
        return {
            "position": self.position,
            "segment_index": self.segment_index,
            "speaker_id": self.speaker_id,
            "combined_score": self.combined_score,
            "relaxed": self.relaxed,
        }


class DialogueSequencer:
    """
    Builds a speaker-alternating order.

    Seeds with the highest base score, then repeatedly appends the
    other-speaker candidate maximising
    ``lam * base(candidate) + (1 - lam) * reply(tail, candidate)``.
    When every remaining segment shares the tail's speaker the constraint
    is relaxed for that step.
    """

    def __init__(self, pool: ScorerPool, config: Optional[PipelineConfig] = None):
        self.pool = pool
        self.config = config or DEFAULT_PIPELINE_CONFIG
        self.reply_cache: Dict[Tuple[SegmentKey, SegmentKey], float] = {}
        self.steps: List[DialogueStep] = []

    async def _fetch_reply(self, previous: Segment, candidate: Segment) -> float:
        result = await self.pool.score(prompts.dialogue_reply(previous.text, candidate.text))
        if not result.ok:
            logger.warning("Reply score unavailable, using neutral score")
            return self.config.neutral_score
        return result.score

    async def _reply_scores(self, tail: Segment, candidates: Sequence[Segment]) -> List[float]:
        """Reply scores for every candidate, scoring uncached pairs concurrently."""
        keys = [(segment_key(tail), segment_key(c)) for c in candidates]
        missing = [i for i, key in enumerate(keys) if key not in self.reply_cache]

        if missing:
            fetched = await self.pool.gather(
                self._fetch_reply(tail, candidates[i]) for i in missing
            )
            # Results are joined before any cache write
            for i, score in zip(missing, fetched):
                self.reply_cache[keys[i]] = score

        return [self.reply_cache[key] for key in keys]

    async def sequence(self, segments: Sequence[Segment], lam: Optional[float] = None) -> List[Segment]:
        if not segments:
            return []

        if lam is None:
            lam = self.config.dialogue_lambda
        lam = max(0.0, min(1.0, lam))

        base_scores = np.array([s.scores.base_score for s in segments], dtype=float)
        first = int(np.argmax(base_scores))

        order = [first]
        remaining = [i for i in range(len(segments)) if i != first]
        self.steps = [DialogueStep(0, first, segments[first].speaker_id, None, False)]

        while remaining:
            self.pool.check_cancelled()
            tail = order[-1]
            tail_speaker = segments[tail].speaker_id
            candidates = [i for i in remaining if segments[i].speaker_id != tail_speaker]

            if not candidates:
                chosen = remaining[0]
                combined = None
                relaxed = True
                logger.warning(
                    f"All {len(remaining)} remaining segments share speaker {tail_speaker}, "
                    "relaxing alternation"
                )
            else:
                replies = await self._reply_scores(segments[tail], [segments[i] for i in candidates])
                chosen = candidates[0]
                combined = float("-inf")
                for idx, reply in zip(candidates, replies):
                    score = lam * base_scores[idx] + (1.0 - lam) * reply
                    if score > combined:
                        combined = score
                        chosen = idx
                combined = float(combined)
                relaxed = False

            order.append(chosen)
            remaining.remove(chosen)
            self.steps.append(
                DialogueStep(len(order) - 1, chosen, segments[chosen].speaker_id, combined, relaxed)
            )

        relaxed_steps = sum(1 for step in self.steps if step.relaxed)
        logger.info(
            f"Dialogue sequenced {len(order)} segments "
            f"({relaxed_steps} relaxed steps, {len(self.reply_cache)} cached reply scores)"
        )
        return [segments[i] for i in order]
