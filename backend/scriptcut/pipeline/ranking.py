"""Ranking and novelty reranking."""
import logging
from typing import List, Sequence

from .segments import QualityVector, RankingWeights, Segment, NEUTRAL_SCORE

logger = logging.getLogger(__name__)


def weighted_score(quality: QualityVector, weights: RankingWeights) -> float:
    """Weighted blend of quality dimensions; all-zero weights give 50."""
    total = weights.total
    if total == 0:
        return NEUTRAL_SCORE

    values = quality.to_dict()
    return sum(values[name] * weight for name, weight in weights.to_dict().items()) / total


def rank_segments(segments: Sequence[Segment], weights: RankingWeights) -> List[Segment]:
    """Stable descending sort by weighted score."""
    return sorted(segments, key=lambda s: weighted_score(s.scores, weights), reverse=True)


def mmr_score(quality: QualityVector, lam: float) -> float:
    return lam * (quality.relevance / 100.0) - (1.0 - lam) * (1.0 - quality.novelty / 100.0)


def novelty_rerank(segments: Sequence[Segment], lam: float) -> List[Segment]:
    """
    Greedy MMR-style reordering.

    Repeatedly moves the remaining segment with the best
    ``lam * relevance - (1 - lam) * novelty deficit`` to the output.
    Ties go to the earlier segment.
    """
    lam = max(0.0, min(1.0, lam))
    remaining = list(segments)
    reranked: List[Segment] = []

    while remaining:
        best_index = 0
        best_score = mmr_score(remaining[0].scores, lam)
        for i in range(1, len(remaining)):
            score = mmr_score(remaining[i].scores, lam)
            if score > best_score:
                best_score = score
                best_index = i
        reranked.append(remaining.pop(best_index))

    logger.info(f"Novelty rerank (lambda={lam:.2f}) ordered {len(reranked)} segments")
    return reranked
