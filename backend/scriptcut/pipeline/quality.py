"""Quality scoring for transcript segments.

One oracle call per segment yields relevance, sentiment, novelty and energy;
the flub score is computed locally and the composite is a weighted blend.
"""
import logging
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from . import prompts
from .config import PipelineConfig, DEFAULT_PIPELINE_CONFIG
from .scorer import ScorerPool
from .segments import CompositeWeights, QualityVector, Segment, clamp, NEUTRAL_SCORE

logger = logging.getLogger(__name__)

FILLER_WORDS = frozenset({
    "um", "uh", "ah", "eh", "oh", "like", "actually", "basically", "literally",
    "well", "so", "right", "okay", "alright", "yeah",
})

_TOKEN_PUNCTUATION = ".,!?;:\"'()[]{}…-"


def flub_score(text: str) -> float:
    """100 x (1 - filler ratio); higher means fewer disfluencies."""
    words = text.split()
    if not words:
        return NEUTRAL_SCORE

    filler_count = sum(
        1 for word in words
        if word.strip(_TOKEN_PUNCTUATION).lower() in FILLER_WORDS
    )
    return clamp((1.0 - filler_count / len(words)) * 100.0)


def composite_score(
    vector: QualityVector,
    weights: CompositeWeights,
    neutral: float = NEUTRAL_SCORE,
) -> float:
    """Weighted average of relevance, flub, focus and energy."""
    total = weights.total
    if total == 0:
        return neutral

    weighted = (
        vector.relevance * weights.relevance
        + vector.flub_score * weights.flub
        + vector.focus * weights.focus
        + vector.energy * weights.energy
    )
    return clamp(weighted / total)


def parse_quality_response(response: Optional[str]) -> Tuple[Tuple[float, float, float, float], bool]:
    """
    Parse ``relevance,sentiment,novelty,energy`` and remap each to 0-100.

    Returns (scores, ok). Native ranges: relevance 0-100, sentiment
    -100..+100, novelty 0-10, energy 1-5.
    """
    if not response:
        return (0.0, 0.0, 0.0, 0.0), False

    parts = [p.strip() for p in response.strip().strip("'\"`").split(",")]
    if len(parts) != 4:
        return (0.0, 0.0, 0.0, 0.0), False

    try:
        raw_relevance, raw_sentiment, raw_novelty, raw_energy = (float(p) for p in parts)
    except ValueError:
        return (0.0, 0.0, 0.0, 0.0), False

    return (
        clamp(raw_relevance),
        clamp((raw_sentiment + 100.0) / 2.0),
        clamp(raw_novelty * 10.0),
        clamp((raw_energy - 1.0) * 25.0),
    ), True


class QualityScorer:
    """Builds ``QualityVector`` values using the scoring oracle."""

    def __init__(self, pool: ScorerPool, config: Optional[PipelineConfig] = None):
        self.pool = pool
        self.config = config or DEFAULT_PIPELINE_CONFIG
        self.fallbacks = 0

    async def score(
        self,
        text: str,
        topic: str,
        weights: Optional[CompositeWeights] = None,
    ) -> QualityVector:
        weights = weights or self.config.composite_weights

        response = await self.pool.generate(
            prompts.quality_vector(topic, text),
            system_prompt=prompts.QUALITY_VECTOR_SYSTEM,
        )
        (relevance, sentiment, novelty, energy), ok = parse_quality_response(response)

        if not ok:
            self.fallbacks += 1
            neutral = self.config.neutral_score
            relevance = sentiment = novelty = energy = neutral
            if response is not None:
                logger.warning(f"Failed to parse quality scores from response: {response[:80]!r}")

        vector = QualityVector(
            relevance=relevance,
            sentiment=sentiment,
            novelty=novelty,
            energy=energy,
            focus=self.config.placeholder_focus,
            clarity=self.config.placeholder_clarity,
            emotion=self.config.placeholder_emotion,
            flub_score=flub_score(text),
        )
        return replace(
            vector,
            composite_score=composite_score(vector, weights, self.config.neutral_score),
        )

    async def score_segments(
        self,
        segments: Sequence[Segment],
        topic: str,
        weights: Optional[CompositeWeights] = None,
    ) -> List[Segment]:
        """Score every segment concurrently; output keeps input order."""
        logger.info(f"Scoring {len(segments)} segments...")
        vectors = await self.pool.gather(
            self.score(segment.text, topic, weights) for segment in segments
        )
        return [segment.with_quality(vector) for segment, vector in zip(segments, vectors)]
