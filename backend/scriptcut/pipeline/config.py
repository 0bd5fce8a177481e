"""Pipeline Configuration."""
from dataclasses import dataclass, field

from .segments import CompositeWeights, RankingWeights


@dataclass
class PipelineConfig:
    """Configuration for the segment selection and sequencing pipeline."""

    # Operator topic prompt
    topic: str = ""

    # Quality scoring
    composite_weights: CompositeWeights = field(default_factory=CompositeWeights)
    neutral_score: float = 50.0
    placeholder_focus: float = 75.0  # No visual analysis yet
    placeholder_clarity: float = 80.0  # No audio SNR analysis yet
    placeholder_emotion: float = 70.0  # No emotion detection yet

    # Take deduplication
    levenshtein_threshold_pct: float = 15.0  # % of the longer normalized text
    cosine_similarity_threshold: float = 0.9
    short_text_chars: int = 10  # Below this, require exact match

    # Ranking
    ranking_weights: RankingWeights = field(default_factory=RankingWeights)
    novelty_lambda: float = 0.5  # 1.0 = relevance only, 0.0 = novelty only

    # Timing
    base_window_seconds: float = 2.0
    duration_budget_seconds: float = 60.0

    # Dialogue sequencing
    dialogue_lambda: float = 0.5  # Base score vs reply score

    # Story sequencing
    story_outer_chunk_size: int = 20
    story_inner_chunk_size: int = 10
    story_start_max_chars: int = 500
    story_next_max_chars: int = 300

    # Debug
    write_debug_json: bool = True

    def to_dict(self) -> dict:
        """Convert config to dictionary for serialization."""
        return {
            "topic": self.topic,
            "composite_weights": self.composite_weights.to_dict(),
            "neutral_score": self.neutral_score,
            "placeholder_focus": self.placeholder_focus,
            "placeholder_clarity": self.placeholder_clarity,
            "placeholder_emotion": self.placeholder_emotion,
            "levenshtein_threshold_pct": self.levenshtein_threshold_pct,
            "cosine_similarity_threshold": self.cosine_similarity_threshold,
            "short_text_chars": self.short_text_chars,
            "ranking_weights": self.ranking_weights.to_dict(),
            "novelty_lambda": self.novelty_lambda,
            "base_window_seconds": self.base_window_seconds,
            "duration_budget_seconds": self.duration_budget_seconds,
            "dialogue_lambda": self.dialogue_lambda,
            "story_outer_chunk_size": self.story_outer_chunk_size,
            "story_inner_chunk_size": self.story_inner_chunk_size,
            "story_start_max_chars": self.story_start_max_chars,
            "story_next_max_chars": self.story_next_max_chars,
        }


# Default configuration instance
DEFAULT_PIPELINE_CONFIG = PipelineConfig()
