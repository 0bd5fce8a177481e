"""Segment and quality value types shared by every pipeline stage."""
from dataclasses import dataclass, field, replace
from typing import List, Optional

UNKNOWN_SPEAKER = "UNK"
NEUTRAL_SCORE = 50.0


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class QualityVector:
    """Quality dimensions for a segment, all on a 0-100 scale."""
    relevance: float = 0.0
    sentiment: float = 0.0
    novelty: float = 0.0
    energy: float = 0.0

    # Reserved for non-text analysis
    focus: float = 0.0
    clarity: float = 0.0
    emotion: float = 0.0

    flub_score: float = 0.0
    composite_score: float = 0.0

    @classmethod
    def neutral(cls) -> "QualityVector":
        """Vector used when the oracle response cannot be trusted."""
        return cls(
            relevance=NEUTRAL_SCORE,
            sentiment=NEUTRAL_SCORE,
            novelty=NEUTRAL_SCORE,
            energy=NEUTRAL_SCORE,
            focus=NEUTRAL_SCORE,
            clarity=NEUTRAL_SCORE,
            emotion=NEUTRAL_SCORE,
            flub_score=NEUTRAL_SCORE,
            composite_score=NEUTRAL_SCORE,
        )

    @property
    def base_score(self) -> float:
        """Mean of the four oracle-scored dimensions."""
        return (self.relevance + self.sentiment + self.novelty + self.energy) / 4

    def to_dict(self) -> dict:
        return {
            "relevance": self.relevance,
            "sentiment": self.sentiment,
            "novelty": self.novelty,
            "energy": self.energy,
            "focus": self.focus,
            "clarity": self.clarity,
            "emotion": self.emotion,
            "flub_score": self.flub_score,
            "composite_score": self.composite_score,
        }


ZERO_QUALITY = QualityVector()


@dataclass(frozen=True)
class Segment:
    """A single timestamped spoken-text unit from a source recording."""
    source_file: str
    start: float  # seconds
    end: float    # seconds
    text: str
    quality: Optional[QualityVector] = None
    speaker_id: str = UNKNOWN_SPEAKER
    shot_label: str = UNKNOWN_SPEAKER

    def __post_init__(self):
        if self.end <= self.start:
            raise ValueError(
                f"Segment end ({self.end:.3f}s) must be after start ({self.start:.3f}s)"
            )
        if not self.text.strip():
            raise ValueError("Segment text must not be empty")

    @property
    def duration(self) -> float:
        return self.end - self.start

    @property
    def scores(self) -> QualityVector:
        """Quality vector, or all zeros when the segment is unscored."""
        return self.quality or ZERO_QUALITY

    @property
    def composite_score(self) -> float:
        return self.scores.composite_score

    def with_quality(self, quality: QualityVector) -> "Segment":
        return replace(self, quality=quality)

    def with_times(self, start: float, end: float) -> "Segment":
        return replace(self, start=start, end=end)

    def with_speaker(self, speaker_id: str, shot_label: str = UNKNOWN_SPEAKER) -> "Segment":
        return replace(self, speaker_id=speaker_id, shot_label=shot_label)

    def to_dict(self) -> dict:
        return {
            "source_file": self.source_file,
            "start": self.start,
            "end": self.end,
            "duration": self.duration,
            "text": self.text,
            "speaker_id": self.speaker_id,
            "shot_label": self.shot_label,
            "quality": self.quality.to_dict() if self.quality else None,
        }

    def __repr__(self) -> str:
        return (
            f"Segment({self.source_file} {self.start:.2f}-{self.end:.2f}, "
            f"speaker={self.speaker_id}, text={self.text[:30]!r})"
        )


@dataclass
class Cluster:
    """Near-duplicate takes of the same spoken line."""
    members: List[Segment] = field(default_factory=list)

    @property
    def canonical(self) -> Segment:
        """Highest composite score wins; ties go to the first member."""
        if not self.members:
            raise ValueError("Cluster has no members")
        best = self.members[0]
        for segment in self.members[1:]:
            if segment.composite_score > best.composite_score:
                best = segment
        return best

    def to_dict(self) -> dict:
        canonical = self.canonical
        return {
            "size": len(self.members),
            "canonical": canonical.to_dict(),
            "members": [
                {"start": s.start, "text": s.text, "composite_score": s.composite_score}
                for s in self.members
            ],
        }


def _check_non_negative(weights) -> None:
    for name, value in weights.to_dict().items():
        if value < 0:
            raise ValueError(f"Weight '{name}' must be non-negative, got {value}")


@dataclass(frozen=True)
class CompositeWeights:
    """Weights for the take-selection composite score."""
    relevance: float = 0.4
    flub: float = 0.3
    focus: float = 0.2
    energy: float = 0.1

    def __post_init__(self):
        _check_non_negative(self)

    @property
    def total(self) -> float:
        return self.relevance + self.flub + self.focus + self.energy

    def to_dict(self) -> dict:
        return {
            "relevance": self.relevance,
            "flub": self.flub,
            "focus": self.focus,
            "energy": self.energy,
        }


@dataclass(frozen=True)
class RankingWeights:
    """Caller-tunable weights for presentation-order ranking."""
    relevance: float = 100.0
    sentiment: float = 25.0
    novelty: float = 25.0
    energy: float = 25.0
    focus: float = 0.0
    clarity: float = 0.0
    emotion: float = 0.0
    flub_score: float = 0.0
    composite_score: float = 0.0

    def __post_init__(self):
        _check_non_negative(self)

    @property
    def total(self) -> float:
        return sum(self.to_dict().values())

    def to_dict(self) -> dict:
        return {
            "relevance": self.relevance,
            "sentiment": self.sentiment,
            "novelty": self.novelty,
            "energy": self.energy,
            "focus": self.focus,
            "clarity": self.clarity,
            "emotion": self.emotion,
            "flub_score": self.flub_score,
            "composite_score": self.composite_score,
        }
