"""Temporal expansion and duration trimming."""
import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .segments import Segment

logger = logging.getLogger(__name__)


@dataclass
class TrimDecision:
    """Records why a segment was kept or dropped by the trimmer."""
    position: int
    action: str  # "keep", "drop_budget", "drop_after_stop"
    duration: float
    running_total: float

    def to_dict(self) -> dict:
        return {
            "position": self.position,
            "action": self.action,
            "duration": self.duration,
            "running_total": self.running_total,
        }


def expansion_delta(energy: float, base_window_seconds: float) -> float:
    """Low energy -> 0.8x the base window, high energy -> 1.3x."""
    energy_norm = max(0.0, min(100.0, energy)) / 100.0
    return base_window_seconds * (0.8 + 0.5 * energy_norm)


def expand_segments(segments: Sequence[Segment], base_window_seconds: float) -> List[Segment]:
    """Widen every segment's window by an energy-driven delta on both sides."""
    base_window_seconds = max(0.0, base_window_seconds)
    expanded = []
    for segment in segments:
        delta = expansion_delta(segment.scores.energy, base_window_seconds)
        expanded.append(segment.with_times(max(0.0, segment.start - delta), segment.end + delta))
    return expanded


def trim_to_budget(
    segments: Sequence[Segment],
    budget_seconds: float,
) -> Tuple[List[Segment], List[TrimDecision]]:
    """
    Greedy prefix selection under a duration budget.

    Stops at the first segment that would overflow the budget; nothing
    after it is considered, even if it would fit.
    """
    selected: List[Segment] = []
    decisions: List[TrimDecision] = []
    total = 0.0
    stopped = False

    for position, segment in enumerate(segments):
        duration = segment.duration
        if stopped:
            decisions.append(TrimDecision(position, "drop_after_stop", duration, total))
            continue
        if total + duration <= budget_seconds:
            total += duration
            selected.append(segment)
            decisions.append(TrimDecision(position, "keep", duration, total))
        else:
            stopped = True
            decisions.append(TrimDecision(position, "drop_budget", duration, total))

    logger.info(
        f"Trim: {len(segments)} -> {len(selected)} segments "
        f"({total:.1f}s of {budget_seconds:.1f}s budget)"
    )
    return selected, decisions
