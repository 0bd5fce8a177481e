"""Story sequencing.

Orders segments into a narrative using chunked greedy search: pick the best
opener, then repeatedly append the best continuation of the current tail.
Pairs are never revisited, so nothing is cached here.
"""
import logging
from typing import List, Optional, Sequence

from . import prompts
from .config import PipelineConfig, DEFAULT_PIPELINE_CONFIG
from .scorer import ScoreResult, ScorerPool
from .segments import Segment

logger = logging.getLogger(__name__)


def truncate(text: str, max_chars: int) -> str:
    if len(text) > max_chars:
        return text[:max_chars] + "..."
    return text


def split_chunks(items: Sequence[Segment], size: int) -> List[List[Segment]]:
    """Fixed-size, order-based chunks."""
    size = max(1, size)
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def _best_index(results: Sequence[ScoreResult]) -> Optional[int]:
    """Index of the highest ok score; first one wins ties. None if nothing scored."""
    best = None
    best_score = float("-inf")
    for i, result in enumerate(results):
        if result.ok and result.score > best_score:
            best_score = result.score
            best = i
    return best


class StorySequencer:
    """Chunked greedy best-start / best-next narrative ordering."""

    def __init__(self, pool: ScorerPool, config: Optional[PipelineConfig] = None):
        self.pool = pool
        self.config = config or DEFAULT_PIPELINE_CONFIG
        self.fallbacks = 0

    async def _score_starts(self, chunk: Sequence[Segment], subject: str) -> List[ScoreResult]:
        max_chars = self.config.story_start_max_chars
        return await self.pool.gather(
            self.pool.score(prompts.story_start(subject, truncate(s.text, max_chars))) for s in chunk
        )

    async def _score_nexts(
        self,
        current: Segment,
        candidates: Sequence[Segment],
        subject: str,
    ) -> List[ScoreResult]:
        max_chars = self.config.story_next_max_chars
        current_text = truncate(current.text, max_chars)
        return await self.pool.gather(
            self.pool.score(prompts.story_next(subject, current_text, truncate(c.text, max_chars)))
            for c in candidates
        )

    async def order_chunk(self, chunk: Sequence[Segment], subject: str) -> List[Segment]:
        """Greedy ordering of a single inner chunk."""
        if not chunk:
            return []

        self.pool.check_cancelled()
        remaining = list(chunk)
        start = _best_index(await self._score_starts(remaining, subject))
        if start is None:
            logger.warning("No story opener could be scored, starting with the first segment")
            start = 0
        ordered = [remaining.pop(start)]

        while remaining:
            self.pool.check_cancelled()
            best = _best_index(await self._score_nexts(ordered[-1], remaining, subject))
            if best is None:
                self.fallbacks += 1
                logger.warning(
                    f"No continuation could be scored, appending {len(remaining)} segments in current order"
                )
                ordered.extend(remaining)
                break
            ordered.append(remaining.pop(best))

        return ordered

    async def _order_inner(self, segments: Sequence[Segment], subject: str) -> List[Segment]:
        size = self.config.story_inner_chunk_size
        if len(segments) <= size:
            return await self.order_chunk(segments, subject)

        # No optimisation across sub-chunk boundaries
        ordered: List[Segment] = []
        for sub_chunk in split_chunks(segments, size):
            ordered.extend(await self.order_chunk(sub_chunk, subject))
        return ordered

    async def sequence(self, segments: Sequence[Segment], subject: str) -> List[Segment]:
        if not segments:
            return []

        outer = self.config.story_outer_chunk_size
        if len(segments) <= outer:
            ordered = await self._order_inner(segments, subject)
        else:
            chunks = split_chunks(segments, outer)
            concatenated: List[Segment] = []
            for i, chunk in enumerate(chunks, start=1):
                logger.info(f"Story: processing chunk {i} of {len(chunks)}")
                concatenated.extend(await self._order_inner(chunk, subject))

            logger.info("Story: final coherence pass")
            ordered = await self._order_inner(concatenated, subject)

        logger.info(f"Story sequenced {len(ordered)} segments ({self.fallbacks} fallbacks)")
        return ordered
