"""Shared fixtures for pipeline tests."""
import pytest

from scriptcut.pipeline.scorer import Scorer, ScorerPool
from scriptcut.pipeline.segments import QualityVector, Segment, UNKNOWN_SPEAKER


class _FakeScorer(Scorer):
    """Scorer that answers from plain callables and records every prompt."""

    def __init__(self, respond=None, relevance=None):
        self._respond = respond or (lambda prompt, system_prompt: "50")
        self._relevance = relevance or (lambda text, subject: 50.0)
        self.prompts = []
        self.closed = False

    async def generate_text(self, prompt, preserve_history=False, system_prompt=None):
        self.prompts.append(prompt)
        return self._respond(prompt, system_prompt)

    async def score_relevance(self, text, subject):
        self.prompts.append(text)
        return self._relevance(text, subject)

    async def aclose(self):
        self.closed = True


@pytest.fixture
def make_pool():
    """Build a ScorerPool around a fake scorer."""
    def _make(respond=None, relevance=None, **kwargs):
        return ScorerPool(_FakeScorer(respond, relevance), **kwargs)
    return _make


@pytest.fixture
def make_segment():
    """Build a segment with optional quality values."""
    def _make(
        text,
        start=0.0,
        end=1.0,
        source="clip.mp4",
        speaker=UNKNOWN_SPEAKER,
        **scores,
    ):
        quality = QualityVector(**scores) if scores else None
        return Segment(
            source_file=source,
            start=start,
            end=end,
            text=text,
            quality=quality,
            speaker_id=speaker,
        )
    return _make
