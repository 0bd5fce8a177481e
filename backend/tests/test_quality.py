"""Tests for quality scoring and the scorer pool."""
import asyncio

import httpx
import pytest

from scriptcut.pipeline import prompts
from scriptcut.pipeline.config import PipelineConfig
from scriptcut.pipeline.quality import (
    QualityScorer,
    composite_score,
    flub_score,
    parse_quality_response,
)
from scriptcut.pipeline.scorer import (
    ChatCompletionsScorer,
    PipelineCancelled,
    ScorerError,
    parse_score,
)
from scriptcut.pipeline.segments import CompositeWeights, QualityVector


# =============================================================================
# Flub and Composite Tests
# =============================================================================

class TestFlubScore:
    """Tests for the local filler-word score."""

    def test_clean_text_scores_100(self):
        assert flub_score("We shipped the release on time") == 100.0

    def test_fillers_reduce_score(self):
        # 2 fillers out of 4 words
        assert flub_score("Um, we, uh, shipped") == pytest.approx(50.0)

    def test_more_fillers_never_raise_score(self):
        content = "we shipped the new release on time today".split()
        scores = []
        for fillers in range(len(content) + 1):
            words = ["um"] * fillers + content[fillers:]
            assert len(words) == len(content)
            scores.append(flub_score(" ".join(words)))

        assert scores[0] == 100.0
        assert scores[-1] == 0.0
        assert all(a >= b for a, b in zip(scores, scores[1:]))

    @pytest.mark.parametrize("filler", ["Um,", "UH", "uh...", "(Ah)", "Basically:"])
    def test_fillers_match_regardless_of_case_and_punctuation(self, filler):
        # 1 filler out of 4 words
        assert flub_score(f"{filler} we shipped it") == pytest.approx(75.0)

    def test_empty_text_is_neutral(self):
        assert flub_score("   ") == 50.0


class TestCompositeScore:
    """Tests for the weighted composite."""

    def test_default_weights(self):
        vector = QualityVector(relevance=80, flub_score=100, focus=75, energy=50)
        # (80*.4 + 100*.3 + 75*.2 + 50*.1) / 1.0
        assert composite_score(vector, CompositeWeights()) == pytest.approx(82.0)

    def test_zero_weights_return_neutral(self):
        weights = CompositeWeights(relevance=0, flub=0, focus=0, energy=0)
        assert composite_score(QualityVector(relevance=90), weights) == 50.0

    def test_negative_weight_rejected(self):
        with pytest.raises(ValueError):
            CompositeWeights(relevance=-1)


# =============================================================================
# Response Parsing Tests
# =============================================================================

class TestParsing:
    """Tests for oracle response parsing."""

    def test_parse_quality_response_remaps_ranges(self):
        (relevance, sentiment, novelty, energy), ok = parse_quality_response("80,-34,4.3,3.2")

        assert ok
        assert relevance == pytest.approx(80.0)
        assert sentiment == pytest.approx(33.0)
        assert novelty == pytest.approx(43.0)
        assert energy == pytest.approx(55.0)

    def test_parse_quality_response_clamps(self):
        (relevance, sentiment, novelty, energy), ok = parse_quality_response("150,200,20,9")

        assert ok
        assert (relevance, sentiment, novelty, energy) == (100.0, 100.0, 100.0, 100.0)

    @pytest.mark.parametrize("response", [None, "", "80,20", "a,b,c,d", "I think 80"])
    def test_parse_quality_response_failures(self, response):
        _, ok = parse_quality_response(response)
        assert not ok

    def test_parse_score_takes_first_number(self):
        assert parse_score("Score: 73 out of 100") == (73.0, True)

    def test_parse_score_clamps_and_fails(self):
        assert parse_score("250").score == 100.0
        assert parse_score("no idea").ok is False


# =============================================================================
# Quality Scorer Tests
# =============================================================================

class TestQualityScorer:
    """Tests for QualityScorer against a fake oracle."""

    @pytest.mark.asyncio
    async def test_score_builds_full_vector(self, make_pool):
        pool = make_pool(respond=lambda prompt, system: "80,0,5,3")
        scorer = QualityScorer(pool, PipelineConfig())

        vector = await scorer.score("We shipped it", "launch")

        assert vector.relevance == 80.0
        assert vector.sentiment == 50.0
        assert vector.novelty == 50.0
        assert vector.energy == 50.0
        assert (vector.focus, vector.clarity, vector.emotion) == (75.0, 80.0, 70.0)
        assert vector.flub_score == 100.0
        assert vector.composite_score == pytest.approx(80 * .4 + 100 * .3 + 75 * .2 + 50 * .1)
        assert pool.scorer.prompts[0] == prompts.quality_vector("launch", "We shipped it")

    @pytest.mark.asyncio
    async def test_unparsable_response_falls_back_to_neutral(self, make_pool):
        pool = make_pool(respond=lambda prompt, system: "sorry, I can't")
        scorer = QualityScorer(pool)

        vector = await scorer.score("um so yeah", "topic")

        assert (vector.relevance, vector.sentiment, vector.novelty, vector.energy) == (50, 50, 50, 50)
        assert vector.flub_score == 0.0
        assert scorer.fallbacks == 1

    @pytest.mark.asyncio
    async def test_oracle_exception_falls_back_to_neutral(self, make_pool):
        def respond(prompt, system):
            raise ScorerError("boom")

        pool = make_pool(respond=respond)
        scorer = QualityScorer(pool)

        vector = await scorer.score("hello world", "topic")

        assert vector.relevance == 50.0
        assert pool.failures == 1

    @pytest.mark.asyncio
    async def test_score_segments_keeps_input_order(self, make_pool, make_segment):
        def respond(prompt, system):
            return "90,0,0,1" if "first" in prompt else "10,0,0,1"

        scorer = QualityScorer(make_pool(respond=respond))
        segments = [make_segment("first line"), make_segment("second line")]

        scored = await scorer.score_segments(segments, "topic")

        assert [s.text for s in scored] == ["first line", "second line"]
        assert scored[0].quality.relevance == 90.0
        assert scored[1].quality.relevance == 10.0


# =============================================================================
# Scorer Pool Tests
# =============================================================================

class TestScorerPool:
    """Tests for bounded, fallback-safe oracle access."""

    @pytest.mark.asyncio
    async def test_timeout_is_a_failed_result(self, make_pool):
        pool = make_pool(timeout_seconds=0.01)

        async def slow(prompt, preserve_history=False, system_prompt=None):
            await asyncio.sleep(1)
            return "50"

        pool.scorer.generate_text = slow
        result = await pool.score("anything")

        assert result.ok is False
        assert pool.failures == 1

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, make_pool):
        pool = make_pool(max_concurrency=2)
        in_flight = 0
        peak = 0

        async def tracked(prompt, preserve_history=False, system_prompt=None):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return "50"

        pool.scorer.generate_text = tracked
        await asyncio.gather(*(pool.score(str(i)) for i in range(8)))

        assert peak == 2

    @pytest.mark.asyncio
    async def test_cancel_event_stops_calls(self, make_pool):
        event = asyncio.Event()
        event.set()
        pool = make_pool(cancel_event=event)

        with pytest.raises(PipelineCancelled):
            await pool.score("anything")
        assert pool.calls == 0

    @pytest.mark.asyncio
    async def test_relevance_failure_is_reported(self, make_pool):
        def relevance(text, subject):
            raise ScorerError("down")

        pool = make_pool(relevance=relevance)
        result = await pool.relevance("text", "subject")

        assert result == (0.0, False)

    @pytest.mark.asyncio
    async def test_gather_keeps_input_order(self, make_pool):
        pool = make_pool()

        async def delayed(value, delay):
            await asyncio.sleep(delay)
            return value

        results = await pool.gather(delayed(i, 0.03 - i * 0.01) for i in range(3))

        assert results == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_gather_finishes_siblings_before_raising(self, make_pool):
        pool = make_pool()
        finished = []

        async def cancelled():
            raise PipelineCancelled("Pipeline cancelled")

        async def slow():
            await asyncio.sleep(0.02)
            finished.append("slow")
            return 1

        with pytest.raises(PipelineCancelled):
            await pool.gather([cancelled(), slow()])
        assert finished == ["slow"]

    def test_invalid_concurrency_rejected(self, make_pool):
        with pytest.raises(ValueError):
            make_pool(max_concurrency=0)


# =============================================================================
# HTTP Scorer Tests
# =============================================================================

class TestChatCompletionsScorer:
    """Tests for the OpenAI-compatible adapter using a mock transport."""

    @staticmethod
    def _scorer(handler, **kwargs):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return ChatCompletionsScorer("http://oracle.test/v1", "test-model", client=client, **kwargs)

    @pytest.mark.asyncio
    async def test_generate_text_posts_chat_completion(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = request.content
            return httpx.Response(200, json={"choices": [{"message": {"content": " 42 "}}]})

        scorer = self._scorer(handler, seed=7)
        text = await scorer.generate_text("rate this", system_prompt="numbers only")

        assert text == "42"
        assert seen["url"] == "http://oracle.test/v1/chat/completions"
        assert b'"seed":7' in seen["body"].replace(b" ", b"")
        assert b"numbers only" in seen["body"]

    @pytest.mark.asyncio
    async def test_http_error_raises_scorer_error(self):
        scorer = self._scorer(lambda request: httpx.Response(500, text="overloaded"))

        with pytest.raises(ScorerError):
            await scorer.generate_text("rate this")

    @pytest.mark.asyncio
    async def test_history_overflow_retries_without_history(self):
        calls = []

        def handler(request):
            calls.append(request.content)
            if len(calls) == 2:
                return httpx.Response(400, text="context length exceeded")
            return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

        scorer = self._scorer(handler)
        await scorer.generate_text("first", preserve_history=True)
        text = await scorer.generate_text("second")

        assert text == "ok"
        assert len(calls) == 3
        assert b"first" in calls[1]
        assert b"first" not in calls[2]

    @pytest.mark.asyncio
    async def test_score_relevance_rejects_garbage(self):
        scorer = self._scorer(
            lambda request: httpx.Response(200, json={"choices": [{"message": {"content": "dunno"}}]})
        )

        with pytest.raises(ScorerError):
            await scorer.score_relevance("text", "subject")
