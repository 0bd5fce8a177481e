"""External text-scoring oracle.

``Scorer`` is the capability the pipeline consumes; ``ChatCompletionsScorer``
talks to any OpenAI-compatible chat endpoint. Stages never call a scorer
directly: they go through ``ScorerPool``, which caps in-flight requests,
applies a per-call timeout and turns every failure into an explicit
``ScoreResult(score, ok=False)``.
"""
import asyncio
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Dict, Iterable, List, NamedTuple, Optional, TypeVar

import httpx

from . import prompts
from .segments import clamp

logger = logging.getLogger(__name__)

NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
DEFAULT_TIMEOUT_SECONDS = 20.0

T = TypeVar("T")


class ScorerError(RuntimeError):
    """Raised when the scoring oracle fails or answers with garbage."""


class PipelineCancelled(RuntimeError):
    """Raised when a cancellation request is observed between oracle calls."""


class ScoreResult(NamedTuple):
    score: float
    ok: bool


def parse_score(response: Optional[str], low: float = 0.0, high: float = 100.0) -> ScoreResult:
    """Pull the first number out of an oracle response."""
    if not response:
        return ScoreResult(0.0, False)
    match = NUMBER_RE.search(response)
    if not match:
        return ScoreResult(0.0, False)
    return ScoreResult(clamp(float(match.group()), low, high), True)


class Scorer(ABC):
    """Black-box text scoring capability."""

    @abstractmethod
    async def generate_text(
        self,
        prompt: str,
        preserve_history: bool = False,
        system_prompt: Optional[str] = None,
    ) -> str:
        """Return the oracle's raw text response to ``prompt``."""

    @abstractmethod
    async def score_relevance(self, text: str, subject: str) -> float:
        """Return how relevant ``text`` is to ``subject`` on a 0-100 scale."""

    async def aclose(self) -> None:
        return None


def _extract_content(payload: Dict[str, Any]) -> str:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        raise ScorerError(f"Unexpected scorer response: missing choices (keys={list(payload.keys())})")
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    if not isinstance(message, dict):
        raise ScorerError("Unexpected scorer response: missing message")
    content = message.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [item.get("text", "") for item in content if isinstance(item, dict)]
        return "\n".join(p for p in parts if p).strip()
    return ""


class ChatCompletionsScorer(Scorer):
    """
    Scorer backed by an OpenAI-compatible ``/chat/completions`` endpoint.

    Works against a local llama.cpp / Ollama server as well as hosted
    providers. History is only kept when a caller asks for it.
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: Optional[str] = None,
        temperature: float = 0.7,
        top_p: float = 0.9,
        seed: Optional[int] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        system_prompt: str = "You are a helpful AI assistant.",
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.temperature = temperature
        self.top_p = top_p
        self.seed = seed
        self.system_prompt = system_prompt
        self._history: List[Dict[str, str]] = []
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    @classmethod
    def from_settings(cls, settings) -> "ChatCompletionsScorer":
        return cls(
            base_url=settings.scorer_base_url,
            model=settings.scorer_model,
            api_key=settings.scorer_api_key,
            temperature=settings.scorer_temperature,
            top_p=settings.scorer_top_p,
            seed=settings.scorer_seed,
            timeout_seconds=settings.scorer_timeout_seconds,
        )

    def clear_history(self) -> None:
        self._history.clear()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _build_payload(self, prompt: str, system_prompt: Optional[str]) -> Dict[str, Any]:
        messages = [{"role": "system", "content": system_prompt or self.system_prompt}]
        messages.extend(self._history)
        messages.append({"role": "user", "content": prompt})

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "top_p": self.top_p,
        }
        if self.seed is not None:
            payload["seed"] = self.seed
        return payload

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        url = f"{self.base_url}/chat/completions"
        try:
            return await self._client.post(url, json=payload, headers=self._headers())
        except httpx.TimeoutException as exc:
            raise ScorerError("Scorer request timed out") from exc
        except httpx.RequestError as exc:
            raise ScorerError(f"Unable to reach scorer at {url}") from exc

    async def generate_text(
        self,
        prompt: str,
        preserve_history: bool = False,
        system_prompt: Optional[str] = None,
    ) -> str:
        response = await self._post(self._build_payload(prompt, system_prompt))

        # Context overflow with history: drop history and retry once
        if response.status_code == 400 and self._history:
            logger.warning("Scorer rejected request with history, clearing history and retrying")
            self._history.clear()
            response = await self._post(self._build_payload(prompt, system_prompt))

        if response.status_code != 200:
            detail = response.text.strip()[:200] or f"HTTP {response.status_code}"
            raise ScorerError(f"Scorer returned HTTP {response.status_code}: {detail}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ScorerError("Scorer returned invalid JSON") from exc

        content = _extract_content(payload).strip()

        if preserve_history:
            self._history.append({"role": "user", "content": prompt})
            self._history.append({"role": "assistant", "content": content})

        return content

    async def score_relevance(self, text: str, subject: str) -> float:
        response = await self.generate_text(
            prompts.relevance(subject, text),
            system_prompt=prompts.SCORE_ONLY_SYSTEM,
        )
        result = parse_score(response)
        if not result.ok:
            raise ScorerError(f"Unparsable relevance score: {response!r}")
        return result.score

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class ScorerPool:
    """
    Bounded gateway to a ``Scorer``.

    At most ``max_concurrency`` calls are in flight; each call gets
    ``timeout_seconds``. Failures are logged and reported as
    ``ok=False`` results, never raised. ``cancel_event`` is checked before
    every call.
    """

    def __init__(
        self,
        scorer: Scorer,
        max_concurrency: int = 4,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.scorer = scorer
        self.max_concurrency = max_concurrency
        self.timeout_seconds = timeout_seconds
        self.cancel_event = cancel_event
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self.calls = 0
        self.failures = 0

    def check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise PipelineCancelled("Pipeline cancelled")

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> Optional[str]:
        """Raw oracle response, or None when the call failed."""
        self.check_cancelled()
        async with self._semaphore:
            self.check_cancelled()
            self.calls += 1
            try:
                return await asyncio.wait_for(
                    self.scorer.generate_text(prompt, preserve_history=False, system_prompt=system_prompt),
                    timeout=self.timeout_seconds,
                )
            except asyncio.TimeoutError:
                self.failures += 1
                logger.warning(f"Scorer call timed out after {self.timeout_seconds:.0f}s")
                return None
            except Exception as e:
                self.failures += 1
                logger.warning(f"Scorer call failed: {e}")
                return None

    async def score(self, prompt: str, system_prompt: str = prompts.SCORE_ONLY_SYSTEM) -> ScoreResult:
        """Single 0-100 score from a score-only prompt."""
        response = await self.generate(prompt, system_prompt)
        if response is None:
            return ScoreResult(0.0, False)
        result = parse_score(response)
        if not result.ok:
            logger.warning(f"Unparsable score response: {response[:80]!r}")
        return result

    async def relevance(self, text: str, subject: str) -> ScoreResult:
        self.check_cancelled()
        async with self._semaphore:
            self.check_cancelled()
            self.calls += 1
            try:
                value = await asyncio.wait_for(
                    self.scorer.score_relevance(text, subject),
                    timeout=self.timeout_seconds,
                )
            except asyncio.TimeoutError:
                self.failures += 1
                logger.warning(f"Relevance call timed out after {self.timeout_seconds:.0f}s")
                return ScoreResult(0.0, False)
            except Exception as e:
                self.failures += 1
                logger.warning(f"Relevance call failed: {e}")
                return ScoreResult(0.0, False)
        return ScoreResult(clamp(float(value)), True)

    async def gather(self, calls: Iterable[Awaitable[T]]) -> List[T]:
        """
        Run calls concurrently, results in input order.

        Every call finishes before the first error (usually
        ``PipelineCancelled``) is re-raised, so no sibling is left running.
        """
        results = await asyncio.gather(*calls, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return list(results)

    def stats(self) -> dict:
        return {
            "calls": self.calls,
            "failures": self.failures,
            "max_concurrency": self.max_concurrency,
            "timeout_seconds": self.timeout_seconds,
        }
