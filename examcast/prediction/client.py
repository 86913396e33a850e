"""
Generation Client Adapter.

Calls the hosted generative model through an ordered fallback chain. The
first model that answers wins, and one overall deadline bounds the whole
sequence. No backoff or circuit breaking is applied.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from .errors import AllModelsExhaustedError, GenerationTimeoutError, ValidationError

# (model_name, prompt) -> raw response text
Backend = Callable[[str, str], str]


class EmptyResponseError(RuntimeError):
    """The model answered but returned no text."""


@dataclass(frozen=True)
class ModelSettings:
    """Model identifiers used to build a preference list."""

    pro: str = "gemini-2.5-pro"
    fast: str = "gemini-2.0-flash"
    fallbacks: tuple[str, ...] = ("gemini-2.0-flash", "gemini-2.0-flash-lite")


@dataclass(frozen=True)
class GenerationResult:
    """Raw text from the model that answered, plus the failed attempts before it."""

    text: str
    model: str
    failed_attempts: tuple[tuple[str, str], ...] = field(default_factory=tuple)


def build_model_preferences(
    requested_model: str | None,
    use_thinking_model: bool,
    models: ModelSettings,
) -> list[str]:
    """
    Ordered, de-duplicated model list for one request.

    An explicitly requested model goes first; otherwise the reasoning model
    leads in thinking mode and the fast model leads when it is off.
    """
    primary = requested_model or (models.pro if use_thinking_model else models.fast)
    ordered: list[str] = []
    for name in (primary, *models.fallbacks):
        if name and name not in ordered:
            ordered.append(name)
    return ordered


class GeminiBackend:
    """Synchronous Gemini call via google-generativeai."""

    def __init__(
        self,
        api_key: str | None,
        temperature: float = 0.3,
        max_output_tokens: int = 16384,
        request_timeout: float | None = 90.0,
    ):
        if not api_key:
            raise ValueError("Gemini API key required")
        self.api_key = api_key
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.request_timeout = request_timeout
        self._genai = None

    @property
    def genai(self):
        """Lazy-load and configure the Gemini SDK."""
        if self._genai is None:
            import google.generativeai as genai

            genai.configure(api_key=self.api_key)
            self._genai = genai
        return self._genai

    def __call__(self, model_name: str, prompt: str) -> str:
        model = self.genai.GenerativeModel(model_name=model_name)
        request_options: dict[str, Any] = {}
        if self.request_timeout:
            request_options["timeout"] = self.request_timeout

        response = model.generate_content(
            prompt,
            generation_config={
                "temperature": self.temperature,
                "top_p": 0.8,
                "max_output_tokens": self.max_output_tokens,
            },
            request_options=request_options,
        )

        # .text raises ValueError when the candidate was blocked
        text = response.text
        if not text:
            raise EmptyResponseError(f"Empty response from {model_name}")
        return text


class GenerationClient:
    """Ordered-fallback caller over a generation backend."""

    def __init__(
        self,
        backend: Backend,
        time_budget_seconds: float = 120.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the client.

        Args:
            backend: Callable taking (model_name, prompt) and returning text
            time_budget_seconds: Default overall budget for one generate() call
            clock: Monotonic clock, injectable for tests
        """
        self._backend = backend
        self.time_budget_seconds = time_budget_seconds
        self._clock = clock

    def _invoke(self, model_name: str, prompt: str) -> str | Exception:
        # Runs in a worker thread; failures come back as values so that only
        # the deadline can raise out of wait_for.
        try:
            return self._backend(model_name, prompt)
        except Exception as exc:
            return exc

    async def generate(
        self,
        prompt: str,
        model_preferences: Sequence[str],
        time_budget_seconds: float | None = None,
    ) -> GenerationResult:
        """
        Try each model in order and return the first successful answer.

        Raises:
            ValidationError: Empty preference list
            GenerationTimeoutError: Overall budget exhausted; no further models tried
            AllModelsExhaustedError: Every model failed within the budget
        """
        if not model_preferences:
            raise ValidationError("At least one model identifier is required")

        budget = self.time_budget_seconds if time_budget_seconds is None else time_budget_seconds
        deadline = self._clock() + budget
        failures: list[tuple[str, str]] = []
        attempted: list[str] = []
        last_error: Exception | None = None

        for model_name in model_preferences:
            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.error(
                    f"Time budget of {budget:.0f}s exhausted before trying {model_name}"
                )
                raise GenerationTimeoutError(
                    f"Generation timed out after {budget:.0f}s. Service busy, try again.",
                    attempted_models=attempted,
                )

            attempted.append(model_name)
            logger.info(f"Trying model: {model_name} ({remaining:.1f}s left)")
            try:
                outcome = await asyncio.wait_for(
                    asyncio.to_thread(self._invoke, model_name, prompt),
                    timeout=remaining,
                )
            except asyncio.TimeoutError:
                logger.error(f"Time budget of {budget:.0f}s exhausted while waiting on {model_name}")
                raise GenerationTimeoutError(
                    f"Generation timed out after {budget:.0f}s. Service busy, try again.",
                    attempted_models=attempted,
                ) from None

            if isinstance(outcome, Exception):
                last_error = outcome
            elif not outcome or not outcome.strip():
                last_error = EmptyResponseError(f"Empty response from {model_name}")
            else:
                if failures:
                    logger.info(f"Model {model_name} succeeded after {len(failures)} failed attempt(s)")
                return GenerationResult(text=outcome, model=model_name, failed_attempts=tuple(failures))

            failures.append((model_name, str(last_error)))
            logger.warning(f"Model {model_name} failed, trying next... {last_error}")

        logger.error(f"All {len(failures)} models failed. Last error: {last_error}")
        raise AllModelsExhaustedError(
            f"All models failed. Last error: {last_error}",
            last_error=last_error,
            attempts=failures,
        )
