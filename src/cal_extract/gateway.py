"""Model gateway: text completion with retry and exponential backoff.

The pipeline only depends on the :class:`ModelGateway` protocol, a single
``complete`` coroutine.  Two implementations are provided:

- :class:`GeminiGateway` -- one raw call to Google Gemini through the
  ``google-genai`` async client, JSON response mode, temperature 0.1.
- :class:`RetryingGateway` -- wraps any gateway and retries transient
  failures according to :func:`retry_decision`.

:func:`build_gateway` wires the two together from :class:`Settings`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from cal_extract.config import Settings
from cal_extract.exceptions import ConfigurationError, ModelError

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
BASE_DELAY_MS = 1000
TEMPERATURE = 0.1
MAX_OUTPUT_TOKENS = 1000


class ModelGateway(Protocol):
    """Anything that can turn a system prompt plus user text into raw text."""

    async def complete(self, system_prompt: str, user_text: str, model: str) -> str:
        ...


# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RetryDecision:
    """Outcome of :func:`retry_decision`.

    Attributes:
        retry: Whether another attempt should be made.
        delay_ms: Milliseconds to wait before that attempt (0 if no retry).
    """

    retry: bool
    delay_ms: int = 0


def retry_decision(
    attempt: int,
    error: BaseException,
    max_attempts: int = MAX_ATTEMPTS,
    base_delay_ms: int = BASE_DELAY_MS,
) -> RetryDecision:
    """Decide whether to retry after attempt *attempt* failed with *error*.

    Only :class:`ModelError` instances that report a retryable status
    (429 or >= 500) or an empty response are retried.  The delay before the
    next attempt is ``base_delay_ms * 2**attempt``, so with the defaults the
    waits are 1000 ms after the first failure and 2000 ms after the second.

    Args:
        attempt: 0-based index of the attempt that just failed.
        error: The failure raised by that attempt.
        max_attempts: Total number of attempts allowed.
        base_delay_ms: Delay after the first failed attempt.

    Returns:
        A :class:`RetryDecision`.
    """
    if attempt + 1 >= max_attempts:
        return RetryDecision(retry=False)
    if not isinstance(error, ModelError) or not error.retryable:
        return RetryDecision(retry=False)
    return RetryDecision(retry=True, delay_ms=base_delay_ms * (2**attempt))


async def _sleep_ms(delay_ms: int) -> None:
    await asyncio.sleep(delay_ms / 1000)


class RetryingGateway:
    """Gateway decorator that retries transient failures of *backend*.

    Args:
        backend: The gateway performing the actual call.
        max_attempts: Total attempts per :meth:`complete` call.
        base_delay_ms: Backoff delay after the first failure.
        sleep: Coroutine used to wait between attempts (injectable so that
            tests do not actually sleep).
    """

    def __init__(
        self,
        backend: ModelGateway,
        max_attempts: int = MAX_ATTEMPTS,
        base_delay_ms: int = BASE_DELAY_MS,
        sleep: Callable[[int], Awaitable[None]] = _sleep_ms,
    ) -> None:
        self._backend = backend
        self._max_attempts = max_attempts
        self._base_delay_ms = base_delay_ms
        self._sleep = sleep

    async def complete(self, system_prompt: str, user_text: str, model: str) -> str:
        """Call the backend, retrying transient failures.

        Raises:
            ModelError: The last observed failure once retries are exhausted,
                or immediately for a non-retryable failure.
        """
        last_error: ModelError | None = None

        for attempt in range(self._max_attempts):
            try:
                return await self._backend.complete(system_prompt, user_text, model)
            except ModelError as exc:
                last_error = exc
                decision = retry_decision(
                    attempt,
                    exc,
                    max_attempts=self._max_attempts,
                    base_delay_ms=self._base_delay_ms,
                )
                if not decision.retry:
                    if exc.retryable:
                        logger.error(
                            "Model call failed after %d attempt(s): %s",
                            attempt + 1,
                            exc,
                        )
                    raise
                logger.warning(
                    "Model call failed (status=%s), retrying in %dms (attempt %d/%d): %s",
                    exc.status_code,
                    decision.delay_ms,
                    attempt + 1,
                    self._max_attempts,
                    exc,
                )
                await self._sleep(decision.delay_ms)

        if last_error is not None:
            raise last_error
        raise ModelError("Max retries exceeded")


# ---------------------------------------------------------------------------
# Gemini backend
# ---------------------------------------------------------------------------


class GeminiGateway:
    """Single-shot Gemini completion via ``google.genai``'s async client.

    Args:
        api_key: Google Gemini API key.
    """

    def __init__(self, api_key: str) -> None:
        if not api_key or not api_key.strip():
            raise ConfigurationError("GEMINI_API_KEY is required")
        self._client = genai.Client(api_key=api_key)

    async def complete(self, system_prompt: str, user_text: str, model: str) -> str:
        """Return the raw text of one Gemini completion.

        Raises:
            ModelError: On API errors (carrying the HTTP status code) and on
                responses without text content.
        """
        config = genai_types.GenerateContentConfig(
            system_instruction=system_prompt,
            temperature=TEMPERATURE,
            max_output_tokens=MAX_OUTPUT_TOKENS,
            response_mime_type="application/json",
        )

        logger.debug("System prompt sent to %s:\n%s", model, system_prompt)
        logger.debug("User text sent to %s:\n%s", model, user_text)

        try:
            response = await self._client.aio.models.generate_content(
                model=model,
                contents=user_text,
                config=config,
            )
        except genai_errors.APIError as exc:
            logger.warning("Gemini API error (HTTP %s): %s", exc.code, exc)
            raise ModelError(
                f"Gemini API call failed: {exc}", status_code=exc.code
            ) from exc

        text = response.text
        if not text or not text.strip():
            raise ModelError("Empty response", empty_response=True)

        logger.debug("Raw response from %s:\n%s", model, text)
        return text


def build_gateway(settings: Settings) -> ModelGateway:
    """Build the production gateway (Gemini with retry) from *settings*."""
    return RetryingGateway(GeminiGateway(api_key=settings.gemini_api_key))
