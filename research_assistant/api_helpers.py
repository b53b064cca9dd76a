"""Shared Claude API call helpers: bounded retry and plain-text completion."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from anthropic import (
    APIConnectionError,
    APIError,
    APITimeoutError,
    AsyncAnthropic,
    RateLimitError,
)

from .errors import ANTHROPIC_TIMEOUT
from .modes import DEFAULT_MODEL

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default retry parameters
DEFAULT_MAX_RETRIES = 1
DEFAULT_RETRY_DELAY = 2.0

# Exceptions every LLM call site treats as a failed completion
API_ERRORS = (APIError, RateLimitError, APIConnectionError, APITimeoutError)


async def retry_api_call(
    api_call: Callable[[], Awaitable[T]],
    *,
    max_retries: int = DEFAULT_MAX_RETRIES,
    retry_delay: float = DEFAULT_RETRY_DELAY,
    retry_on: tuple[type[Exception], ...] = (RateLimitError,),
    context: str = "",
) -> T:
    """Retry an async API call with a fixed delay on specified errors.

    Args:
        api_call: Zero-arg callable returning an awaitable (e.g., lambda: client.messages.create(...))
        max_retries: Number of retries after the first attempt (total attempts = max_retries + 1)
        retry_delay: Seconds to sleep between retries
        retry_on: Exception types that trigger a retry. Defaults to (RateLimitError,).
        context: Short description for log messages (e.g., "Scoring https://...")

    Returns:
        The result of api_call() on success.

    Raises:
        RateLimitError: If retries are exhausted on rate limiting.
        APIError / APITimeoutError / APIConnectionError: On non-retryable API failure.
    """
    for attempt in range(max_retries + 1):
        try:
            return await api_call()
        except API_ERRORS as e:
            is_retryable = isinstance(e, retry_on)

            if is_retryable and attempt < max_retries:
                logger.warning(
                    "%s %s, retrying in %ss...",
                    context, type(e).__name__, retry_delay,
                )
                await asyncio.sleep(retry_delay)
                continue

            if is_retryable:
                logger.warning("%s %s, exhausted retries", context, type(e).__name__)
            else:
                logger.warning("%s %s: %s", context, type(e).__name__, e)
            raise

    # Unreachable: the loop always raises or returns
    raise RuntimeError("retry_api_call: unreachable")  # pragma: no cover


async def complete(
    client: AsyncAnthropic,
    prompt: str,
    *,
    system: str,
    model: str = DEFAULT_MODEL,
    max_tokens: int = 1500,
    timeout: float = ANTHROPIC_TIMEOUT,
    temperature: float = 0.3,
    context: str = "",
) -> str:
    """Send a single-turn prompt and return the stripped completion text.

    Returns "" when the response carries no content blocks.

    Raises:
        APIError and subclasses: After retry_api_call gives up.
    """
    response = await retry_api_call(
        lambda: client.messages.create(
            model=model,
            max_tokens=max_tokens,
            timeout=timeout,
            temperature=temperature,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        ),
        context=context,
    )
    if not response.content:
        return ""
    return (response.content[0].text or "").strip()
