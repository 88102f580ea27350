from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tabibito.errors import RetryExhaustedError

T = TypeVar("T")
logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_SECONDS = 1.0


async def with_linear_backoff(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS,
    context: str = "operation",
    sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    on_retry: Callable[[int, float], None] | None = None,
) -> T:
    """Runs ``operation`` up to ``max_attempts`` times, sleeping ``base_delay * attempt`` in between."""
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except Exception as exc:
            logger.warning(
                "retry_attempt_failed",
                extra={
                    "component": "tabibito",
                    "retry_context": context,
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "error": repr(exc),
                },
            )
            if attempt >= max_attempts:
                raise RetryExhaustedError(
                    f"{context} failed after {attempt} attempts",
                    attempts=attempt,
                    last_error=exc,
                ) from exc
            delay = base_delay_seconds * attempt
            if on_retry:
                on_retry(attempt, delay)
            await sleep_fn(delay)
