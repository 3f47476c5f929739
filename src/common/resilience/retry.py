"""
Retry with Exponential Backoff

Retries failed external calls with a bounded, jittered backoff and
enforces a per-attempt timeout so a stalled service cannot hang a batch.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 5.0
    exponential_base: float = 2.0
    jitter: bool = True
    attempt_timeout: float | None = None  # Seconds per attempt, None = no limit
    retryable_exceptions: tuple[type[Exception], ...] = (
        ConnectionError,
        TimeoutError,
        OSError,
    )

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the given 1-indexed attempt."""
        delay = min(
            self.base_delay * (self.exponential_base ** (attempt - 1)),
            self.max_delay,
        )
        if self.jitter:
            delay = delay * (0.5 + random.random())
        return delay


async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    *args,
    config: RetryConfig | None = None,
    on_retry: Callable[[int, Exception, float], None] | None = None,
    **kwargs,
) -> T:
    """
    Retry an async function with exponential backoff.

    Each attempt is bounded by ``config.attempt_timeout``; an expired attempt
    raises ``TimeoutError``, which is retryable by default.

    Args:
        func: Async function to retry
        *args: Positional arguments for func
        config: Retry configuration
        on_retry: Optional callback(attempt, error, delay) on each retry
        **kwargs: Keyword arguments for func

    Returns:
        Result from successful function call

    Raises:
        Exception: Last exception after all retries exhausted, or the first
            non-retryable exception
    """
    config = config or RetryConfig()

    for attempt in range(1, config.max_attempts + 1):
        try:
            if config.attempt_timeout is None:
                return await func(*args, **kwargs)
            return await asyncio.wait_for(func(*args, **kwargs), config.attempt_timeout)
        except config.retryable_exceptions as e:
            if attempt == config.max_attempts:
                logger.warning(f"Retry exhausted after {attempt} attempts: {e!r}")
                raise

            delay = config.delay_for(attempt)
            logger.info(
                f"Retry attempt {attempt}/{config.max_attempts} failed: {e!r}. "
                f"Retrying in {delay:.2f}s"
            )
            if on_retry:
                on_retry(attempt, e, delay)

            await asyncio.sleep(delay)

    raise RuntimeError("Retry logic error: max_attempts must be >= 1")
