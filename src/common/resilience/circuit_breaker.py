"""
Circuit Breaker Pattern

Fails fast when an external service keeps failing, so a batch of records
does not wait out a timeout per record against a dead dependency.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Requests flow through
    OPEN = "open"  # Requests fail fast
    HALF_OPEN = "half_open"  # Probing for recovery


class CircuitOpenError(Exception):
    """Raised when a call is rejected because the circuit is open."""

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


@dataclass
class CircuitStats:
    """Statistics for monitoring circuit breaker state."""

    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    total_calls: int = 0
    total_failures: int = 0
    total_successes: int = 0


class CircuitBreaker:
    """
    Circuit breaker with configurable thresholds.

    States:
    - CLOSED: Normal operation. After ``failure_threshold`` consecutive
      failures, transitions to OPEN.
    - OPEN: All calls raise CircuitOpenError until ``recovery_timeout``
      seconds have passed, then transitions to HALF_OPEN.
    - HALF_OPEN: Calls pass through. ``success_threshold`` successes close
      the circuit; any failure reopens it.

    Example:
        breaker = CircuitBreaker(failure_threshold=3, recovery_timeout=10.0)

        try:
            records = await breaker.call(client.fetch_page)
        except CircuitOpenError:
            records = cached_records
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        success_threshold: int = 2,
        recovery_timeout: float = 30.0,
        excluded_exceptions: tuple[type[Exception], ...] = (),
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize circuit breaker.

        Args:
            failure_threshold: Consecutive failures before opening the circuit
            success_threshold: Successes needed to close from half-open
            recovery_timeout: Seconds to wait before probing a half-open circuit
            excluded_exceptions: Exception types that don't count as failures
            name: Name used in logs and errors
            clock: Monotonic time source (injectable for tests)
        """
        self._failure_threshold = failure_threshold
        self._success_threshold = success_threshold
        self._recovery_timeout = recovery_timeout
        self._excluded_exceptions = excluded_exceptions
        self._name = name
        self._clock = clock
        self._lock = asyncio.Lock()

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: float | None = None

        self._total_calls = 0
        self._total_failures = 0
        self._total_successes = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> CircuitState:
        """Current circuit state."""
        return self._state

    @property
    def stats(self) -> CircuitStats:
        """Snapshot of current statistics."""
        return CircuitStats(
            state=self._state,
            failure_count=self._failure_count,
            total_calls=self._total_calls,
            total_failures=self._total_failures,
            total_successes=self._total_successes,
        )

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """
        Execute an async function through the circuit breaker.

        Raises:
            CircuitOpenError: If the circuit is open
            Exception: Any exception from the wrapped function
        """
        async with self._lock:
            self._check_state()
            self._total_calls += 1

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            if not isinstance(e, self._excluded_exceptions):
                await self._on_failure(e)
            raise

        await self._on_success()
        return result

    def _check_state(self) -> None:
        if self._state != CircuitState.OPEN:
            return

        elapsed = self._clock() - (self._opened_at or 0.0)
        if elapsed >= self._recovery_timeout:
            logger.info(
                f"Circuit breaker '{self._name}' transitioning to HALF_OPEN "
                f"after {elapsed:.1f}s"
            )
            self._state = CircuitState.HALF_OPEN
            self._success_count = 0
            return

        raise CircuitOpenError(
            f"Circuit breaker '{self._name}' is open",
            retry_after=self._recovery_timeout - elapsed,
        )

    async def _on_success(self) -> None:
        async with self._lock:
            self._total_successes += 1

            if self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self._success_threshold:
                    logger.info(f"Circuit breaker '{self._name}' closing")
                    self._state = CircuitState.CLOSED
                    self._failure_count = 0
                    self._success_count = 0
            else:
                self._failure_count = 0

    async def _on_failure(self, error: Exception) -> None:
        async with self._lock:
            self._total_failures += 1
            self._failure_count += 1

            logger.warning(
                f"Circuit breaker '{self._name}' recorded failure "
                f"({self._failure_count}/{self._failure_threshold}): {error!r}"
            )

            if self._state == CircuitState.HALF_OPEN or (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self._failure_threshold
            ):
                logger.warning(f"Circuit breaker '{self._name}' opening")
                self._state = CircuitState.OPEN
                self._opened_at = self._clock()

    def reset(self) -> None:
        """Manually reset circuit to closed state."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at = None
        logger.info(f"Circuit breaker '{self._name}' manually reset to CLOSED")
