"""
Resilience Patterns

Circuit breaker and retry-with-backoff utilities shared by the
directory and contact-service HTTP clients.
"""

from src.common.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
)
from src.common.resilience.retry import RetryConfig, retry_with_backoff

__all__ = [
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
    "retry_with_backoff",
    "RetryConfig",
]
