"""
Resilience primitives for calls to the external dashboard.

- :class:`CircuitBreaker`: fail fast after sustained failure of a resource
- :func:`execute_with_retry`: bounded exponential backoff around one call
"""

from perfspine.execution.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerStats,
    CircuitState,
)
from perfspine.execution.retry import ExponentialBackoff, RetryResult, execute_with_retry

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerStats",
    "CircuitState",
    "ExponentialBackoff",
    "RetryResult",
    "execute_with_retry",
]
