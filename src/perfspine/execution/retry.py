"""Bounded exponential-backoff retry around a single async operation.

Retry handles transient failure of *one* call; the circuit breaker handles
sustained failure of a resource across *many* calls. The two compose as::

    await breaker.execute(fetch_with_retry)   # breaker sees exhausted retries

:func:`execute_with_retry` never raises. It returns a :class:`RetryResult`
so the caller decides how to surface failure.

Example:
    >>> from perfspine.execution.retry import ExponentialBackoff, execute_with_retry
    >>>
    >>> backoff = ExponentialBackoff(max_retries=3, base_delay=5.0, max_delay=60.0)
    >>> result = await execute_with_retry(fetch, backoff, context={"unit_id": "42"})
    >>> result.success, result.attempts
    (True, 2)
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from perfspine.core.errors import PerfSpineError, categorize_error, is_retryable
from perfspine.core.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


@dataclass
class ExponentialBackoff:
    """Exponential backoff with optional jitter.

    Delay = min(base_delay * (multiplier ** attempt), max_delay) [+ jitter]

    Attributes:
        max_retries: Retries after the first attempt (total calls = max_retries + 1)
        base_delay: Delay before the first retry, in seconds
        max_delay: Maximum delay cap in seconds
        multiplier: Exponential multiplier
        jitter: Add up to ``jitter_range`` x delay of randomness
        jitter_range: Fraction of the delay used for jitter (0.0-1.0)
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    multiplier: float = 2.0
    jitter: bool = False
    jitter_range: float = 0.25

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    def next_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0 = first retry)."""
        delay = min(self.base_delay * (self.multiplier ** attempt), self.max_delay)
        if self.jitter and delay > 0:
            delay += random.uniform(0, delay * self.jitter_range)
        return delay

    def should_retry(self, attempt: int) -> bool:
        """True while retry number ``attempt`` is within budget."""
        return attempt < self.max_retries

    @classmethod
    def from_settings(cls, settings: Any) -> ExponentialBackoff:
        """Build from :class:`~perfspine.core.settings.PerfSpineSettings`."""
        return cls(
            max_retries=settings.max_retries,
            base_delay=settings.base_delay,
            max_delay=settings.max_delay,
            multiplier=settings.backoff_multiplier,
        )


@dataclass
class RetryResult(Generic[T]):
    """Outcome of :func:`execute_with_retry`.

    Attributes:
        success: True if some attempt succeeded
        result: Return value of the successful attempt
        error: Last error when every attempt failed
        attempts: Number of times the operation was invoked
    """

    success: bool
    result: T | None = None
    error: BaseException | None = None
    attempts: int = 0

    def unwrap(self) -> T:
        """Return the result or raise the last error."""
        if self.success:
            return self.result  # type: ignore[return-value]
        if self.error is not None:
            raise self.error
        raise RuntimeError("Operation failed without an error")


async def execute_with_retry(
    func: Callable[[], Awaitable[T]],
    backoff: ExponentialBackoff | None = None,
    context: dict[str, Any] | None = None,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    retry_if: Callable[[BaseException], bool] = is_retryable,
) -> RetryResult[T]:
    """Invoke ``func`` up to ``max_retries + 1`` times.

    Args:
        func: Zero-argument coroutine function
        backoff: Delay policy (defaults to ``ExponentialBackoff()``)
        context: Key/values added to every log event
        sleep: Awaitable sleep; inject a recorder in tests
        retry_if: Errors for which this returns False end the loop early

    A :class:`~perfspine.core.errors.PerfSpineError` carrying ``retry_after``
    (e.g. :class:`~perfspine.core.errors.RateLimitError`) waits at least that
    many seconds, even past ``max_delay``.

    Returns:
        RetryResult. Never raises (``asyncio.CancelledError`` still propagates).
    """
    policy = backoff or ExponentialBackoff()
    log_context = context or {}
    attempts = 0
    last_error: BaseException | None = None

    while True:
        attempts += 1
        try:
            value = await func()
        except Exception as e:
            last_error = e
            retry_number = attempts - 1
            if not retry_if(e):
                logger.warning(
                    "retry_aborted_non_retryable",
                    attempts=attempts,
                    error=str(e),
                    **log_context,
                )
                break
            if not policy.should_retry(retry_number):
                logger.error(
                    "retry_exhausted",
                    attempts=attempts,
                    error=str(e),
                    **log_context,
                )
                break
            delay = policy.next_delay(retry_number)
            # Never retry sooner than the server asked
            if isinstance(e, PerfSpineError) and e.retry_after is not None:
                delay = max(delay, float(e.retry_after))
            logger.warning(
                "retry_scheduled",
                attempt=attempts,
                delay_seconds=round(delay, 3),
                category=categorize_error(e).value,
                error=str(e),
                **log_context,
            )
            await sleep(delay)
            continue

        if attempts > 1:
            logger.info("retry_succeeded", attempts=attempts, **log_context)
        return RetryResult(success=True, result=value, attempts=attempts)

    return RetryResult(success=False, error=last_error, attempts=attempts)


__all__ = ["ExponentialBackoff", "RetryResult", "execute_with_retry"]
