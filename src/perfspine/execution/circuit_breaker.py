"""Circuit breaker guarding calls to the external dashboard.

Prevents hammering a failing resource: after ``failure_threshold``
consecutive failures every call is rejected without touching the resource
until ``recovery_timeout`` seconds have passed.

The breaker is a plain state machine. Transitions are looked up in
``TRANSITIONS`` keyed by ``(state, outcome)``, and time only enters through
the injectable ``clock``, so tests drive it without real timers::

    ┌────────────┬───────────────────┬────────────┐
    │ state      │ outcome           │ next state │
    ├────────────┼───────────────────┼────────────┤
    │ CLOSED     │ SUCCESS           │ CLOSED     │
    │ CLOSED     │ FAILURE           │ CLOSED     │
    │ CLOSED     │ THRESHOLD_REACHED │ OPEN       │
    │ OPEN       │ COOLDOWN_ELAPSED  │ HALF_OPEN  │
    │ HALF_OPEN  │ SUCCESS           │ CLOSED     │
    │ HALF_OPEN  │ FAILURE           │ OPEN       │
    └────────────┴───────────────────┴────────────┘

Example:
    >>> from perfspine.execution.circuit_breaker import CircuitBreaker
    >>>
    >>> breaker = CircuitBreaker(name="dashboard", failure_threshold=3, recovery_timeout=60)
    >>> result = await breaker.execute(fetch_unit, "42")
    >>> breaker.get_stats().state
    <CircuitState.CLOSED: 'closed'>
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, TypeVar

from perfspine.core.errors import CircuitOpenError
from perfspine.core.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"        # Normal operation
    OPEN = "open"            # Rejecting calls
    HALF_OPEN = "half_open"  # Next call is a probe


class Outcome(str, Enum):
    """Events that drive state transitions."""

    SUCCESS = "success"
    FAILURE = "failure"
    THRESHOLD_REACHED = "threshold_reached"
    COOLDOWN_ELAPSED = "cooldown_elapsed"


TRANSITIONS: dict[tuple[CircuitState, Outcome], CircuitState] = {
    (CircuitState.CLOSED, Outcome.SUCCESS): CircuitState.CLOSED,
    (CircuitState.CLOSED, Outcome.FAILURE): CircuitState.CLOSED,
    (CircuitState.CLOSED, Outcome.THRESHOLD_REACHED): CircuitState.OPEN,
    (CircuitState.OPEN, Outcome.COOLDOWN_ELAPSED): CircuitState.HALF_OPEN,
    (CircuitState.HALF_OPEN, Outcome.SUCCESS): CircuitState.CLOSED,
    (CircuitState.HALF_OPEN, Outcome.FAILURE): CircuitState.OPEN,
    (CircuitState.HALF_OPEN, Outcome.THRESHOLD_REACHED): CircuitState.OPEN,
}


def next_state(state: CircuitState, outcome: Outcome) -> CircuitState:
    """Look up the transition for ``(state, outcome)``.

    Raises:
        ValueError: For pairs that cannot occur (e.g. a success while OPEN).
    """
    try:
        return TRANSITIONS[(state, outcome)]
    except KeyError:
        raise ValueError(f"No transition from {state.value} on {outcome.value}") from None


@dataclass(frozen=True)
class CircuitBreakerStats:
    """Point-in-time view of a breaker, for callers deciding whether to proceed."""

    name: str
    state: CircuitState
    failure_count: int
    next_retry_time: datetime | None
    last_failure_time: datetime | None
    total_calls: int
    rejected_calls: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failureCount": self.failure_count,
            "nextRetryTime": self.next_retry_time.isoformat() if self.next_retry_time else None,
            "lastFailureTime": self.last_failure_time.isoformat() if self.last_failure_time else None,
            "totalCalls": self.total_calls,
            "rejectedCalls": self.rejected_calls,
        }


@dataclass
class CircuitBreaker:
    """Circuit breaker for one named resource.

    Attributes:
        name: Identifier for this circuit
        failure_threshold: Consecutive failures before opening
        recovery_timeout: Seconds to stay open before allowing a probe
        clock: Returns the current time; inject a fake in tests
    """

    name: str = "default"
    failure_threshold: int = 5
    recovery_timeout: float = 300.0
    clock: Callable[[], datetime] = field(default=utcnow, repr=False)

    # Internal state
    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _failure_count: int = field(default=0, init=False)
    _next_retry_time: datetime | None = field(default=None, init=False)
    _last_failure_time: datetime | None = field(default=None, init=False)
    _total_calls: int = field(default=0, init=False)
    _rejected_calls: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")

    # ── State machine ────────────────────────────────────────────

    def _apply(self, outcome: Outcome) -> None:
        old_state = self._state
        self._state = next_state(old_state, outcome)

        if self._state == CircuitState.OPEN:
            self._next_retry_time = self.clock() + timedelta(seconds=self.recovery_timeout)
        elif outcome == Outcome.SUCCESS:
            # Only a success breaks a run of consecutive failures
            self._failure_count = 0
            self._next_retry_time = None

        if self._state != old_state:
            logger.info(
                "circuit_state_changed",
                circuit=self.name,
                from_state=old_state.value,
                to_state=self._state.value,
                failure_count=self._failure_count,
                next_retry_time=self._next_retry_time.isoformat() if self._next_retry_time else None,
            )

    def _check_cooldown(self) -> None:
        if (
            self._state == CircuitState.OPEN
            and self._next_retry_time is not None
            and self.clock() >= self._next_retry_time
        ):
            self._apply(Outcome.COOLDOWN_ELAPSED)

    @property
    def state(self) -> CircuitState:
        """Current state, after applying any elapsed cooldown."""
        self._check_cooldown()
        return self._state

    def allow_request(self) -> bool:
        """True when a call may proceed right now."""
        return self.state != CircuitState.OPEN

    def record_success(self) -> None:
        """Record a successful call. A success reported while OPEN changes nothing."""
        if self.state == CircuitState.OPEN:
            return
        self._apply(Outcome.SUCCESS)

    def record_failure(self, error: BaseException | None = None) -> None:
        """Record a failed call."""
        self._failure_count += 1
        self._last_failure_time = self.clock()
        if self.state == CircuitState.OPEN:
            return
        if self._failure_count >= self.failure_threshold or self._state == CircuitState.HALF_OPEN:
            self._apply(Outcome.THRESHOLD_REACHED)
        else:
            self._apply(Outcome.FAILURE)
        logger.debug(
            "circuit_failure_recorded",
            circuit=self.name,
            failure_count=self._failure_count,
            error=str(error) if error else None,
        )

    def reset(self) -> None:
        """Return to CLOSED with a clean failure history."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._next_retry_time = None
        self._last_failure_time = None

    def get_stats(self) -> CircuitBreakerStats:
        """Snapshot of the breaker's state for external decision-making."""
        return CircuitBreakerStats(
            name=self.name,
            state=self.state,
            failure_count=self._failure_count,
            next_retry_time=self._next_retry_time,
            last_failure_time=self._last_failure_time,
            total_calls=self._total_calls,
            rejected_calls=self._rejected_calls,
        )

    # ── Guarded calls ────────────────────────────────────────────

    def _reject_if_open(self) -> None:
        self._total_calls += 1
        if not self.allow_request():
            self._rejected_calls += 1
            raise CircuitOpenError(
                f"Circuit '{self.name}' is open until "
                f"{self._next_retry_time.isoformat() if self._next_retry_time else 'unknown'}",
                next_retry_time=self._next_retry_time,
            )

    async def execute(
        self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        """Await ``func`` through the breaker.

        Raises:
            CircuitOpenError: If the circuit is open; ``func`` is not invoked.
        """
        self._reject_if_open()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            self.record_failure(e)
            raise
        self.record_success()
        return result

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Synchronous variant of :meth:`execute`."""
        self._reject_if_open()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self.record_failure(e)
            raise
        self.record_success()
        return result


__all__ = [
    "CircuitBreaker",
    "CircuitBreakerStats",
    "CircuitState",
    "Outcome",
    "TRANSITIONS",
    "next_state",
    "utcnow",
]
