"""Tests for the circuit breaker state machine."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from perfspine.core.errors import CircuitOpenError
from perfspine.execution.circuit_breaker import (
    CircuitBreaker,
    CircuitState,
    Outcome,
    next_state,
)


class TestTransitions:
    """Tests for the transition table."""

    def test_threshold_opens(self):
        assert next_state(CircuitState.CLOSED, Outcome.THRESHOLD_REACHED) == CircuitState.OPEN

    def test_probe_success_closes(self):
        assert next_state(CircuitState.HALF_OPEN, Outcome.SUCCESS) == CircuitState.CLOSED

    def test_impossible_pair_raises(self):
        with pytest.raises(ValueError):
            next_state(CircuitState.OPEN, Outcome.SUCCESS)


class TestCircuitBreaker:
    """Tests for CircuitBreaker driven by a fake clock."""

    def test_rejects_zero_threshold(self):
        with pytest.raises(ValueError):
            CircuitBreaker(failure_threshold=0)

    def test_opens_after_threshold_consecutive_failures(self, clock):
        breaker = CircuitBreaker(name="t", failure_threshold=3, recovery_timeout=60, clock=clock)
        breaker.record_failure()
        breaker.record_failure()
        assert breaker.state == CircuitState.CLOSED
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN
        assert breaker.allow_request() is False

    def test_failures_below_threshold_accumulate(self, clock):
        breaker = CircuitBreaker(failure_threshold=5, clock=clock)
        for expected in range(1, 5):
            breaker.record_failure()
            assert breaker.get_stats().failure_count == expected
        assert breaker.state == CircuitState.CLOSED

    def test_success_resets_failure_count(self, clock):
        breaker = CircuitBreaker(failure_threshold=3, clock=clock)
        breaker.record_failure()
        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()
        breaker.record_failure()
        assert breaker.state == CircuitState.CLOSED

    def test_half_open_after_recovery_timeout(self, clock):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60, clock=clock)
        breaker.record_failure()
        clock.advance(59)
        assert breaker.state == CircuitState.OPEN
        clock.advance(1)
        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.allow_request() is True

    def test_half_open_failure_reopens(self, clock):
        breaker = CircuitBreaker(failure_threshold=3, recovery_timeout=60, clock=clock)
        for _ in range(3):
            breaker.record_failure()
        clock.advance(60)
        assert breaker.state == CircuitState.HALF_OPEN
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN
        assert breaker.get_stats().next_retry_time == clock.now + timedelta(seconds=60)

    def test_half_open_success_closes(self, clock):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=10, clock=clock)
        breaker.record_failure()
        clock.advance(10)
        breaker.record_success()
        stats = breaker.get_stats()
        assert stats.state == CircuitState.CLOSED
        assert stats.failure_count == 0
        assert stats.next_retry_time is None

    def test_reset(self, clock):
        breaker = CircuitBreaker(failure_threshold=1, clock=clock)
        breaker.record_failure()
        breaker.reset()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.get_stats().last_failure_time is None

    def test_stats_to_dict(self, clock):
        breaker = CircuitBreaker(name="dashboard", failure_threshold=1, recovery_timeout=30, clock=clock)
        breaker.record_failure(RuntimeError("x"))
        data = breaker.get_stats().to_dict()
        assert data["name"] == "dashboard"
        assert data["state"] == "open"
        assert data["failureCount"] == 1
        assert data["nextRetryTime"] is not None
        assert data["lastFailureTime"] == clock.now.isoformat()


class TestExecute:
    """Tests for guarded calls."""

    @pytest.mark.asyncio
    async def test_execute_returns_result(self, clock):
        breaker = CircuitBreaker(clock=clock)
        func = AsyncMock(return_value=42)
        assert await breaker.execute(func, "a", key="b") == 42
        func.assert_awaited_once_with("a", key="b")
        assert breaker.get_stats().total_calls == 1

    @pytest.mark.asyncio
    async def test_execute_records_failure_and_reraises(self, clock):
        breaker = CircuitBreaker(failure_threshold=2, clock=clock)
        func = AsyncMock(side_effect=RuntimeError("down"))
        with pytest.raises(RuntimeError):
            await breaker.execute(func)
        assert breaker.get_stats().failure_count == 1

    @pytest.mark.asyncio
    async def test_open_circuit_short_circuits_without_invoking(self, clock):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60, clock=clock)
        breaker.record_failure()
        func = AsyncMock(return_value="never")

        with pytest.raises(CircuitOpenError) as exc_info:
            await breaker.execute(func)

        func.assert_not_awaited()
        assert exc_info.value.next_retry_time is not None
        assert breaker.get_stats().rejected_calls == 1

    def test_sync_call(self, clock):
        breaker = CircuitBreaker(failure_threshold=1, clock=clock)
        assert breaker.call(lambda x: x * 2, 21) == 42
        with pytest.raises(ZeroDivisionError):
            breaker.call(lambda: 1 / 0)
        with pytest.raises(CircuitOpenError):
            breaker.call(lambda: "never")
