"""Tests for exponential backoff and execute_with_retry."""

from unittest.mock import AsyncMock

import pytest

from perfspine.core.errors import NetworkError, RateLimitError, ValidationError
from perfspine.core.settings import PerfSpineSettings
from perfspine.execution.retry import ExponentialBackoff, RetryResult, execute_with_retry


class TestExponentialBackoff:
    """Tests for ExponentialBackoff."""

    def test_delays_double_and_cap(self):
        backoff = ExponentialBackoff(max_retries=5, base_delay=5.0, max_delay=12.0)
        assert [backoff.next_delay(n) for n in range(4)] == [5.0, 10.0, 12.0, 12.0]

    def test_should_retry_budget(self):
        backoff = ExponentialBackoff(max_retries=2)
        assert backoff.should_retry(0) is True
        assert backoff.should_retry(1) is True
        assert backoff.should_retry(2) is False

    def test_jitter_stays_within_range(self):
        backoff = ExponentialBackoff(base_delay=10.0, jitter=True, jitter_range=0.25)
        for _ in range(20):
            assert 10.0 <= backoff.next_delay(0) <= 12.5

    def test_negative_retries_rejected(self):
        with pytest.raises(ValueError):
            ExponentialBackoff(max_retries=-1)

    def test_from_settings(self, tmp_path):
        settings = PerfSpineSettings(cache_dir=tmp_path, max_retries=2, base_delay=1.5, max_delay=9.0)
        backoff = ExponentialBackoff.from_settings(settings)
        assert (backoff.max_retries, backoff.base_delay, backoff.max_delay) == (2, 1.5, 9.0)
        assert backoff.jitter is False


class TestExecuteWithRetry:
    """Tests for execute_with_retry with a recorded sleep."""

    @pytest.mark.asyncio
    async def test_first_attempt_success(self, recording_sleep):
        func = AsyncMock(return_value="ok")
        result = await execute_with_retry(func, ExponentialBackoff(), sleep=recording_sleep)
        assert result == RetryResult(success=True, result="ok", attempts=1)
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failures(self, recording_sleep):
        func = AsyncMock(side_effect=[NetworkError("a"), NetworkError("b"), "ok"])
        backoff = ExponentialBackoff(max_retries=3, base_delay=5.0, max_delay=60.0)

        result = await execute_with_retry(func, backoff, {"unit_id": "42"}, sleep=recording_sleep)

        assert result.success is True
        assert result.result == "ok"
        assert result.attempts == 3
        assert recording_sleep.delays == [5.0, 10.0]

    @pytest.mark.asyncio
    async def test_exhaustion_returns_last_error(self, recording_sleep):
        errors = [NetworkError(f"fail {n}") for n in range(4)]
        func = AsyncMock(side_effect=errors)
        backoff = ExponentialBackoff(max_retries=3, base_delay=5.0, max_delay=15.0)

        result = await execute_with_retry(func, backoff, sleep=recording_sleep)

        assert result.success is False
        assert result.attempts == 4
        assert result.error is errors[-1]
        assert recording_sleep.delays == [5.0, 10.0, 15.0]
        with pytest.raises(NetworkError, match="fail 3"):
            result.unwrap()

    @pytest.mark.asyncio
    async def test_non_retryable_stops_immediately(self, recording_sleep):
        func = AsyncMock(side_effect=ValidationError("bad unit"))
        result = await execute_with_retry(func, ExponentialBackoff(max_retries=5), sleep=recording_sleep)
        assert result.success is False
        assert result.attempts == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_rate_limit_waits_retry_after(self, recording_sleep):
        func = AsyncMock(side_effect=[RateLimitError("slow down", retry_after=30), "ok"])
        backoff = ExponentialBackoff(max_retries=2, base_delay=5.0, max_delay=10.0)

        result = await execute_with_retry(func, backoff, sleep=recording_sleep)

        assert result.success is True
        assert recording_sleep.delays == [30.0]

    @pytest.mark.asyncio
    async def test_short_retry_after_keeps_backoff_delay(self, recording_sleep):
        func = AsyncMock(side_effect=[RateLimitError(retry_after=1), "ok"])
        backoff = ExponentialBackoff(max_retries=2, base_delay=5.0)

        await execute_with_retry(func, backoff, sleep=recording_sleep)

        assert recording_sleep.delays == [5.0]

    @pytest.mark.asyncio
    async def test_custom_retry_predicate(self, recording_sleep):
        func = AsyncMock(side_effect=[KeyError("x"), "ok"])
        result = await execute_with_retry(
            func,
            ExponentialBackoff(max_retries=1, base_delay=0.5),
            sleep=recording_sleep,
            retry_if=lambda e: isinstance(e, KeyError),
        )
        assert result.success is True
        assert recording_sleep.delays == [0.5]

    def test_unwrap_without_error(self):
        with pytest.raises(RuntimeError):
            RetryResult(success=False).unwrap()
