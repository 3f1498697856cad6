"""
Unit tests for retry and circuit breaker helpers.
"""

import pytest
from unittest.mock import AsyncMock

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException, CircuitBreakerState
from shared.retry import RetryConfig, RetryError, retry_on_exception


class TestRetry:
    """Test cases for retry_on_exception."""

    @pytest.mark.asyncio
    async def test_succeeds_after_failures(self):
        """Test function retried until it succeeds."""
        func = AsyncMock(side_effect=[ValueError("1"), ValueError("2"), "ok"])
        wrapped = retry_on_exception((ValueError,), RetryConfig(max_attempts=3, base_delay=0, jitter=False))(func)

        assert await wrapped() == "ok"
        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_exhausted(self):
        """Test RetryError carries the last exception."""
        func = AsyncMock(side_effect=ValueError("always"))
        wrapped = retry_on_exception((ValueError,), RetryConfig(max_attempts=2, base_delay=0, jitter=False))(func)

        with pytest.raises(RetryError) as exc_info:
            await wrapped()

        assert exc_info.value.attempts == 2
        assert str(exc_info.value.last_exception) == "always"

    @pytest.mark.asyncio
    async def test_unlisted_exception_not_retried(self):
        """Test only configured exceptions are retried."""
        func = AsyncMock(side_effect=KeyError("k"))
        wrapped = retry_on_exception((ValueError,), RetryConfig(max_attempts=3, base_delay=0))(func)

        with pytest.raises(KeyError):
            await wrapped()

        assert func.await_count == 1

    def test_delay_strategies(self):
        """Test backoff calculation without jitter."""
        exponential = RetryConfig(base_delay=1.0, max_delay=3.0, jitter=False)
        linear = RetryConfig(base_delay=1.0, jitter=False, backoff_strategy="linear")
        fixed = RetryConfig(base_delay=1.0, jitter=False, backoff_strategy="fixed")

        assert [exponential.delay_for(a) for a in (1, 2, 3)] == [1.0, 2.0, 3.0]
        assert linear.delay_for(3) == 3.0
        assert fixed.delay_for(3) == 1.0


class FakeMonotonic:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


class TestCircuitBreaker:
    """Test cases for CircuitBreaker."""

    @pytest.fixture
    def clock(self):
        return FakeMonotonic()

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self, clock):
        """Test breaker opens and blocks calls."""
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=30, name="test", clock=clock)
        failing = AsyncMock(side_effect=ConnectionError("down"))

        for _ in range(2):
            with pytest.raises(ConnectionError):
                await breaker.call(failing)

        assert breaker.is_open() is True
        clock.now += 10
        with pytest.raises(CircuitBreakerOpenException) as exc_info:
            await breaker.call(failing)
        assert exc_info.value.retry_in == pytest.approx(20.0)
        assert failing.await_count == 2

    @pytest.mark.asyncio
    async def test_half_open_recovery(self, clock):
        """Test a successful trial call closes the breaker."""
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=10, name="test", clock=clock)

        with pytest.raises(ConnectionError):
            await breaker.call(AsyncMock(side_effect=ConnectionError("down")))

        clock.now += 11
        assert await breaker.call(AsyncMock(return_value="ok")) == "ok"

        assert breaker.state == CircuitBreakerState.CLOSED
        assert breaker.snapshot()["consecutive_failures"] == 0

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens(self, clock):
        """Test a failed trial call reopens immediately."""
        breaker = CircuitBreaker(failure_threshold=3, recovery_timeout=10, name="test", clock=clock)
        failing = AsyncMock(side_effect=ConnectionError("down"))

        for _ in range(3):
            with pytest.raises(ConnectionError):
                await breaker.call(failing)

        clock.now += 11
        with pytest.raises(ConnectionError):
            await breaker.call(failing)

        assert breaker.is_open() is True
        assert breaker.snapshot()["retry_in"] == pytest.approx(10.0)

    @pytest.mark.asyncio
    async def test_unexpected_exceptions_not_counted(self, clock):
        """Test only expected exception types trip the breaker."""
        breaker = CircuitBreaker(failure_threshold=1, name="test", expected_exceptions=(ConnectionError,),
                                 clock=clock)

        with pytest.raises(KeyError):
            await breaker.call(AsyncMock(side_effect=KeyError("bug")))

        assert breaker.is_open() is False
