"""Unit tests for the retry decorator and strategy."""
from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from account_service.core.exceptions import AccountServiceError
from account_service.utils.retry import RetryError, RetryStrategy, retry


@pytest.mark.unit
class TestRetryStrategy:
    """Test suite for RetryStrategy."""

    def test_fixed_has_constant_delay(self):
        strategy = RetryStrategy.fixed(1.5, max_attempts=4)

        assert [strategy.calculate_delay(n) for n in range(4)] == [1.5, 1.5, 1.5, 1.5]

    def test_zero_attempts_is_unbounded(self):
        strategy = RetryStrategy.fixed(0.1)

        assert strategy.unbounded is True
        assert strategy.is_exhausted(10_000) is False

    def test_bounded_exhaustion(self):
        strategy = RetryStrategy(max_attempts=3)

        assert strategy.is_exhausted(2) is False
        assert strategy.is_exhausted(3) is True

    def test_exponential_delay_is_capped(self):
        strategy = RetryStrategy(initial_delay=1.0, max_delay=5.0, jitter=False)

        assert strategy.calculate_delay(0) == 1.0
        assert strategy.calculate_delay(2) == 4.0
        assert strategy.calculate_delay(10) == 5.0

    def test_stop_after_delay(self):
        strategy = RetryStrategy(max_attempts=0, stop_after_delay=5.0)

        assert strategy.should_stop(100, elapsed=4.9) is False
        assert strategy.should_stop(1, elapsed=5.0) is True

    def test_negative_attempts_rejected(self):
        with pytest.raises(ValueError):
            RetryStrategy(max_attempts=-1)

    def test_retry_if_overrides_exception_types(self):
        strategy = RetryStrategy(retry_if=lambda exc: "transient" in str(exc))

        assert strategy.should_retry(RuntimeError("transient glitch")) is True
        assert strategy.should_retry(RuntimeError("fatal")) is False


@pytest.mark.unit
class TestRetryDecorator:
    """Test suite for the @retry decorator."""

    @pytest.mark.asyncio
    async def test_succeeds_after_failures(self):
        call = AsyncMock(side_effect=[ConnectionError("down"), ConnectionError("down"), "ok"])

        @retry(max_attempts=3, initial_delay=0.0, jitter=False)
        async def connect():
            return await call()

        assert await connect() == "ok"
        assert call.await_count == 3

    @pytest.mark.asyncio
    async def test_raises_retry_error_when_exhausted(self):
        call = AsyncMock(side_effect=ConnectionError("down"))

        @retry(max_attempts=2, initial_delay=0.0, jitter=False)
        async def connect():
            return await call()

        with pytest.raises(RetryError) as exc_info:
            await connect()

        error = exc_info.value
        assert isinstance(error, AccountServiceError)
        assert error.attempts == 2
        assert isinstance(error.last_exception, ConnectionError)
        assert error.statistics.attempts == 1
        assert error.type == "retry-exhausted"

    @pytest.mark.asyncio
    async def test_non_retryable_propagates(self):
        call = AsyncMock(side_effect=TypeError("bad"))

        @retry(max_attempts=5, initial_delay=0.0, exceptions=(ConnectionError,))
        async def connect():
            return await call()

        with pytest.raises(TypeError):
            await connect()
        assert call.await_count == 1

    @pytest.mark.asyncio
    async def test_on_retry_callback(self):
        seen: list[int] = []
        call = AsyncMock(side_effect=[OSError("x"), None])

        @retry(max_attempts=0, initial_delay=0.0, on_retry=lambda exc, attempt: seen.append(attempt))
        async def connect():
            return await call()

        await connect()
        assert seen == [1]
