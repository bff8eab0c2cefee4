"""
Tests for retry helpers.

Tests for brainprep/core/retry.py
"""

import pytest
from unittest.mock import AsyncMock

from brainprep.core.retry import RetryConfig, calculate_delay, retry_async_call


class TestCalculateDelay:
    """Tests for backoff calculation."""

    def test_exponential_growth(self):
        config = RetryConfig(base_delay=1.0, max_delay=60.0, jitter=False)

        assert calculate_delay(0, config) == 1.0
        assert calculate_delay(1, config) == 2.0
        assert calculate_delay(2, config) == 4.0

    def test_capped_at_max_delay(self):
        config = RetryConfig(base_delay=1.0, max_delay=5.0, jitter=False)

        assert calculate_delay(10, config) == 5.0


class TestRetryAsyncCall:
    """Tests for retry_async_call."""

    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failure(self):
        func = AsyncMock(side_effect=[ConnectionError("down"), "ok"])
        config = RetryConfig(max_retries=2, base_delay=0.0, jitter=False)

        result = await retry_async_call(func, config=config)

        assert result == "ok"
        assert func.await_count == 2

    @pytest.mark.asyncio
    async def test_raises_last_error_when_exhausted(self):
        func = AsyncMock(side_effect=ConnectionError("down"))
        config = RetryConfig(max_retries=1, base_delay=0.0, jitter=False)

        with pytest.raises(ConnectionError):
            await retry_async_call(func, config=config)
        assert func.await_count == 2

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates_immediately(self):
        func = AsyncMock(side_effect=KeyError("x"))
        config = RetryConfig(max_retries=3, base_delay=0.0, retryable_exceptions=(ConnectionError,))

        with pytest.raises(KeyError):
            await retry_async_call(func, config=config)
        assert func.await_count == 1
