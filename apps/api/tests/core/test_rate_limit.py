"""
Unit tests for rate limiting.
"""

from unittest.mock import patch

import pytest

from pleeno.core import rate_limit
from pleeno.core.rate_limit import RateLimitExceeded, check_rate_limit, enforce_rate_limit


@pytest.fixture(autouse=True)
def clear_memory_store():
    rate_limit._memory_store.clear()
    yield
    rate_limit._memory_store.clear()


class TestMemoryFallback:
    @pytest.mark.asyncio
    async def test_allows_up_to_limit(self):
        with patch("pleeno.core.redis.redis_client", None):
            results = [await check_rate_limit("export:u1", 3, 60) for _ in range(4)]

        assert results == [True, True, True, False]

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        with patch("pleeno.core.redis.redis_client", None):
            assert await check_rate_limit("export:u1", 1, 60) is True
            assert await check_rate_limit("export:u2", 1, 60) is True
            assert await check_rate_limit("export:u1", 1, 60) is False


class TestRedisBackend:
    @pytest.mark.asyncio
    async def test_under_limit(self, mock_redis):
        mock_redis.pipeline.return_value.execute.return_value = [0, 2, 1, True]

        with patch("pleeno.core.redis.redis_client", mock_redis):
            assert await check_rate_limit("login:1.2.3.4", 10, 60) is True

    @pytest.mark.asyncio
    async def test_over_limit(self, mock_redis):
        mock_redis.pipeline.return_value.execute.return_value = [0, 10, 1, True]

        with patch("pleeno.core.redis.redis_client", mock_redis):
            assert await check_rate_limit("login:1.2.3.4", 10, 60) is False

    @pytest.mark.asyncio
    async def test_redis_failure_falls_back_to_memory(self, mock_redis):
        mock_redis.pipeline.return_value.execute.side_effect = ConnectionError("down")

        with patch("pleeno.core.redis.redis_client", mock_redis):
            assert await check_rate_limit("login:1.2.3.4", 1, 60) is True

        assert "login:1.2.3.4" in rate_limit._memory_store


class TestEnforceRateLimit:
    @pytest.mark.asyncio
    async def test_raises_429_with_retry_after(self):
        with patch("pleeno.core.redis.redis_client", None):
            await enforce_rate_limit("export:u1", 1, 60)
            with pytest.raises(RateLimitExceeded) as exc_info:
                await enforce_rate_limit("export:u1", 1, 60)

        assert exc_info.value.status_code == 429
        assert exc_info.value.headers["Retry-After"] == "60"
        assert exc_info.value.detail["error"] == "RATE_LIMIT_EXCEEDED"
