"""
Unit tests for the Redis connection helpers.
"""

from unittest.mock import AsyncMock, patch

import pytest

from pleeno.core import redis as redis_module
from pleeno.core.rate_limit import check_rate_limit


@pytest.fixture(autouse=True)
def no_client():
    with patch.object(redis_module, "redis_client", None):
        yield


class TestInitRedis:
    @pytest.mark.asyncio
    async def test_client_published_after_ping(self, mock_redis):
        with patch("pleeno.core.redis.from_url", return_value=mock_redis) as mock_from_url:
            client = await redis_module.init_redis()

        assert client is mock_redis
        assert redis_module.redis_client is mock_redis
        kwargs = mock_from_url.call_args.kwargs
        assert kwargs["socket_connect_timeout"] == kwargs["socket_timeout"]
        assert kwargs["decode_responses"] is True

    @pytest.mark.asyncio
    async def test_failed_ping_closes_and_keeps_none(self, mock_redis):
        mock_redis.ping = AsyncMock(side_effect=ConnectionError("refused"))
        with patch("pleeno.core.redis.from_url", return_value=mock_redis):
            with pytest.raises(ConnectionError):
                await redis_module.init_redis()

        mock_redis.aclose.assert_awaited_once()
        assert redis_module.redis_client is None


class TestRedisStatus:
    @pytest.mark.asyncio
    async def test_not_connected(self):
        assert await redis_module.redis_status() == "not connected"

    @pytest.mark.asyncio
    async def test_ok(self, mock_redis):
        with patch.object(redis_module, "redis_client", mock_redis):
            assert await redis_module.redis_status() == "ok"

    @pytest.mark.asyncio
    async def test_ping_error_reported(self, mock_redis):
        mock_redis.ping = AsyncMock(side_effect=TimeoutError("timed out"))
        with patch.object(redis_module, "redis_client", mock_redis):
            assert await redis_module.redis_status() == "error: timed out"


class TestKeys:
    def test_prefixed(self):
        with patch.object(redis_module.settings, "redis_key_prefix", "staging:"):
            assert redis_module.redis_key("ratelimit", "login:1.2.3.4") == (
                "staging:ratelimit:login:1.2.3.4"
            )

    @pytest.mark.asyncio
    async def test_rate_limit_uses_namespaced_key(self, mock_redis):
        mock_redis.pipeline.return_value.execute.return_value = [0, 0, 1, True]
        with patch.object(redis_module, "redis_client", mock_redis):
            await check_rate_limit("export:u1", 5, 60)

        pipe = mock_redis.pipeline.return_value
        assert pipe.zcard.call_args.args[0] == redis_module.redis_key("ratelimit", "export:u1")


class TestCloseRedis:
    @pytest.mark.asyncio
    async def test_closes_and_clears(self, mock_redis):
        with patch.object(redis_module, "redis_client", mock_redis):
            await redis_module.close_redis()
            assert redis_module.redis_client is None

        mock_redis.aclose.assert_awaited_once()
