"""
Redis Connection

One async client per process, used for the shared rate limit windows.

Redis is optional outside production: when it is down at startup
``redis_client`` stays None and rate limits are kept in process memory.
Every key written by the API goes through ``redis_key`` so several
deployments can share one Redis database.
"""

import logging

from redis.asyncio import Redis, from_url

from pleeno.core.config import settings

logger = logging.getLogger(__name__)

# Re-check idle connections before reuse after this many seconds
HEALTH_CHECK_INTERVAL = 30

redis_client: Redis | None = None


def redis_key(*parts: str) -> str:
    """Namespaced key, e.g. ``redis_key("ratelimit", "login:1.2.3.4")``."""
    return settings.redis_key_prefix + ":".join(parts)


def _connect() -> Redis:
    return from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=settings.redis_timeout_seconds,
        socket_timeout=settings.redis_timeout_seconds,
        health_check_interval=HEALTH_CHECK_INTERVAL,
    )


async def init_redis() -> Redis:
    """
    Connect and ping on startup.

    The client is only published once the ping succeeds; a failed
    connection is closed before the error propagates.
    """
    global redis_client

    client = _connect()
    try:
        await client.ping()
    except Exception:
        await client.aclose()
        raise

    redis_client = client
    logger.info("Redis connected")
    return redis_client


async def redis_status() -> str:
    """``ok``, ``not connected`` or ``error: <reason>`` for the readiness check."""
    if redis_client is None:
        return "not connected"
    try:
        await redis_client.ping()
        return "ok"
    except Exception as e:
        logger.warning(f"Redis ping failed: {e}")
        return f"error: {e}"


async def close_redis() -> None:
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
