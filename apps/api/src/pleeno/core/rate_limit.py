"""
Rate Limiting

Sliding-window rate limits backed by the shared Redis connection, with an
in-process fallback when Redis is not connected.

Limited actions:
- Login attempts, per client IP
- Report and payment-history exports, per user
"""

import logging
import time

from fastapi import HTTPException, Request, status

from pleeno.core import redis as redis_module

logger = logging.getLogger(__name__)

# Per-key list of request timestamps, used only without Redis
_memory_store: dict[str, list[float]] = {}

LOGIN_RATE_LIMIT = (10, 60)
EXPORT_RATE_LIMIT = (20, 60)


class RateLimitExceeded(HTTPException):
    """Raised when a rate limit is exceeded (HTTP 429)."""

    def __init__(self, limit: int, window_seconds: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "RATE_LIMIT_EXCEEDED",
                "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                "retry_after_seconds": window_seconds,
            },
            headers={"Retry-After": str(window_seconds)},
        )


async def _check_rate_limit_redis(client, key: str, limit: int, window_seconds: int) -> bool:
    """Sliding window on a Redis sorted set of request timestamps."""
    now = time.time()

    pipe = client.pipeline()
    pipe.zremrangebyscore(key, 0, now - window_seconds)
    pipe.zcard(key)
    pipe.zadd(key, {str(now): now})
    pipe.expire(key, window_seconds)
    results = await pipe.execute()

    return results[1] < limit


def _check_rate_limit_memory(key: str, limit: int, window_seconds: int) -> bool:
    """Same window kept in process memory. Not shared between workers."""
    now = time.time()
    window_start = now - window_seconds

    timestamps = [ts for ts in _memory_store.get(key, []) if ts > window_start]
    if len(timestamps) >= limit:
        _memory_store[key] = timestamps
        return False

    timestamps.append(now)
    _memory_store[key] = timestamps
    return True


async def check_rate_limit(key: str, limit: int, window_seconds: int) -> bool:
    """
    Check whether a request is within its rate limit.

    Args:
        key: Unique key for the limited action (e.g. "login:203.0.113.5")
        limit: Maximum requests allowed in the window
        window_seconds: Window length in seconds

    Returns:
        True if the request is allowed, False if the limit is exceeded
    """
    client = redis_module.redis_client
    if client is not None:
        try:
            return await _check_rate_limit_redis(
                client, redis_module.redis_key("ratelimit", key), limit, window_seconds
            )
        except Exception as e:
            logger.warning(f"Redis rate limit check failed, using memory: {e}")

    return _check_rate_limit_memory(key, limit, window_seconds)


async def enforce_rate_limit(key: str, limit: int, window_seconds: int) -> None:
    """Raise RateLimitExceeded when ``key`` is over its limit."""
    if not await check_rate_limit(key, limit, window_seconds):
        logger.warning(f"Rate limit exceeded for {key}: {limit}/{window_seconds}s")
        raise RateLimitExceeded(limit, window_seconds)


def client_ip(request: Request) -> str:
    """Best-effort client address, honouring X-Forwarded-For."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


__all__ = [
    "EXPORT_RATE_LIMIT",
    "LOGIN_RATE_LIMIT",
    "RateLimitExceeded",
    "check_rate_limit",
    "client_ip",
    "enforce_rate_limit",
]
