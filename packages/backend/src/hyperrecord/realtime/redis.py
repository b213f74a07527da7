"""Redis connection pool shared by the subscription store and transports."""

from typing import Optional

import redis.asyncio as aioredis

from hyperrecord.config import settings

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


async def init_redis(url: Optional[str] = None) -> aioredis.Redis:
    """Initialize the Redis connection pool and verify it answers."""
    global _redis
    _redis = aioredis.from_url(
        url or settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    await _redis.ping()
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis
