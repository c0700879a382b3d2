"""
Redis client initialization and connection management.

Redis backs the session token blacklist.
"""

import redis.asyncio as redis
from courier_backend.app.core.config import settings


redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def get_redis():
    """
    Get Redis client instance.

    Used as a FastAPI dependency so tests can swap in a fake.
    """
    return redis_client


async def ping_redis() -> bool:
    """
    Test Redis connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        return await redis_client.ping()
    except redis.RedisError:
        return False


async def close_redis() -> None:
    """Close the shared client on application shutdown."""
    await redis_client.aclose()
