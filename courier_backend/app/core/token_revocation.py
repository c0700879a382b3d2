"""
Token Revocation System using Redis.

A revoked token resolves to "unauthenticated" at the identity boundary even
before it expires.
"""

import logging

from redis.exceptions import RedisError

from courier_backend.app.core.config import settings

logger = logging.getLogger(__name__)

# Redis key prefix for blacklisted tokens
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"


async def revoke_token(redis_client, token: str, actor_id: int) -> bool:
    """
    Revoke a specific JWT token by adding it to the blacklist.

    Args:
        redis_client: Redis connection
        token: The JWT token string to revoke
        actor_id: Actor who owns the token

    Returns:
        True if successfully revoked, False otherwise
    """
    try:
        # Tokens expire on their own; the blacklist entry only has to outlive them
        ttl_seconds = settings.access_token_expire_minutes * 60
        key = f"{TOKEN_BLACKLIST_PREFIX}{token}"
        await redis_client.set(key, str(actor_id), ex=ttl_seconds)
        return True
    except RedisError:
        logger.exception("Could not revoke token for actor %s", actor_id)
        return False


async def is_token_revoked(redis_client, token: str) -> bool:
    """
    Check if a token has been revoked.

    Fails open when Redis is unreachable (availability over strictness).
    """
    try:
        key = f"{TOKEN_BLACKLIST_PREFIX}{token}"
        exists = await redis_client.exists(key)
        return exists > 0
    except RedisError:
        logger.warning("Redis unavailable while checking token revocation")
        return False
