"""
Authentication dependencies for FastAPI.

This is the identity boundary: a request either resolves to an Actor or is
rejected as unauthenticated. The actor id in the token is trusted as-is.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from courier_backend.app.core.jwt import decode_access_token
from courier_backend.app.core.redis_client import get_redis
from courier_backend.app.core.token_revocation import is_token_revoked
from courier_backend.app.db.session import get_db
from courier_backend.app.models.actor import Actor

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)


def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def resolve_actor(token: str, db: AsyncSession, redis_client) -> Actor:
    """
    Resolve a bearer token to an Actor.

    Checks:
    1. Token signature and expiry
    2. Token not revoked
    3. Actor still exists

    Inactive actors are still returned; access control decides what they may do.

    Raises:
        HTTPException: 401 if the token does not resolve to an actor
    """
    payload = decode_access_token(token)
    if payload is None:
        raise _unauthenticated("Could not validate credentials")

    actor_id = payload.get("actor_id")
    if not actor_id:
        raise _unauthenticated("Invalid token payload")

    if await is_token_revoked(redis_client, token):
        raise _unauthenticated("Token has been revoked")

    result = await db.execute(select(Actor).where(Actor.id == actor_id))
    actor = result.scalar_one_or_none()

    if not actor:
        raise _unauthenticated("Actor not found")

    return actor


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
    redis_client=Depends(get_redis),
) -> Actor:
    """FastAPI dependency returning the authenticated Actor."""
    if credentials is None:
        raise _unauthenticated("Not authenticated")

    return await resolve_actor(credentials.credentials, db, redis_client)


async def get_bearer_token(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """Raw bearer token of the current request (for logout)."""
    if credentials is None:
        raise _unauthenticated("Not authenticated")
    return credentials.credentials
