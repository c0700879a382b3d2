"""
Authentication API endpoints.

Identity is issued elsewhere; this service resolves bearer tokens to actors
and can revoke the presented token.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from courier_backend.app.db.session import get_db
from courier_backend.app.models.actor import Actor
from courier_backend.app.schemas.auth import ActorResponse, LogoutResponse
from courier_backend.app.core.dependencies import get_current_actor, get_bearer_token
from courier_backend.app.core.redis_client import get_redis
from courier_backend.app.core.token_revocation import revoke_token
from courier_backend.app.services.audit import log_event, AuditAction

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.get("/me", response_model=ActorResponse)
async def get_me(current_actor: Actor = Depends(get_current_actor)):
    """
    Get the current authenticated actor.

    Requires valid JWT token in Authorization header.
    """
    return ActorResponse.model_validate(current_actor)


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    token: str = Depends(get_bearer_token),
    current_actor: Actor = Depends(get_current_actor),
    redis_client=Depends(get_redis),
    db: AsyncSession = Depends(get_db)
):
    """
    Revoke the presented token.

    Any later request with the same token is rejected with 401.
    """
    revoked = await revoke_token(redis_client, token, current_actor.id)
    if not revoked:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not revoke token, try again later"
        )

    await log_event(
        db=db,
        action=AuditAction.TOKEN_REVOKED,
        actor_id=current_actor.id,
        actor_email=current_actor.email,
        target_type="actor",
        target_id=current_actor.id
    )

    return LogoutResponse(message="Successfully logged out")
