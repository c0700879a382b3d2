"""
Courier Admin API Endpoints.

Driver management within the admin's own courier company.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Path
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from courier_backend.app.db.session import get_db
from courier_backend.app.core.guards import require_role
from courier_backend.app.models.actor import Actor
from courier_backend.app.models.enums import ActorRole
from courier_backend.app.schemas.admin import (
    ActorListItem, ActorListResponse, StatusToggleRequest, AdminActionResponse
)
from courier_backend.app.services.audit import log_event, AuditAction

router = APIRouter(prefix="/courier-admin", tags=["Courier Admin"])


def _company_of(admin: Actor) -> int:
    if admin.courier_company_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Courier admin is not affiliated with a company"
        )
    return admin.courier_company_id


@router.get("/drivers", response_model=ActorListResponse)
async def list_drivers(
    admin: Actor = Depends(require_role([ActorRole.COURIER_ADMIN], active_only=True)),
    db: AsyncSession = Depends(get_db)
):
    """List the drivers of the admin's company."""
    company_id = _company_of(admin)

    conditions = (Actor.role == ActorRole.DRIVER, Actor.courier_company_id == company_id)
    total = (await db.execute(select(func.count(Actor.id)).where(*conditions))).scalar() or 0

    result = await db.execute(select(Actor).where(*conditions).order_by(Actor.full_name, Actor.id))
    drivers = result.scalars().all()

    return ActorListResponse(
        actors=[ActorListItem.model_validate(d) for d in drivers],
        total=total
    )


@router.patch("/drivers/{driver_id}/status", response_model=AdminActionResponse)
async def set_driver_status(
    request: StatusToggleRequest,
    driver_id: int = Path(..., description="Driver ID"),
    admin: Actor = Depends(require_role([ActorRole.COURIER_ADMIN], active_only=True)),
    db: AsyncSession = Depends(get_db)
):
    """
    Activate or deactivate one of the company's drivers.

    Inactive drivers keep read access to their packages but can no longer
    change them.
    """
    company_id = _company_of(admin)

    result = await db.execute(select(Actor).where(Actor.id == driver_id))
    driver = result.scalar_one_or_none()

    if not driver or driver.role != ActorRole.DRIVER:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Driver not found"
        )

    if driver.courier_company_id != company_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Driver belongs to another company"
        )

    driver.is_active = request.is_active
    await db.commit()

    action = AuditAction.ACTOR_ACTIVATED if request.is_active else AuditAction.ACTOR_DEACTIVATED
    await log_event(
        db=db,
        action=action,
        actor_id=admin.id,
        actor_email=admin.email,
        target_type="actor",
        target_id=driver_id,
        metadata={"reason": request.reason, "courier_company_id": company_id}
    )

    return AdminActionResponse(
        success=True,
        message=f"Driver {'activated' if request.is_active else 'deactivated'}",
        target_id=driver_id,
        action=action
    )
