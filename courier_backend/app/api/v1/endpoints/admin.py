"""
Super Admin API Endpoints.

Platform-wide management of courier companies and actors, with audit logging.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query, Path
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import Optional

from courier_backend.app.db.session import get_db
from courier_backend.app.core.guards import require_role
from courier_backend.app.models.actor import Actor
from courier_backend.app.models.courier_company import CourierCompany
from courier_backend.app.models.enums import ActorRole
from courier_backend.app.models.package import Package
from courier_backend.app.schemas.admin import (
    ActorListItem, ActorListResponse, StatusToggleRequest, AdminActionResponse,
    CompanyCreate, CompanyResponse, CompanyListResponse, AuditLogResponse, AuditLogListResponse,
    RoleChangeRequest
)
from courier_backend.app.services.audit import log_event, get_audit_trail, AuditAction
from courier_backend.app.services.route_sequencer import OPEN_STATUSES

router = APIRouter(prefix="/admin", tags=["Super Admin"])

require_super_admin = require_role([ActorRole.SUPER_ADMIN], active_only=True)

COMPANY_ROLES = (ActorRole.DRIVER, ActorRole.COURIER_ADMIN)


@router.get("/companies", response_model=CompanyListResponse)
async def list_companies(
    admin: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db)
):
    """List all courier companies."""
    total = (await db.execute(select(func.count(CourierCompany.id)))).scalar() or 0
    result = await db.execute(select(CourierCompany).order_by(CourierCompany.name))
    companies = result.scalars().all()

    return CompanyListResponse(
        companies=[CompanyResponse.model_validate(c) for c in companies],
        total=total
    )


@router.post("/companies", response_model=CompanyResponse, status_code=status.HTTP_201_CREATED)
async def create_company(
    company_data: CompanyCreate,
    admin: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db)
):
    """Register a new courier company."""
    existing = await db.execute(select(CourierCompany).where(CourierCompany.name == company_data.name))
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Company '{company_data.name}' already exists"
        )

    company = CourierCompany(
        name=company_data.name,
        email=company_data.email,
        phone=company_data.phone,
        address=company_data.address,
        is_active=True
    )
    db.add(company)
    await db.commit()
    await db.refresh(company)

    await log_event(
        db=db,
        action=AuditAction.COMPANY_CREATED,
        actor_id=admin.id,
        actor_email=admin.email,
        target_type="company",
        target_id=company.id,
        metadata={"name": company.name}
    )

    return CompanyResponse.model_validate(company)


@router.patch("/companies/{company_id}/status", response_model=AdminActionResponse)
async def set_company_status(
    request: StatusToggleRequest,
    company_id: int = Path(..., description="Company ID"),
    admin: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db)
):
    """Activate or deactivate a courier company."""
    result = await db.execute(select(CourierCompany).where(CourierCompany.id == company_id))
    company = result.scalar_one_or_none()

    if not company:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Company not found"
        )

    company.is_active = request.is_active
    await db.commit()

    action = AuditAction.COMPANY_ACTIVATED if request.is_active else AuditAction.COMPANY_DEACTIVATED
    await log_event(
        db=db,
        action=action,
        actor_id=admin.id,
        actor_email=admin.email,
        target_type="company",
        target_id=company_id,
        metadata={"reason": request.reason}
    )

    return AdminActionResponse(
        success=True,
        message=f"Company {'activated' if request.is_active else 'deactivated'}",
        target_id=company_id,
        action=action
    )


@router.get("/actors", response_model=ActorListResponse)
async def list_actors(
    role: Optional[ActorRole] = Query(None, description="Filter by role"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    admin: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db)
):
    """List platform actors, newest first."""
    query = select(Actor)
    count_query = select(func.count(Actor.id))
    if role is not None:
        query = query.where(Actor.role == role)
        count_query = count_query.where(Actor.role == role)

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(query.order_by(Actor.id.desc()).offset(skip).limit(limit))
    actors = result.scalars().all()

    return ActorListResponse(
        actors=[ActorListItem.model_validate(a) for a in actors],
        total=total
    )


@router.patch("/actors/{actor_id}/status", response_model=AdminActionResponse)
async def set_actor_status(
    request: StatusToggleRequest,
    actor_id: int = Path(..., description="Actor ID"),
    admin: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db)
):
    """Activate or deactivate any actor except yourself."""
    if actor_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot change your own status"
        )

    result = await db.execute(select(Actor).where(Actor.id == actor_id))
    target = result.scalar_one_or_none()

    if not target:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Actor not found"
        )

    target.is_active = request.is_active
    await db.commit()

    action = AuditAction.ACTOR_ACTIVATED if request.is_active else AuditAction.ACTOR_DEACTIVATED
    await log_event(
        db=db,
        action=action,
        actor_id=admin.id,
        actor_email=admin.email,
        target_type="actor",
        target_id=actor_id,
        metadata={"reason": request.reason}
    )

    return AdminActionResponse(
        success=True,
        message=f"Actor {'activated' if request.is_active else 'deactivated'}",
        target_id=actor_id,
        action=action
    )


@router.patch("/actors/{actor_id}/role", response_model=AdminActionResponse)
async def set_actor_role(
    request: RoleChangeRequest,
    actor_id: int = Path(..., description="Actor ID"),
    admin: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Change an actor's role, keeping company affiliation consistent.

    A driver with open packages keeps the driver role until those packages
    are closed or reassigned.
    """
    if actor_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot change your own role"
        )

    result = await db.execute(select(Actor).where(Actor.id == actor_id))
    target = result.scalar_one_or_none()

    if not target:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Actor not found"
        )

    previous_role = target.role
    company_id = None
    if request.role in COMPANY_ROLES:
        company_id = request.courier_company_id or target.courier_company_id
        if company_id is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Role '{request.role.value}' requires a courier company"
            )
        company = await db.get(CourierCompany, company_id)
        if not company:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Company not found"
            )

    leaves_route = request.role != ActorRole.DRIVER or company_id != target.courier_company_id
    if previous_role == ActorRole.DRIVER and leaves_route:
        open_packages = (await db.execute(
            select(func.count(Package.id)).where(
                Package.driver_id == target.id,
                Package.status.in_(list(OPEN_STATUSES)),
            )
        )).scalar() or 0
        if open_packages:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Driver still has {open_packages} open package(s)"
            )

    target.role = request.role
    target.courier_company_id = company_id
    await db.commit()

    await log_event(
        db=db,
        action=AuditAction.ACTOR_ROLE_CHANGED,
        actor_id=admin.id,
        actor_email=admin.email,
        target_type="actor",
        target_id=actor_id,
        metadata={
            "from": previous_role.value if previous_role else None,
            "to": request.role.value,
            "courier_company_id": company_id,
            "reason": request.reason,
        }
    )

    return AdminActionResponse(
        success=True,
        message=f"Role changed to {request.role.value}",
        target_id=actor_id,
        action=AuditAction.ACTOR_ROLE_CHANGED
    )


@router.get("/audit", response_model=AuditLogListResponse)
async def list_audit_entries(
    target_type: Optional[str] = Query(None, description="package, actor or company"),
    target_id: Optional[int] = Query(None),
    action: Optional[str] = Query(None, description="Audit action, e.g. PACKAGE_CANCELLED"),
    limit: int = Query(100, ge=1, le=500),
    admin: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db)
):
    """Audit trail, most recent first."""
    entries = await get_audit_trail(
        db, target_type=target_type, target_id=target_id, action=action, limit=limit
    )
    return AuditLogListResponse(entries=[AuditLogResponse.model_validate(e) for e in entries])
