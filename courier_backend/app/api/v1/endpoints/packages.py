"""
Package API Endpoints.

Creation, status transitions, cancellation, driver assignment and reads of
packages. Who may do what is decided by the access control layer; these
handlers only translate HTTP to service calls and write the audit trail.
"""

from fastapi import APIRouter, Depends, status, Query, Path
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from courier_backend.app.db.session import get_db
from courier_backend.app.core.dependencies import get_current_actor
from courier_backend.app.core.exceptions import PaymentFailedError
from courier_backend.app.models.actor import Actor
from courier_backend.app.models.package_enums import PackageStatus, PackageType, PaymentStatus
from courier_backend.app.schemas.package import (
    PackageCreate, PackageResponse, PackageListResponse, TransitionRequest,
    AssignDriverRequest, TrackingEventResponse, PackageHistoryResponse
)
from courier_backend.app.schemas.payment import PaymentCaptureResponse
from courier_backend.app.services import package_queries
from courier_backend.app.services.audit import log_event, AuditAction
from courier_backend.app.services.notification_hub import NotificationHub, get_notification_hub
from courier_backend.app.services.package_queries import PackageFilters
from courier_backend.app.services.package_state_machine import PackageStateMachine
from courier_backend.app.services.payment_gateway import PaymentGateway, get_payment_gateway
from courier_backend.app.services.payment_service import PaymentService

router = APIRouter(prefix="/packages", tags=["Packages"])


@router.post("", response_model=PackageResponse, status_code=status.HTTP_201_CREATED)
async def create_package(
    package_data: PackageCreate,
    current_actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    hub: NotificationHub = Depends(get_notification_hub),
):
    """
    Submit a new shipment (active customers only).

    The delivery fee is computed from weight and type, and the payment is
    authorized before anything is stored.
    """
    package = await PackageStateMachine.create(
        db, current_actor, package_data.details(), gateway,
        hub=hub, payment_method=package_data.payment_method,
    )

    await log_event(
        db=db,
        action=AuditAction.PACKAGE_CREATED,
        actor_id=current_actor.id,
        actor_email=current_actor.email,
        target_type="package",
        target_id=package.id,
        metadata={
            "tracking_code": package.tracking_code,
            "package_type": package.package_type.value,
            "weight_kg": package.weight_kg,
            "delivery_fee": package.delivery_fee,
        }
    )

    return PackageResponse.model_validate(package)


@router.get("", response_model=PackageListResponse)
async def list_packages(
    status_filter: Optional[PackageStatus] = Query(None, alias="status"),
    package_type: Optional[PackageType] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None),
    unassigned: Optional[bool] = Query(None, description="Only packages without a driver"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    current_actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    List the packages visible to the caller, newest first.

    Customers see what they sent, drivers what is assigned to them, courier
    admins their company's packages, super admins everything.
    """
    filters = PackageFilters(
        status=status_filter,
        package_type=package_type,
        payment_status=payment_status,
        unassigned=unassigned,
        skip=skip,
        limit=limit,
    )
    packages, total = await package_queries.list_packages(db, current_actor, filters)

    return PackageListResponse(
        packages=[PackageResponse.model_validate(p) for p in packages],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/track/{tracking_code}", response_model=PackageHistoryResponse)
async def track_package(
    tracking_code: str = Path(..., description="Tracking code (any case)"),
    current_actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Look up a package and its tracking history by tracking code."""
    package, history = await package_queries.get_by_tracking_code(db, tracking_code, current_actor)
    return PackageHistoryResponse(
        package=PackageResponse.model_validate(package),
        history=[TrackingEventResponse.model_validate(e) for e in history],
    )


@router.get("/{package_id}", response_model=PackageResponse)
async def get_package(
    package_id: int = Path(..., description="Package ID"),
    current_actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    package = await package_queries.get_package(db, package_id, current_actor)
    return PackageResponse.model_validate(package)


@router.get("/{package_id}/history", response_model=PackageHistoryResponse)
async def get_package_history(
    package_id: int = Path(..., description="Package ID"),
    current_actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Tracking events of a package, oldest first."""
    history = await package_queries.get_history(db, package_id, current_actor)
    package = await package_queries.get_package(db, package_id, current_actor)
    return PackageHistoryResponse(
        package=PackageResponse.model_validate(package),
        history=[TrackingEventResponse.model_validate(e) for e in history],
    )


@router.post("/{package_id}/status", response_model=PackageResponse)
async def update_package_status(
    request: TransitionRequest,
    package_id: int = Path(..., description="Package ID"),
    current_actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    hub: NotificationHub = Depends(get_notification_hub),
):
    """
    Move a package along its lifecycle.

    pending -> picked_up | cancelled, picked_up -> in_transit,
    in_transit -> delivered. Anything else is rejected with 409.
    """
    package = await PackageStateMachine.transition(
        db, package_id, current_actor, request.status,
        location=request.location, notes=request.notes, hub=hub,
    )

    action = (
        AuditAction.PACKAGE_CANCELLED if package.status == PackageStatus.CANCELLED
        else AuditAction.PACKAGE_STATUS_CHANGED
    )
    await log_event(
        db=db,
        action=action,
        actor_id=current_actor.id,
        actor_email=current_actor.email,
        target_type="package",
        target_id=package.id,
        metadata={
            "status": package.status.value,
            "location": request.location,
        }
    )

    return PackageResponse.model_validate(package)


@router.post("/{package_id}/cancel", response_model=PackageResponse)
async def cancel_package(
    package_id: int = Path(..., description="Package ID"),
    current_actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    hub: NotificationHub = Depends(get_notification_hub),
):
    """Cancel a pending package. Senders may cancel their own."""
    package = await PackageStateMachine.transition(
        db, package_id, current_actor, PackageStatus.CANCELLED,
        notes="Cancelled", hub=hub,
    )

    await log_event(
        db=db,
        action=AuditAction.PACKAGE_CANCELLED,
        actor_id=current_actor.id,
        actor_email=current_actor.email,
        target_type="package",
        target_id=package.id,
        metadata={"tracking_code": package.tracking_code}
    )

    return PackageResponse.model_validate(package)


@router.post("/{package_id}/assign", response_model=PackageResponse)
async def assign_driver(
    request: AssignDriverRequest,
    package_id: int = Path(..., description="Package ID"),
    current_actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    hub: NotificationHub = Depends(get_notification_hub),
):
    """Assign a driver to a pending, unassigned package (courier and super admins)."""
    package = await PackageStateMachine.assign_driver(
        db, package_id, current_actor, request.driver_id, hub=hub,
    )

    await log_event(
        db=db,
        action=AuditAction.DRIVER_ASSIGNED,
        actor_id=current_actor.id,
        actor_email=current_actor.email,
        target_type="package",
        target_id=package.id,
        metadata={
            "driver_id": package.driver_id,
            "courier_company_id": package.courier_company_id,
        }
    )

    return PackageResponse.model_validate(package)


@router.post("/{package_id}/payment", response_model=PaymentCaptureResponse)
async def pay_for_package(
    package_id: int = Path(..., description="Package ID"),
    current_actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Capture the payment authorized at creation (sender only).

    A decline marks the payment failed and answers 402.
    """
    package, captured = await PaymentService.capture(db, package_id, current_actor, gateway)

    await log_event(
        db=db,
        action=AuditAction.PAYMENT_CAPTURED if captured else AuditAction.PAYMENT_FAILED,
        actor_id=current_actor.id,
        actor_email=current_actor.email,
        target_type="package",
        target_id=package.id,
        metadata={
            "payment_reference": package.payment_reference,
            "amount": package.delivery_fee,
        }
    )

    if not captured:
        raise PaymentFailedError(
            "Payment capture declined",
            details={"package_id": package.id, "payment_status": package.payment_status.value}
        )

    return PaymentCaptureResponse(captured=True, package=PackageResponse.model_validate(package))
