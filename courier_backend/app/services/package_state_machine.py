"""
Package State Machine.

    pending ──► picked_up ──► in_transit ──► delivered
       │
       └──────► cancelled

delivered and cancelled are terminal. Every accepted transition appends
exactly one tracking event and updates the package's status in the same
transaction. The status update is a compare-and-swap on the status we read,
so of two racing transitions from the same status only one can commit; the
loser gets InvalidTransitionError.

Notifications are published to the hub only after the transaction commits.
"""

import logging
import math
import secrets
import string
from datetime import datetime
from typing import Any, Dict, FrozenSet, Mapping, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.core.config import settings
from courier_backend.app.core.exceptions import (
    AlreadyAssignedError,
    InsufficientPermissionsError,
    InvalidTransitionError,
    PackageValidationError,
    ResourceNotFoundError,
    StoreUnavailableError,
)
from courier_backend.app.core.guards import AccessMode, PackageAction, access_guard, can_create_package
from courier_backend.app.core.timeutils import utcnow
from courier_backend.app.models.actor import Actor
from courier_backend.app.models.enums import ActorRole
from courier_backend.app.models.package import Package
from courier_backend.app.models.package_enums import (
    PackageStatus,
    PackageType,
    PaymentRecordStatus,
    PaymentStatus,
)
from courier_backend.app.models.payment import Payment
from courier_backend.app.services.fee_calculator import compute_fee
from courier_backend.app.services.notification_hub import NotificationHub, PackageChange
from courier_backend.app.services.payment_gateway import PaymentGateway
from courier_backend.app.services.tracking_ledger import TrackingLedger

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[PackageStatus, FrozenSet[PackageStatus]] = {
    PackageStatus.PENDING: frozenset({PackageStatus.PICKED_UP, PackageStatus.CANCELLED}),
    PackageStatus.PICKED_UP: frozenset({PackageStatus.IN_TRANSIT}),
    PackageStatus.IN_TRANSIT: frozenset({PackageStatus.DELIVERED}),
    PackageStatus.DELIVERED: frozenset(),
    PackageStatus.CANCELLED: frozenset(),
}

REQUIRED_TEXT_FIELDS = ("recipient_name", "recipient_phone", "recipient_address", "pickup_address")

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def can_transition(current: PackageStatus, requested: PackageStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS[current]


def is_valid_walk(statuses) -> bool:
    """True if `statuses` starts at pending and every step is an allowed transition."""
    statuses = list(statuses)
    if not statuses or statuses[0] != PackageStatus.PENDING:
        return False
    return all(can_transition(a, b) for a, b in zip(statuses, statuses[1:]))


def generate_tracking_code(now: Optional[datetime] = None) -> str:
    """Prefix + millisecond timestamp + random suffix, upper-cased."""
    millis = int((now or utcnow()).timestamp() * 1000)
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(settings.tracking_code_suffix_length))
    return f"{settings.tracking_code_prefix}{millis}{suffix}".upper()


def normalize_tracking_code(code: str) -> str:
    return code.strip().upper()


def _number(details: Mapping[str, Any], field: str, default: Optional[float] = None) -> float:
    value = details.get(field)
    if value is None:
        if default is None:
            raise PackageValidationError(field, f"{field} is required")
        return default
    if isinstance(value, bool):
        raise PackageValidationError(field, f"{field} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise PackageValidationError(field, f"{field} must be a number")
    if not math.isfinite(number):
        raise PackageValidationError(field, f"{field} must be a finite number")
    return number


def validate_package_details(details: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Check the shipment details and return them normalized.

    Raises:
        PackageValidationError naming the first field that fails
    """
    cleaned: Dict[str, Any] = {}

    for field in REQUIRED_TEXT_FIELDS:
        value = details.get(field)
        if value is None or not str(value).strip():
            raise PackageValidationError(field, f"{field} is required")
        cleaned[field] = str(value).strip()

    raw_type = details.get("package_type")
    if raw_type is None or not str(raw_type).strip():
        raise PackageValidationError("package_type", "package_type is required")
    try:
        cleaned["package_type"] = PackageType(str(getattr(raw_type, "value", raw_type)).strip().lower())
    except ValueError:
        raise PackageValidationError(
            "package_type",
            f"Unrecognized package type '{raw_type}'. Expected one of: {', '.join(t.value for t in PackageType)}"
        )

    weight = _number(details, "weight_kg")
    if weight <= 0:
        raise PackageValidationError("weight_kg", "weight_kg must be greater than 0")
    cleaned["weight_kg"] = weight

    declared_value = _number(details, "declared_value", default=0.0)
    if declared_value < 0:
        raise PackageValidationError("declared_value", "declared_value must not be negative")
    cleaned["declared_value"] = declared_value

    description = details.get("description")
    cleaned["description"] = str(description).strip() if description else None

    return cleaned


def _coerce_status(value: Any) -> PackageStatus:
    try:
        return PackageStatus(getattr(value, "value", value))
    except ValueError:
        raise PackageValidationError(
            "status",
            f"Unknown status '{value}'. Expected one of: {', '.join(s.value for s in PackageStatus)}"
        )


async def load_package(db: AsyncSession, package_id: int) -> Package:
    result = await db.execute(select(Package).where(Package.id == package_id))
    package = result.scalar_one_or_none()
    if not package:
        raise ResourceNotFoundError("Package", package_id)
    return package


class PackageStateMachine:

    @staticmethod
    async def create(
        db: AsyncSession,
        sender: Actor,
        details: Mapping[str, Any],
        gateway: PaymentGateway,
        hub: Optional[NotificationHub] = None,
        payment_method: str = "card",
    ) -> Package:
        """
        Create a package for `sender`.

        Flow:
        1. Validate details
        2. Compute the delivery fee
        3. Authorize payment with the external service (nothing is stored on failure)
        4. Insert the package (pending / payment pending), its payment record
           and the implicit pending tracking event in one transaction,
           regenerating the tracking code on collision

        Raises:
            InsufficientPermissionsError: sender is not an active customer
            PackageValidationError: details are invalid
            PaymentFailedError: payment was not authorized
            StoreUnavailableError: the store failed or no free tracking code was found
        """
        if not can_create_package(sender):
            raise InsufficientPermissionsError("Only active customers can send packages")

        sender_id = sender.id
        data = validate_package_details(details)
        fee = compute_fee(data["weight_kg"], data["package_type"])

        authorization = await gateway.authorize(fee, payment_method)

        for attempt in range(1, settings.tracking_code_max_attempts + 1):
            now = utcnow()
            code = generate_tracking_code(now)

            try:
                taken = await db.execute(select(Package.id).where(Package.tracking_code == code))
                if taken.scalar_one_or_none() is not None:
                    logger.info("Tracking code %s already taken (attempt %d)", code, attempt)
                    continue

                package = Package(
                    tracking_code=code,
                    sender_id=sender_id,
                    delivery_fee=fee,
                    status=PackageStatus.PENDING,
                    payment_status=PaymentStatus.PENDING,
                    payment_reference=authorization.payment_id,
                    created_at=now,
                    updated_at=now,
                    **data,
                )
                db.add(package)
                await db.flush()

                db.add(Payment(
                    payment_reference=authorization.payment_id,
                    actor_id=sender_id,
                    package_id=package.id,
                    amount=fee,
                    method=payment_method,
                    status=PaymentRecordStatus.AUTHORIZED,
                ))
                event = await TrackingLedger.append(
                    db, package.id, PackageStatus.PENDING,
                    location=data["pickup_address"],
                    notes="Package created",
                    created_at=now,
                )
                await db.commit()
            except IntegrityError:
                await db.rollback()
                logger.warning("Tracking code %s collided on insert (attempt %d)", code, attempt)
                continue
            except DBAPIError as exc:
                await db.rollback()
                logger.error("Store failure while creating package: %s", exc)
                raise StoreUnavailableError() from exc
            break
        else:
            logger.error(
                "No free tracking code after %d attempts; payment %s stays authorized",
                settings.tracking_code_max_attempts, authorization.payment_id
            )
            raise StoreUnavailableError("Could not allocate a unique tracking code")

        # Publish before any further await so changes reach the hub in commit order.
        if hub is not None:
            hub.publish(PackageChange.status_changed(package, event))

        await db.refresh(package)
        logger.info("Created package %s (%s) for sender %s, fee %.4f", package.id, code, sender_id, fee)

        return package

    @staticmethod
    async def transition(
        db: AsyncSession,
        package_id: int,
        actor: Actor,
        requested_status: Any,
        location: Optional[str] = None,
        notes: Optional[str] = None,
        hub: Optional[NotificationHub] = None,
    ) -> Package:
        """
        Move a package to `requested_status`.

        Raises:
            ResourceNotFoundError: unknown package
            InsufficientPermissionsError: access control denied the actor
            InvalidTransitionError: not allowed from the current status, or
                the status moved underneath us
            StoreUnavailableError: the store failed; nothing was written
        """
        requested = _coerce_status(requested_status)
        package = await load_package(db, package_id)

        action = PackageAction.CANCEL if requested == PackageStatus.CANCELLED else PackageAction.UPDATE_STATUS
        access_guard.enforce(actor, package, AccessMode.MUTATE, action=action)

        current = package.status
        if not can_transition(current, requested):
            raise InvalidTransitionError(current, requested)

        pid = package.id
        now = utcnow()
        values: Dict[str, Any] = {"status": requested, "updated_at": now}
        if requested == PackageStatus.PICKED_UP and package.picked_up_at is None:
            values["picked_up_at"] = now
        if requested == PackageStatus.DELIVERED:
            values["delivered_at"] = now

        try:
            result = await db.execute(
                update(Package)
                .where(Package.id == pid, Package.status == current)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await db.rollback()
                latest = await TrackingLedger.derived_status(db, pid)
                logger.info(
                    "Lost race on package %s: expected %s, now %s", pid, current.value, latest.value
                )
                raise InvalidTransitionError(
                    latest, requested,
                    message=f"Package status changed concurrently (now '{latest.value}'); re-fetch before retrying"
                )

            event = await TrackingLedger.append(
                db, pid, requested,
                location=location,
                notes=notes or f"Status updated to {requested.value}",
                created_at=now,
            )
            await db.commit()
        except DBAPIError as exc:
            await db.rollback()
            logger.error("Store failure during transition of package %s: %s", pid, exc)
            raise StoreUnavailableError() from exc

        if hub is not None:
            hub.publish(PackageChange.status_changed(package, event))

        await db.refresh(package)
        logger.info(
            "Package %s: %s -> %s by actor %s", package.id, current.value, requested.value, actor.id
        )

        return package

    @staticmethod
    async def assign_driver(
        db: AsyncSession,
        package_id: int,
        actor: Actor,
        driver_id: int,
        hub: Optional[NotificationHub] = None,
    ) -> Package:
        """
        Assign a driver (and with it the driver's courier company) to a pending package.

        Raises:
            ResourceNotFoundError: unknown package or driver
            InsufficientPermissionsError: access control denied the actor
            AlreadyAssignedError: the package already has a driver
            InvalidTransitionError: the package is no longer pending
            PackageValidationError: the driver cannot take the package
        """
        package = await load_package(db, package_id)

        result = await db.execute(select(Actor).where(Actor.id == driver_id))
        driver = result.scalar_one_or_none()
        if not driver:
            raise ResourceNotFoundError("Driver", driver_id)

        if driver.role != ActorRole.DRIVER:
            raise PackageValidationError("driver_id", "Actor is not a driver")

        target_company_id = driver.courier_company_id
        access_guard.enforce(
            actor, package, AccessMode.MUTATE,
            action=PackageAction.ASSIGN,
            target_company_id=target_company_id,
        )

        if package.driver_id is not None:
            raise AlreadyAssignedError(package.id, package.driver_id)

        if package.status != PackageStatus.PENDING:
            raise InvalidTransitionError(
                package.status, package.status,
                message=f"Only pending packages can be assigned, current status: {package.status.value}"
            )

        if not driver.is_active:
            raise PackageValidationError("driver_id", "Driver is not active")

        if target_company_id is None:
            raise PackageValidationError("driver_id", "Driver does not belong to a courier company")

        if package.courier_company_id is not None and package.courier_company_id != target_company_id:
            raise InsufficientPermissionsError(
                "Driver does not belong to the package's courier company",
                details={"package_id": package.id, "driver_id": driver.id}
            )

        pid = package.id
        try:
            result = await db.execute(
                update(Package)
                .where(
                    Package.id == pid,
                    Package.driver_id.is_(None),
                    Package.status == PackageStatus.PENDING,
                )
                .values(driver_id=driver.id, courier_company_id=target_company_id, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await db.rollback()
                raise AlreadyAssignedError(pid)
            await db.commit()
        except DBAPIError as exc:
            await db.rollback()
            logger.error("Store failure while assigning package %s: %s", pid, exc)
            raise StoreUnavailableError() from exc

        if hub is not None:
            hub.publish(PackageChange.driver_assigned(package, driver.id, target_company_id))

        await db.refresh(package)
        logger.info(
            "Package %s assigned to driver %s (company %s) by actor %s",
            package.id, driver.id, target_company_id, actor.id
        )

        return package
