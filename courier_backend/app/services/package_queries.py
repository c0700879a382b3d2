"""
Read side of the package lifecycle.

Everything here is scoped by the access control layer: list queries filter in
SQL with `package_scope` and re-check each row with `can_access`, single-package
reads go through `access_guard.enforce`. An actor outside the scope gets an
empty list, never an error.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.core.exceptions import ResourceNotFoundError
from courier_backend.app.core.guards import AccessMode, access_guard, package_scope
from courier_backend.app.models.actor import Actor
from courier_backend.app.models.package import Package
from courier_backend.app.models.package_enums import PackageStatus, PackageType, PaymentStatus
from courier_backend.app.models.tracking_event import TrackingEvent
from courier_backend.app.services.package_state_machine import load_package, normalize_tracking_code
from courier_backend.app.services.route_sequencer import OPEN_STATUSES, sequence
from courier_backend.app.services.tracking_ledger import TrackingLedger


@dataclass
class PackageFilters:
    status: Optional[PackageStatus] = None
    package_type: Optional[PackageType] = None
    payment_status: Optional[PaymentStatus] = None
    unassigned: Optional[bool] = None
    skip: int = 0
    limit: int = 50


def scoped_packages(actor: Optional[Actor], filters: Optional[PackageFilters] = None):
    """Select statement for the packages `actor` may read, with filters applied."""
    filters = filters or PackageFilters()
    query = select(Package).where(package_scope(actor))

    if filters.status is not None:
        query = query.where(Package.status == filters.status)
    if filters.package_type is not None:
        query = query.where(Package.package_type == filters.package_type)
    if filters.payment_status is not None:
        query = query.where(Package.payment_status == filters.payment_status)
    if filters.unassigned is True:
        query = query.where(Package.driver_id.is_(None))
    elif filters.unassigned is False:
        query = query.where(Package.driver_id.isnot(None))

    return query


async def list_packages(
    db: AsyncSession,
    actor: Optional[Actor],
    filters: Optional[PackageFilters] = None,
) -> Tuple[List[Package], int]:
    """
    Packages visible to `actor`, newest first.

    Returns:
        (page of packages, total matching count)
    """
    filters = filters or PackageFilters()
    query = scoped_packages(actor, filters)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    query = query.order_by(desc(Package.created_at), desc(Package.id)).offset(filters.skip).limit(filters.limit)
    result = await db.execute(query)
    packages = access_guard.filter_readable(actor, list(result.scalars().all()))

    return packages, total


async def get_package(db: AsyncSession, package_id: int, actor: Optional[Actor]) -> Package:
    """
    Raises:
        ResourceNotFoundError, InsufficientPermissionsError
    """
    package = await load_package(db, package_id)
    access_guard.enforce(actor, package, AccessMode.READ)
    return package


async def get_history(db: AsyncSession, package_id: int, actor: Optional[Actor]) -> List[TrackingEvent]:
    """Tracking events of a package, oldest first."""
    await get_package(db, package_id, actor)
    return [event async for event in TrackingLedger.history(db, package_id)]


async def get_by_tracking_code(
    db: AsyncSession,
    tracking_code: str,
    actor: Optional[Actor],
) -> Tuple[Package, List[TrackingEvent]]:
    """Look up a package by tracking code (any case) with its history."""
    code = normalize_tracking_code(tracking_code)
    result = await db.execute(select(Package).where(Package.tracking_code == code))
    package = result.scalar_one_or_none()
    if not package:
        raise ResourceNotFoundError("Package", code)

    access_guard.enforce(actor, package, AccessMode.READ)
    history = [event async for event in TrackingLedger.history(db, package.id)]
    return package, history


async def driver_route(db: AsyncSession, driver: Actor) -> List[Package]:
    """The driver's open packages in the order they should be worked."""
    query = select(Package).where(
        Package.driver_id == driver.id,
        Package.status.in_(list(OPEN_STATUSES)),
    )
    result = await db.execute(query)
    return sequence(access_guard.filter_readable(driver, list(result.scalars().all())))


async def driver_delivery_history(
    db: AsyncSession,
    driver: Actor,
    skip: int = 0,
    limit: int = 50,
) -> List[Package]:
    """Delivered packages of the driver, most recently delivered first."""
    query = (
        select(Package)
        .where(Package.driver_id == driver.id, Package.status == PackageStatus.DELIVERED)
        .order_by(desc(Package.delivered_at), desc(Package.id))
        .offset(skip)
        .limit(limit)
    )
    result = await db.execute(query)
    return list(result.scalars().all())
