"""
Tracking Ledger.

Append-only log of package status events. `append` is the only writer; rows
are never updated or deleted.
"""

from datetime import datetime
from typing import AsyncIterator, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.core.timeutils import utcnow
from courier_backend.app.models.package_enums import PackageStatus
from courier_backend.app.models.tracking_event import TrackingEvent


class TrackingLedger:

    @staticmethod
    async def append(
        db: AsyncSession,
        package_id: int,
        status: PackageStatus,
        location: Optional[str] = None,
        notes: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> TrackingEvent:
        """
        Append one event. Flushes but does not commit: the caller owns the
        transaction so the append and the package update land together.
        """
        event = TrackingEvent(
            package_id=package_id,
            status=status,
            location=location,
            notes=notes,
            created_at=created_at or utcnow(),
        )
        db.add(event)
        await db.flush()
        return event

    @staticmethod
    def _ordered(package_id: int):
        return (
            select(TrackingEvent)
            .where(TrackingEvent.package_id == package_id)
            .order_by(TrackingEvent.created_at, TrackingEvent.id)
        )

    @staticmethod
    async def history(db: AsyncSession, package_id: int) -> AsyncIterator[TrackingEvent]:
        """
        Yield the package's events oldest first.

        Each call re-reads the store; the returned iterator cannot be restarted.
        """
        result = await db.execute(TrackingLedger._ordered(package_id))
        for event in result.scalars():
            yield event

    @staticmethod
    async def latest(db: AsyncSession, package_id: int) -> Optional[TrackingEvent]:
        """Most recent event of the package, or None."""
        query = (
            select(TrackingEvent)
            .where(TrackingEvent.package_id == package_id)
            .order_by(TrackingEvent.created_at.desc(), TrackingEvent.id.desc())
            .limit(1)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    async def derived_status(db: AsyncSession, package_id: int) -> PackageStatus:
        """Status implied by the ledger: the latest event's status, else PENDING."""
        event = await TrackingLedger.latest(db, package_id)
        return event.status if event else PackageStatus.PENDING
