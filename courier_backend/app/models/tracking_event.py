"""
Tracking event database model.

One immutable row per package status transition.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Index
from courier_backend.app.db.session import Base
from courier_backend.app.core.timeutils import utcnow
from courier_backend.app.models.package_enums import PackageStatus


class TrackingEvent(Base):
    """
    Tracking event.

    Append-only: NO updates or deletions. Events of a package are ordered by
    created_at, ties broken by id (insertion sequence).
    """
    __tablename__ = "tracking_events"
    __table_args__ = (
        Index("ix_tracking_events_package_order", "package_id", "created_at", "id"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    package_id = Column(Integer, ForeignKey("packages.id"), nullable=False, index=True)
    status = Column(Enum(PackageStatus), nullable=False)
    location = Column(String(500), nullable=True)
    notes = Column(String(1000), nullable=True)

    # Immutable - no updated_at
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<TrackingEvent(id={self.id}, package={self.package_id}, status='{self.status.value}')>"
