"""
Notification Database Model.

A notification row is an actor's durable inbox entry.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Enum
from courier_backend.app.db.session import Base
from courier_backend.app.core.timeutils import utcnow
import enum


class NotificationType(str, enum.Enum):
    INFO = "INFO"
    STATUS_UPDATE = "STATUS_UPDATE"
    DRIVER_ASSIGNED = "DRIVER_ASSIGNED"


class Notification(Base):
    """
    In-App Notification.
    Stores package change messages for actors.
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Recipient
    actor_id = Column(Integer, ForeignKey("actors.id"), nullable=False, index=True)

    # Content
    type = Column(Enum(NotificationType), default=NotificationType.INFO, nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)

    # Reference to the package that changed
    package_id = Column(Integer, ForeignKey("packages.id"), nullable=True, index=True)
    tracking_code = Column(String(40), nullable=True)
    tracking_event_id = Column(Integer, ForeignKey("tracking_events.id"), nullable=True)

    # State
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Notification(id={self.id}, actor={self.actor_id}, title='{self.title}')>"
