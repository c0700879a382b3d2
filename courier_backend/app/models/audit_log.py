"""
Audit Log Database Model.

Tracks package lifecycle events and admin actions for compliance monitoring.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from courier_backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for tracking business events and admin actions.

    Events logged:
    - PACKAGE_CREATED / PACKAGE_STATUS_CHANGED / PACKAGE_CANCELLED
    - DRIVER_ASSIGNED
    - PAYMENT_CAPTURED / PAYMENT_FAILED
    - ACTOR_ACTIVATED / ACTOR_DEACTIVATED / ACTOR_ROLE_CHANGED
    - COMPANY_CREATED / COMPANY_ACTIVATED / COMPANY_DEACTIVATED
    - TOKEN_REVOKED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_email = Column(String(255), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # What was acted upon
    target_type = Column(String(50), nullable=True)
    target_id = Column(Integer, index=True, nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_id}, target={self.target_type}:{self.target_id})>"
