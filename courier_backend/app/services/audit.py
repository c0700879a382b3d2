"""
Audit logging service for package lifecycle events and admin actions.

Provides a persistent trail alongside the application logs.
"""

import logging
from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from courier_backend.app.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class AuditAction:
    """Standardized audit action constants."""
    PACKAGE_CREATED = "PACKAGE_CREATED"
    PACKAGE_STATUS_CHANGED = "PACKAGE_STATUS_CHANGED"
    PACKAGE_CANCELLED = "PACKAGE_CANCELLED"
    DRIVER_ASSIGNED = "DRIVER_ASSIGNED"

    PAYMENT_CAPTURED = "PAYMENT_CAPTURED"
    PAYMENT_FAILED = "PAYMENT_FAILED"

    ACTOR_ACTIVATED = "ACTOR_ACTIVATED"
    ACTOR_DEACTIVATED = "ACTOR_DEACTIVATED"
    ACTOR_ROLE_CHANGED = "ACTOR_ROLE_CHANGED"
    COMPANY_CREATED = "COMPANY_CREATED"
    COMPANY_ACTIVATED = "COMPANY_ACTIVATED"
    COMPANY_DEACTIVATED = "COMPANY_DEACTIVATED"

    TOKEN_REVOKED = "TOKEN_REVOKED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_email: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Write an event to the audit log and commit it.

    Call this after the business change itself has committed, so a failed
    audit write can never roll the change back.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of actor performing the action
        actor_email: Email of actor
        target_type: Kind of record acted upon ("package", "actor", "company")
        target_id: ID of the record acted upon
        metadata: Additional context as JSON

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_email=actor_email,
        action=action,
        target_type=target_type,
        target_id=target_id,
        meta_data=metadata
    )

    db.add(audit_log)
    await db.commit()

    logger.info("audit %s by actor=%s on %s:%s", action, actor_id, target_type, target_id)
    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    target_type: Optional[str] = None,
    target_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, most recent first.
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if target_type:
        query = query.where(AuditLog.target_type == target_type)

    if target_id:
        query = query.where(AuditLog.target_id == target_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
