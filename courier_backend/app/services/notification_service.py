"""
Notification Service.

Inbox reads and read-state management. Writing notifications is the job of
the NotificationHub.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, desc
from typing import List, Optional

from courier_backend.app.core.timeutils import utcnow
from courier_backend.app.models.notification import Notification


class NotificationService:

    @staticmethod
    async def list_inbox(
        db: AsyncSession,
        actor_id: int,
        unread_only: bool = False,
        package_id: Optional[int] = None,
        limit: int = 50
    ) -> List[Notification]:
        """Newest first."""
        query = select(Notification).where(Notification.actor_id == actor_id)

        if unread_only:
            query = query.where(Notification.is_read.is_(False))

        if package_id is not None:
            query = query.where(Notification.package_id == package_id)

        query = query.order_by(desc(Notification.created_at), desc(Notification.id)).limit(limit)

        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def mark_read(db: AsyncSession, notification_id: int, actor_id: int) -> bool:
        """Mark a notification as read."""
        stmt = update(Notification).where(
            Notification.id == notification_id,
            Notification.actor_id == actor_id
        ).values(
            is_read=True,
            read_at=utcnow()
        )
        result = await db.execute(stmt)
        return result.rowcount > 0

    @staticmethod
    async def mark_all_read(db: AsyncSession, actor_id: int) -> int:
        """Mark all notifications for actor as read."""
        stmt = update(Notification).where(
            Notification.actor_id == actor_id,
            Notification.is_read.is_(False)
        ).values(
            is_read=True,
            read_at=utcnow()
        )
        result = await db.execute(stmt)
        return result.rowcount
