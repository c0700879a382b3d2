"""
Change Notification Hub.

Receives package changes after they commit and fans them out to every actor
entitled to hear about them:

    relevance set = sender + assigned driver + active admins of the package's
                    courier company + active super admins

Each relevant actor gets a durable inbox row (the `notifications` table). Actors
holding a live subscription also get the notification pushed onto it.

Changes are delivered one at a time by a single background worker per event
loop, in the order they were published, so an actor sees a package's
notifications in the same order as its tracking events. Delivery failures are
logged and never reach the caller that published the change.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from courier_backend.app.core.config import settings
from courier_backend.app.core.timeutils import utcnow
from courier_backend.app.db.session import AsyncSessionLocal
from courier_backend.app.models.actor import Actor
from courier_backend.app.models.enums import ActorRole
from courier_backend.app.models.notification import Notification, NotificationType
from courier_backend.app.models.package import Package
from courier_backend.app.models.package_enums import PackageStatus
from courier_backend.app.models.tracking_event import TrackingEvent

logger = logging.getLogger(__name__)

STATUS_TITLES = {
    PackageStatus.PENDING: "Package Created",
    PackageStatus.PICKED_UP: "Package Picked Up",
    PackageStatus.IN_TRANSIT: "Package In Transit",
    PackageStatus.DELIVERED: "Package Delivered",
    PackageStatus.CANCELLED: "Package Cancelled",
}

STATUS_MESSAGES = {
    PackageStatus.PENDING: "Package #{code} has been created and is awaiting pickup",
    PackageStatus.PICKED_UP: "Package #{code} has been picked up",
    PackageStatus.IN_TRANSIT: "Package #{code} is in transit",
    PackageStatus.DELIVERED: "Package #{code} has been delivered successfully",
    PackageStatus.CANCELLED: "Package #{code} has been cancelled",
}


@dataclass(frozen=True)
class PackageChange:
    """A committed change of one package, as seen by the hub."""
    kind: NotificationType
    package_id: int
    tracking_code: str
    status: PackageStatus
    sender_id: int
    driver_id: Optional[int] = None
    courier_company_id: Optional[int] = None
    tracking_event_id: Optional[int] = None
    occurred_at: datetime = field(default_factory=utcnow)

    @classmethod
    def status_changed(cls, package: Package, event: TrackingEvent) -> "PackageChange":
        return cls(
            kind=NotificationType.STATUS_UPDATE,
            package_id=package.id,
            tracking_code=package.tracking_code,
            status=event.status,
            sender_id=package.sender_id,
            driver_id=package.driver_id,
            courier_company_id=package.courier_company_id,
            tracking_event_id=event.id,
            occurred_at=event.created_at,
        )

    @classmethod
    def driver_assigned(cls, package: Package, driver_id: int, courier_company_id: int) -> "PackageChange":
        # `package` may not reflect the assignment yet; only pending packages are assigned.
        return cls(
            kind=NotificationType.DRIVER_ASSIGNED,
            package_id=package.id,
            tracking_code=package.tracking_code,
            status=PackageStatus.PENDING,
            sender_id=package.sender_id,
            driver_id=driver_id,
            courier_company_id=courier_company_id,
        )

    def title(self) -> str:
        if self.kind == NotificationType.DRIVER_ASSIGNED:
            return "New Delivery Assigned"
        return STATUS_TITLES.get(self.status, "Package Status Updated")

    def message(self) -> str:
        if self.kind == NotificationType.DRIVER_ASSIGNED:
            return f"Package #{self.tracking_code} has been assigned to a driver"
        template = STATUS_MESSAGES.get(self.status, "Package #{code} status updated")
        return template.format(code=self.tracking_code)


@dataclass(frozen=True)
class NotificationPayload:
    """What a live subscriber receives; mirrors an inbox row."""
    id: int
    actor_id: int
    type: NotificationType
    title: str
    message: str
    package_id: Optional[int]
    tracking_code: Optional[str]
    is_read: bool
    created_at: datetime

    @classmethod
    def from_record(cls, record: Notification) -> "NotificationPayload":
        return cls(
            id=record.id,
            actor_id=record.actor_id,
            type=record.type,
            title=record.title,
            message=record.message,
            package_id=record.package_id,
            tracking_code=record.tracking_code,
            is_read=record.is_read,
            created_at=record.created_at,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "package_id": self.package_id,
            "tracking_code": self.tracking_code,
            "is_read": self.is_read,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


_CLOSED = object()


class Subscription:
    """
    A live, long-lived subscription of one actor.

    Iterate it to receive notifications; call `close()` when the subscriber
    goes away. Anything not consumed stays in the actor's inbox.
    """

    def __init__(self, hub: "NotificationHub", actor_id: int, role: Optional[ActorRole], maxsize: int):
        self.hub = hub
        self.actor_id = actor_id
        self.role = role
        self.closed = False
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    @property
    def key(self) -> Tuple[int, Optional[ActorRole]]:
        return (self.actor_id, self.role)

    def push(self, payload: NotificationPayload) -> bool:
        if self.closed:
            return False
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            # The inbox row already exists; the subscriber will see it on replay.
            logger.warning("Live queue full for actor %s, dropping push of notification %s", self.actor_id, payload.id)
            return False
        return True

    async def get(self) -> NotificationPayload:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    def __aiter__(self):
        return self

    async def __anext__(self) -> NotificationPayload:
        if self.closed and self._queue.empty():
            raise StopAsyncIteration
        return await self.get()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.hub._remove(self)
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            pass


class NotificationHub:

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal, queue_size: Optional[int] = None):
        self._session_factory = session_factory
        self._queue_size = queue_size or settings.notification_queue_size
        self._subscriptions: Dict[Tuple[int, Optional[ActorRole]], List[Subscription]] = defaultdict(list)
        self._changes: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    # --- Subscriptions ---

    def subscribe(self, actor_id: int, role: Optional[ActorRole]) -> Subscription:
        subscription = Subscription(self, actor_id, role, self._queue_size)
        self._subscriptions[subscription.key].append(subscription)
        logger.debug("Actor %s (%s) subscribed", actor_id, role)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        subscribers = self._subscriptions.get(subscription.key)
        if subscribers and subscription in subscribers:
            subscribers.remove(subscription)
            if not subscribers:
                del self._subscriptions[subscription.key]

    def subscriber_count(self, actor_id: Optional[int] = None) -> int:
        return sum(
            len(subs) for key, subs in self._subscriptions.items()
            if actor_id is None or key[0] == actor_id
        )

    # --- Publishing ---

    def publish(self, change: PackageChange) -> None:
        """
        Queue a committed change for delivery. Never blocks and never raises
        delivery errors back to the caller.
        """
        self._queue_for_running_loop().put_nowait(change)

    def _queue_for_running_loop(self) -> asyncio.Queue:
        # Queue and worker belong to the loop that created them.
        loop = asyncio.get_running_loop()
        if self._loop is not loop:
            if self._changes is not None and not self._changes.empty():
                logger.warning(
                    "Dropping %d undelivered changes queued on a previous event loop", self._changes.qsize()
                )
            self._loop = loop
            self._changes = asyncio.Queue()
            self._worker = None
        if self._worker is None or self._worker.done():
            self._worker = self._start_worker()
        return self._changes

    def _start_worker(self) -> Optional[asyncio.Task]:
        return asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            change = await self._changes.get()
            try:
                await self._deliver_logged(change)
            finally:
                self._changes.task_done()

    async def _deliver_logged(self, change: PackageChange) -> None:
        try:
            await self.deliver(change)
        except Exception:
            logger.exception(
                "Notification delivery failed for package %s (%s)", change.package_id, change.kind.value
            )

    def _owns_running_loop(self) -> bool:
        return self._loop is not None and self._loop is asyncio.get_running_loop()

    async def drain(self) -> None:
        """Wait until every published change has been delivered (or failed)."""
        if self._changes is not None and self._owns_running_loop():
            await self._changes.join()

    async def shutdown(self) -> None:
        if self._worker is not None and self._owns_running_loop():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
        for subscribers in list(self._subscriptions.values()):
            for subscription in list(subscribers):
                subscription.close()

    # --- Delivery ---

    async def relevance_set(self, db: AsyncSession, change: PackageChange) -> List[Actor]:
        """Actors entitled to hear about `change`, each exactly once."""
        conditions = [
            Actor.id == change.sender_id,
            and_(Actor.role == ActorRole.SUPER_ADMIN, Actor.is_active.is_(True)),
        ]
        if change.driver_id is not None:
            conditions.append(Actor.id == change.driver_id)
        if change.courier_company_id is not None:
            conditions.append(and_(
                Actor.role == ActorRole.COURIER_ADMIN,
                Actor.courier_company_id == change.courier_company_id,
                Actor.is_active.is_(True),
            ))

        result = await db.execute(select(Actor).where(or_(*conditions)).order_by(Actor.id))
        return list(result.scalars().all())

    async def deliver(self, change: PackageChange) -> List[Notification]:
        """Write inbox rows for the relevance set, then push to live subscribers."""
        async with self._session_factory() as db:
            recipients = await self.relevance_set(db, change)
            records = [
                Notification(
                    actor_id=actor.id,
                    type=change.kind,
                    title=change.title(),
                    message=change.message(),
                    package_id=change.package_id,
                    tracking_code=change.tracking_code,
                    tracking_event_id=change.tracking_event_id,
                    is_read=False,
                    created_at=utcnow(),
                )
                for actor in recipients
            ]
            db.add_all(records)
            await db.commit()

        roles = {actor.id: actor.role for actor in recipients}
        for record in records:
            payload = NotificationPayload.from_record(record)
            for subscription in list(self._subscriptions.get((record.actor_id, roles[record.actor_id]), [])):
                subscription.push(payload)

        logger.info(
            "Delivered %s notification for package %s to %d actors",
            change.kind.value, change.package_id, len(records)
        )
        return records

    async def replay_unread(self, actor_id: int, limit: Optional[int] = None) -> List[NotificationPayload]:
        """Unread inbox items, oldest first, for a subscriber that just connected."""
        limit = limit or settings.notification_replay_limit
        async with self._session_factory() as db:
            query = (
                select(Notification)
                .where(Notification.actor_id == actor_id, Notification.is_read.is_(False))
                .order_by(Notification.created_at.desc(), Notification.id.desc())
                .limit(limit)
            )
            result = await db.execute(query)
            records = list(result.scalars().all())
        return [NotificationPayload.from_record(r) for r in reversed(records)]


notification_hub = NotificationHub()


def get_notification_hub() -> NotificationHub:
    """FastAPI dependency for the process-wide hub."""
    return notification_hub
