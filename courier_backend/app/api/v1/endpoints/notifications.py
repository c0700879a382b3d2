"""
Notification API Endpoints.

The inbox (list, mark read) over HTTP, and a live stream over WebSocket that
replays unread inbox items on connect and then forwards new ones as the hub
delivers them.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, status, Path, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select, func
from typing import Optional

from courier_backend.app.db.session import get_db, get_session_factory
from courier_backend.app.core.dependencies import get_current_actor, resolve_actor
from courier_backend.app.core.redis_client import get_redis
from courier_backend.app.models.actor import Actor
from courier_backend.app.models.notification import Notification
from courier_backend.app.schemas.notification import (
    NotificationResponse, NotificationListResponse, MarkReadResponse
)
from courier_backend.app.services.notification_hub import NotificationHub, get_notification_hub
from courier_backend.app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    unread_only: bool = Query(False),
    package_id: Optional[int] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    current_actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """List the caller's notifications, newest first."""
    notifications = await NotificationService.list_inbox(
        db, current_actor.id, unread_only=unread_only, package_id=package_id, limit=limit
    )

    unread = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.actor_id == current_actor.id,
            Notification.is_read.is_(False)
        )
    )

    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        unread_count=unread.scalar() or 0
    )


@router.patch("/read-all", response_model=MarkReadResponse)
async def mark_all_notifications_read(
    current_actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Mark all notifications as read."""
    count = await NotificationService.mark_all_read(db, current_actor.id)
    await db.commit()
    return MarkReadResponse(updated=count)


@router.patch("/{notification_id}/read", response_model=MarkReadResponse)
async def mark_notification_read(
    notification_id: int = Path(...),
    current_actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Mark a specific notification as read."""
    success = await NotificationService.mark_read(db, notification_id, current_actor.id)
    if not success:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")

    await db.commit()
    return MarkReadResponse(updated=1)


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    """Return once the client goes away. Clients are not expected to send anything."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/stream")
async def notification_stream(
    websocket: WebSocket,
    token: str = Query(..., description="Bearer token"),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    redis_client=Depends(get_redis),
    hub: NotificationHub = Depends(get_notification_hub),
):
    """
    Live notification stream.

    Browsers cannot set headers on a WebSocket handshake, so the bearer token
    travels as the `token` query parameter. Unread inbox items are sent first,
    oldest first; anything not consumed before disconnect stays in the inbox.

    No database session is held while the stream is open.
    """
    async with session_factory() as db:
        try:
            actor = await resolve_actor(token, db, redis_client)
        except HTTPException as exc:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(exc.detail))
            return
        actor_id, role = actor.id, actor.role

    if role is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Actor has no resolvable role")
        return

    await websocket.accept()
    subscription = hub.subscribe(actor_id, role)

    # A silent client is only noticed through receive(); ending the
    # subscription ends the send loop below.
    watcher = asyncio.create_task(_wait_for_disconnect(websocket))
    watcher.add_done_callback(lambda _: subscription.close())

    try:
        replayed = set()
        for payload in await hub.replay_unread(actor_id):
            replayed.add(payload.id)
            await websocket.send_json(payload.to_dict())

        async for payload in subscription:
            # Delivered while we were replaying
            if payload.id in replayed:
                continue
            await websocket.send_json(payload.to_dict())
    except WebSocketDisconnect:
        pass
    finally:
        subscription.close()
        watcher.cancel()
        logger.info("Notification stream of actor %s closed", actor_id)
