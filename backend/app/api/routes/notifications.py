"""
Notifications API: list, unread count, read state, soft delete, preferences, live feed.

Recipient identified by X-User-Id header or ?user_id=.
Deleted notifications never appear in list or count responses.
"""
import asyncio
import contextlib
import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.deps import current_user_id
from app.config import settings
from app.core.errors import NotificationError, notification_error_to_http
from app.core.realtime import Subscription, change_feed
from app.db.session import get_db
from app.scheduler.push_job import run_push_for_notification_job
from app.schemas.notification import NotificationType
from app.services import notification_store, preferences_service
from app.services.notification_format import notification_to_payload

router = APIRouter()
logger = logging.getLogger(__name__)


# --- List ---


@router.get("/notifications")
def list_notifications(
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
    limit: int = Query(10, ge=1, le=notification_store.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    notification_type: NotificationType | None = Query(None, alias="type"),
    unread_only: bool = Query(False),
) -> dict[str, Any]:
    """Newest first. Filter by type and/or unread_only; page with limit/offset."""
    rows = notification_store.list_notifications(
        db,
        user_id,
        limit=limit,
        offset=offset,
        notification_type=notification_type,
        unread_only=unread_only,
    )
    return {
        "notifications": [notification_to_payload(r) for r in rows],
        "unread_count": notification_store.count_unread(db, user_id),
    }


@router.get("/notifications/unread-count")
def get_unread_count(
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
) -> dict[str, int]:
    return {"unread_count": notification_store.count_unread(db, user_id)}


# --- Create (originators) ---


class CreateNotificationsRequest(BaseModel):
    user_ids: list[str] = Field(..., min_length=1, max_length=1000)
    notification_type: NotificationType
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    action_url: str | None = Field(None, max_length=512)
    metadata: dict[str, Any] | None = None


@router.post("/notifications", status_code=201)
def create_notifications(
    body: CreateNotificationsRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """
    Create one notification per recipient (signal/event creation, announcements, system).
    Each row is fanned out to the recipient's devices after the response is sent.
    """
    rows = notification_store.create_notification_for_users(
        db,
        body.user_ids,
        notification_type=body.notification_type,
        title=body.title,
        message=body.message,
        action_url=body.action_url,
        metadata=body.metadata,
    )
    if settings.push_on_create:
        for row in rows:
            background_tasks.add_task(run_push_for_notification_job, row.id)
    return {
        "created": [{"id": r.id, "user_id": r.user_id} for r in rows],
        "count": len(rows),
    }


# --- Mark read / delete ---


@router.patch("/notifications/{notification_id}/read")
def mark_notification_read(
    notification_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
) -> dict[str, Any]:
    try:
        row = notification_store.mark_read(db, user_id, notification_id)
    except NotificationError as e:
        raise notification_error_to_http(e)
    return {"ok": True, "id": row.id, "read_at": row.read_at.isoformat() if row.read_at else None}


@router.post("/notifications/mark-all-read")
def mark_all_read(
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
) -> dict[str, Any]:
    """Mark every unread notification of the user read. A second call marks 0."""
    updated = notification_store.mark_all_read(db, user_id)
    return {"ok": True, "user_id": user_id, "marked_count": updated}


@router.delete("/notifications/{notification_id}")
def delete_notification(
    notification_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
) -> dict[str, Any]:
    """Soft delete: the row is kept but hidden from every read path."""
    try:
        row = notification_store.soft_delete(db, user_id, notification_id)
    except NotificationError as e:
        raise notification_error_to_http(e)
    return {"ok": True, "id": row.id}


# --- Preferences ---


class UpdatePreferencesBody(BaseModel):
    push_signals: bool | None = None
    push_events: bool | None = None
    push_announcements: bool | None = None
    push_system: bool | None = None


@router.get("/notifications/preferences")
def get_preferences(
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
) -> dict[str, bool]:
    return preferences_service.get_preferences(db, user_id)


@router.put("/notifications/preferences")
def update_preferences(
    body: UpdatePreferencesBody,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
) -> dict[str, bool]:
    """Only fields present in the body change; an explicit null resets a flag to enabled."""
    return preferences_service.update_preferences(db, user_id, body.model_dump(exclude_unset=True))


# --- Live feed ---


async def _close_on_disconnect(websocket: WebSocket, sub: Subscription) -> None:
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        sub.close()


@router.websocket("/notifications/ws")
async def notifications_ws(websocket: WebSocket, user_id: str | None = Query(None)):
    """
    Forward change events for the user's notifications. Clients should refetch on each event
    rather than apply the record as state.
    """
    uid = (user_id or websocket.headers.get("x-user-id") or "").strip()
    if not uid:
        await websocket.close(code=4401)
        return
    await websocket.accept()
    async with change_feed.subscribe(uid) as sub:
        await websocket.send_json({"type": "subscribed", "user_id": uid})
        watcher = asyncio.create_task(_close_on_disconnect(websocket, sub))
        try:
            async for event in sub:
                await websocket.send_json(event.to_payload())
        except WebSocketDisconnect:
            pass
        finally:
            watcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watcher
    logger.debug("Notifications websocket closed for user %s", uid)
