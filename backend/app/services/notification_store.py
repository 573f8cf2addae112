"""
Notification store: create, query and flag notifications for their owning user.

Every read path excludes soft-deleted rows. read/read_at and deleted/deleted_at are set
together, once, on the false -> true transition. Committed writes are published on the
realtime change feed so live views can refetch.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Iterable

from sqlalchemy.orm import Session

from app.core.errors import InvalidRequestError, NotificationNotFoundError
from app.core.realtime import (
    EVENT_INSERT,
    EVENT_UPDATE,
    NOTIFICATIONS_TABLE,
    ChangeEvent,
    change_feed,
)
from app.models.notification import NOTIFICATION_TYPES, Notification
from app.services.notification_format import notification_to_payload

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 200


def _publish(event: str, user_id: str, record: dict[str, Any]) -> None:
    change_feed.publish(ChangeEvent(event=event, table=NOTIFICATIONS_TABLE, user_id=user_id, record=record))


def _check_type(notification_type: str | None) -> None:
    if notification_type is not None and notification_type not in NOTIFICATION_TYPES:
        raise InvalidRequestError(f"Unknown notification_type: {notification_type}")


def _visible(db: Session, user_id: str):
    return db.query(Notification).filter(Notification.user_id == user_id, Notification.deleted.is_(False))


# --- Create (originators: signal/event creation, admin announcements, system) ---


def create_notification(
    db: Session,
    *,
    user_id: str,
    notification_type: str,
    title: str,
    message: str,
    action_url: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> Notification:
    """Insert one notification for one recipient."""
    return create_notification_for_users(
        db,
        [user_id],
        notification_type=notification_type,
        title=title,
        message=message,
        action_url=action_url,
        metadata=metadata,
    )[0]


def create_notification_for_users(
    db: Session,
    user_ids: Iterable[str],
    *,
    notification_type: str,
    title: str,
    message: str,
    action_url: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> list[Notification]:
    """Bulk insert: one row per distinct recipient, same content."""
    _check_type(notification_type)
    normalized_ids = sorted({uid.strip() for uid in user_ids if uid and uid.strip()})
    if not normalized_ids:
        return []
    rows = [
        Notification(
            user_id=uid,
            notification_type=notification_type,
            title=title,
            message=message,
            action_url=action_url,
            payload=metadata,
        )
        for uid in normalized_ids
    ]
    db.add_all(rows)
    db.commit()
    for row in rows:
        db.refresh(row)
        _publish(EVENT_INSERT, row.user_id, notification_to_payload(row))
    logger.info("Created %s %s notification(s)", len(rows), notification_type)
    return rows


# --- Read ---


def get_notification(db: Session, notification_id: str) -> Notification | None:
    """Point lookup by id regardless of owner or flags (used by the push fan-out)."""
    return db.query(Notification).filter(Notification.id == notification_id).first()


def list_notifications(
    db: Session,
    user_id: str,
    *,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
    notification_type: str | None = None,
    unread_only: bool = False,
) -> list[Notification]:
    """
    Newest first, deleted excluded. Ties on created_at are broken by id so repeated
    calls with the same parameters return the same order.
    """
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise InvalidRequestError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    if offset < 0:
        raise InvalidRequestError("offset must be >= 0")
    _check_type(notification_type)
    q = _visible(db, user_id)
    if notification_type:
        q = q.filter(Notification.notification_type == notification_type)
    if unread_only:
        q = q.filter(Notification.read.is_(False))
    return (
        q.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def count_unread(db: Session, user_id: str) -> int:
    return _visible(db, user_id).filter(Notification.read.is_(False)).count()


# --- Mutate (owner only) ---


def _owned(db: Session, user_id: str, notification_id: str) -> Notification:
    row = _visible(db, user_id).filter(Notification.id == notification_id).first()
    if not row:
        raise NotificationNotFoundError()
    return row


def mark_read(db: Session, user_id: str, notification_id: str) -> Notification:
    """Mark one notification read. Already-read rows keep their original read_at."""
    row = _owned(db, user_id, notification_id)
    if not row.read:
        row.read = True
        row.read_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(row)
        _publish(EVENT_UPDATE, user_id, notification_to_payload(row))
    return row


def mark_all_read(db: Session, user_id: str) -> int:
    """Mark every unread, non-deleted notification of the user read. Returns rows affected."""
    now = datetime.now(timezone.utc)
    updated = (
        _visible(db, user_id)
        .filter(Notification.read.is_(False))
        .update({Notification.read: True, Notification.read_at: now}, synchronize_session=False)
    )
    db.commit()
    if updated:
        _publish(EVENT_UPDATE, user_id, {"read": True, "marked_count": updated})
    return updated


def soft_delete(db: Session, user_id: str, notification_id: str) -> Notification:
    """Hide a notification from every read path; the row itself is kept."""
    row = _owned(db, user_id, notification_id)
    row.deleted = True
    row.deleted_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    _publish(EVENT_UPDATE, user_id, notification_to_payload(row))
    return row
