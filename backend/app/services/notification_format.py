"""
Shared notification formatting: row serialization, relative times, originator titles,
and the push-data -> in-app route mapping used by the mobile app.
"""
from datetime import datetime, timezone
from typing import Any

from app.models.notification import Notification


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def notification_to_payload(row: Notification) -> dict[str, Any]:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "notification_type": row.notification_type,
        "title": row.title,
        "message": row.message,
        "action_url": row.action_url,
        "metadata": row.payload,
        "read": bool(row.read),
        "deleted": bool(row.deleted),
        "created_at": _iso(row.created_at),
        "read_at": _iso(row.read_at),
        "deleted_at": _iso(row.deleted_at),
    }


def _as_utc(value: datetime | str) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def format_relative_time(created_at: datetime | str, now: datetime | None = None) -> str:
    """'Just now', '5m ago', '2h ago', '3d ago', '2w ago'; older than four weeks -> the date."""
    created = _as_utc(created_at)
    now = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    seconds = int((now - created).total_seconds())
    if seconds < 60:
        return "Just now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    days = hours // 24
    if days < 7:
        return f"{days}d ago"
    weeks = days // 7
    if weeks < 4:
        return f"{weeks}w ago"
    return created.date().isoformat()


def format_signal_notification(
    *,
    title: str,
    trading_pair: str,
    signal_type: str,
    entry_price: str,
) -> dict[str, str]:
    """Title/message for a new trading signal. signal_type is 'buy' or 'sell'."""
    emoji = "📈" if signal_type == "buy" else "📉"
    return {
        "title": f"{emoji} New Signal: {trading_pair}",
        "message": f"{title} - Entry at {entry_price}",
    }


def format_event_notification(*, title: str, event_type: str, start_date: datetime | str) -> dict[str, str]:
    start = _as_utc(start_date).date().isoformat()
    return {
        "title": f"📅 New Event: {title}",
        "message": f"{event_type} starting {start}",
    }


def route_for_push_data(data: dict[str, Any] | None) -> str | None:
    """Map the `data` object of a received push to the screen it should open."""
    if not isinstance(data, dict):
        return None
    ntype = data.get("notification_type")
    meta = data.get("metadata")
    if not isinstance(meta, dict):
        meta = {}
    if ntype == "signal":
        return f"/signals/{meta['signal_id']}" if meta.get("signal_id") else "/signals"
    if ntype == "event":
        return f"/events/{meta['event_id']}" if meta.get("event_id") else "/events"
    if ntype == "announcement":
        return f"/analysis/{meta['analysis_id']}" if meta.get("analysis_id") else "/analysis"
    return data.get("action_url") or None
