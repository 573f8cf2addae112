"""
Push preferences: which notification types may trigger a device push for a user.

Each notification type maps to exactly one independent flag. A missing row or a NULL
flag means push is enabled; only an explicit False suppresses push.
"""
from sqlalchemy.orm import Session

from app.core.errors import InvalidRequestError
from app.models.notification_preference import NotificationPreference

TYPE_TO_PREFERENCE: dict[str, str] = {
    "signal": "push_signals",
    "event": "push_events",
    "announcement": "push_announcements",
    "system": "push_system",
}
PREFERENCE_FLAGS = tuple(TYPE_TO_PREFERENCE.values())


def preference_flag_for(notification_type: str) -> str | None:
    return TYPE_TO_PREFERENCE.get(notification_type)


def get_preference_row(db: Session, user_id: str) -> NotificationPreference | None:
    return db.query(NotificationPreference).filter(NotificationPreference.user_id == user_id).first()


def is_push_enabled(db: Session, user_id: str, notification_type: str) -> bool:
    flag = preference_flag_for(notification_type)
    if flag is None:
        return True
    row = get_preference_row(db, user_id)
    if row is None:
        return True
    value = getattr(row, flag)
    if value is None:
        return True
    return value is True


def get_preferences(db: Session, user_id: str) -> dict[str, bool]:
    """Effective flags for the settings screen (unset flags read as enabled)."""
    row = get_preference_row(db, user_id)
    result = {}
    for flag in PREFERENCE_FLAGS:
        value = getattr(row, flag) if row is not None else None
        result[flag] = True if value is None else value
    return result


def update_preferences(db: Session, user_id: str, updates: dict[str, bool | None]) -> dict[str, bool]:
    """Partial update; None resets a flag to the default (enabled)."""
    unknown = set(updates) - set(PREFERENCE_FLAGS)
    if unknown:
        raise InvalidRequestError(f"Unknown preference flag(s): {', '.join(sorted(unknown))}")
    row = get_preference_row(db, user_id)
    if row is None:
        row = NotificationPreference(user_id=user_id)
        db.add(row)
    for flag, value in updates.items():
        setattr(row, flag, value)
    db.commit()
    return get_preferences(db, user_id)
