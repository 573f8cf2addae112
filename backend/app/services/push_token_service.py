"""Device token registry: Expo push tokens per user (one per installed device)."""
import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.models.push_token import PushToken

logger = logging.getLogger(__name__)


def register_push_token(db: Session, user_id: str, expo_push_token: str, platform: str = "ios") -> bool:
    """
    Upsert on (user_id, token). Returns True when a new row was created,
    False when an existing registration was refreshed.
    """
    token = expo_push_token.strip()
    existing = (
        db.query(PushToken)
        .filter(PushToken.user_id == user_id, PushToken.expo_push_token == token)
        .first()
    )
    if existing:
        existing.platform = platform
        existing.updated_at = datetime.now(timezone.utc)
        db.commit()
        return False
    db.add(PushToken(user_id=user_id, expo_push_token=token, platform=platform))
    db.commit()
    logger.info("Registered push token for user %s platform=%s", user_id, platform)
    return True


def unregister_push_token(db: Session, user_id: str, expo_push_token: str) -> bool:
    deleted = (
        db.query(PushToken)
        .filter(PushToken.user_id == user_id, PushToken.expo_push_token == expo_push_token.strip())
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted > 0


def get_push_tokens(db: Session, user_id: str) -> list[str]:
    rows = db.query(PushToken.expo_push_token).filter(PushToken.user_id == user_id).order_by(PushToken.id).all()
    return [t for (t,) in rows]
