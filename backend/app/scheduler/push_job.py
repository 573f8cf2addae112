"""
Push fan-out triggered by a notification insert.

POST /notifications schedules run_push_for_notification_job once per created row (FastAPI
background task), so device pushes go out whether or not the recipient is connected.
Failures are logged and not retried; re-invoke /functions/send-push-for-notification
(or scripts/send_push.py) with the same id to retry.
"""
import logging

from app.core.errors import NotificationError
from app.db.session import SessionLocal
from app.services.push import send_push_for_notification

logger = logging.getLogger(__name__)


def run_push_for_notification_job(notification_id: str) -> None:
    db = SessionLocal()
    try:
        result = send_push_for_notification(db, notification_id)
        logger.info("Push job for %s: %s", notification_id, result)
    except NotificationError as e:
        logger.warning("Push job for %s failed (%s): %s", notification_id, e.status_code, e.to_body())
    except Exception as e:
        logger.exception("Push job for %s failed: %s", notification_id, e)
        db.rollback()
    finally:
        db.close()
