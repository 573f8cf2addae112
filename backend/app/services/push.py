"""
Send push notifications for one stored notification via the Expo push service.

Flow: load the notification, check the owner's preference for its type, load the owner's
device tokens, then POST the messages to Expo in batches of PUSH_BATCH_SIZE. Nothing is
retried here; callers re-invoke with the same id (duplicate pushes are acceptable).
Set EXPO_ACCESS_TOKEN in env only if enhanced push security is enabled for the project.
"""
import logging
from typing import Any, Iterator

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.core.errors import MSG_NOTIFICATION_ID_REQUIRED, InvalidRequestError, NotificationNotFoundError, PushGatewayError
from app.models.notification import Notification
from app.services.notification_store import get_notification
from app.services.preferences_service import is_push_enabled
from app.services.push_token_service import get_push_tokens

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL_ID = "default"
MSG_SKIPPED_DISABLED = "user disabled push for this type"
MSG_NO_TOKENS = "No push tokens for user"


def _gateway_headers() -> dict[str, str]:
    headers = {
        "Accept": "application/json",
        "Accept-Encoding": "gzip, deflate",
        "Content-Type": "application/json",
    }
    if settings.expo_access_token:
        headers["Authorization"] = f"Bearer {settings.expo_access_token}"
    return headers


def _gateway_client() -> httpx.Client:
    return httpx.Client(timeout=settings.push_timeout_seconds)


def build_push_messages(row: Notification, tokens: list[str]) -> list[dict[str, Any]]:
    """One message per token; every message carries the same content."""
    data: dict[str, Any] = {
        "notification_id": row.id,
        "notification_type": row.notification_type,
    }
    # Absent optional values are left out of the payload entirely
    if row.action_url is not None:
        data["action_url"] = row.action_url
    if row.payload is not None:
        data["metadata"] = row.payload
    return [
        {
            "to": token,
            "title": row.title,
            "body": row.message,
            "sound": "default",
            "data": data,
            "channelId": DEFAULT_CHANNEL_ID,
        }
        for token in tokens
    ]


def batched(items: list[Any], size: int) -> Iterator[list[Any]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


def count_accepted(result: Any) -> int:
    """Count tickets with status 'ok'. Expo returns `data` as a list, or a single object for one message."""
    data = result.get("data") if isinstance(result, dict) else None
    if isinstance(data, list):
        return sum(1 for t in data if isinstance(t, dict) and t.get("status") == "ok")
    if isinstance(data, dict):
        return 1 if data.get("status") == "ok" else 0
    return 0


def send_expo_batches(
    messages: list[dict[str, Any]],
    client: httpx.Client,
    *,
    url: str | None = None,
    batch_size: int | None = None,
) -> int:
    """
    POST messages to Expo, one request per batch, in order.
    The first failed batch raises PushGatewayError and later batches are not attempted;
    batches already accepted stay sent. Returns the number of 'ok' tickets.
    """
    url = url or settings.expo_push_url
    batch_size = batch_size or settings.push_batch_size
    total_sent = 0
    for n, batch in enumerate(batched(messages, batch_size), start=1):
        try:
            resp = client.post(url, json=batch, headers=_gateway_headers())
        except httpx.TimeoutException as e:
            logger.warning("Expo push batch %s timed out: %s", n, e)
            raise PushGatewayError(f"Push gateway timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.warning("Expo push batch %s request failed: %s", n, e)
            raise PushGatewayError(str(e)) from e
        if not resp.is_success:
            logger.warning("Expo push error: %s %s", resp.status_code, resp.text)
            raise PushGatewayError(resp.text, gateway_status=resp.status_code)
        try:
            result = resp.json()
        except ValueError:
            logger.warning("Expo push batch %s: response was not JSON; counting 0 accepted", n)
            result = {}
        total_sent += count_accepted(result)
    return total_sent


def send_push_for_notification(
    db: Session,
    notification_id: Any,
    *,
    client: httpx.Client | None = None,
) -> dict[str, Any]:
    """
    Fan one notification out to all of its owner's devices.

    Returns the JSON body of a 200 response:
      {"skipped": ...}                        preference explicitly disabled
      {"sent": 0, "message": ...}             no registered tokens
      {"sent": <accepted>, "tokens": <total>} after dispatch
    Raises InvalidRequestError (400), NotificationNotFoundError (404), PushGatewayError (502).
    """
    notification_id = str(notification_id).strip() if notification_id is not None else ""
    if not notification_id:
        raise InvalidRequestError(MSG_NOTIFICATION_ID_REQUIRED)

    try:
        row = get_notification(db, notification_id)
    except SQLAlchemyError as e:
        logger.error("Notification fetch error for %s: %s", notification_id, e)
        db.rollback()
        row = None
    if row is None:
        raise NotificationNotFoundError()

    if not is_push_enabled(db, row.user_id, row.notification_type):
        logger.info("Push skipped for %s: user %s disabled %s", row.id, row.user_id, row.notification_type)
        return {"skipped": MSG_SKIPPED_DISABLED}

    tokens = get_push_tokens(db, row.user_id)
    if not tokens:
        return {"sent": 0, "message": MSG_NO_TOKENS}

    messages = build_push_messages(row, tokens)
    if client is not None:
        sent = send_expo_batches(messages, client)
    else:
        with _gateway_client() as c:
            sent = send_expo_batches(messages, c)
    logger.info("Push for %s: %s of %s messages accepted", row.id, sent, len(messages))
    return {"sent": sent, "tokens": len(messages)}
