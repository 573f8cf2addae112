"""Row builders and a fake Expo gateway shared by the tests."""
import json
from datetime import datetime, timedelta, timezone

import httpx

from app.models.notification import Notification
from app.models.notification_preference import NotificationPreference
from app.models.push_token import PushToken

BASE_TIME = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def add_notification(
    db,
    user_id="user-1",
    *,
    minutes=0,
    notification_type="signal",
    title="EUR/USD buy",
    message="Entry at 1.0850",
    read=False,
    deleted=False,
    action_url=None,
    metadata=None,
    notification_id=None,
):
    """Insert a row directly with a controlled created_at (BASE_TIME + minutes)."""
    row = Notification(
        user_id=user_id,
        notification_type=notification_type,
        title=title,
        message=message,
        action_url=action_url,
        payload=metadata,
        read=read,
        deleted=deleted,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        read_at=BASE_TIME if read else None,
        deleted_at=BASE_TIME if deleted else None,
    )
    if notification_id:
        row.id = notification_id
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def add_tokens(db, user_id, count):
    for i in range(count):
        db.add(PushToken(user_id=user_id, expo_push_token=f"ExponentPushToken[{user_id}-{i}]", platform="ios"))
    db.commit()


def set_preference(db, user_id, **flags):
    db.add(NotificationPreference(user_id=user_id, **flags))
    db.commit()


class FakeGateway:
    """Stands in for the Expo push endpoint. Queue responses with respond(); default accepts all."""

    def __init__(self):
        self.batches = []
        self.headers = []
        self._responses = []

    def respond(self, status=200, body=None, *, timeout=False):
        self._responses.append((status, body, timeout))

    def handler(self, request: httpx.Request) -> httpx.Response:
        batch = json.loads(request.content)
        self.batches.append(batch)
        self.headers.append(request.headers)
        status, body, timeout = self._responses.pop(0) if self._responses else (200, None, False)
        if timeout:
            raise httpx.ReadTimeout("timed out", request=request)
        if body is None:
            body = {"data": [{"status": "ok", "id": f"ticket-{i}"} for i in range(len(batch))]}
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))
