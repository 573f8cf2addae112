from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel

NotificationType = Literal["signal", "event", "announcement", "system"]


class NotificationOut(BaseModel):
    id: str
    user_id: str
    notification_type: NotificationType
    title: str
    message: str
    action_url: str | None = None
    metadata: dict[str, Any] | None = None
    read: bool = False
    deleted: bool = False
    created_at: datetime
    read_at: datetime | None = None
    deleted_at: datetime | None = None
