from app.models.notification import Notification
from app.models.notification_preference import NotificationPreference
from app.models.push_token import PushToken

__all__ = [
    "Notification",
    "NotificationPreference",
    "PushToken",
]
