from app.services.notification_store import count_unread, create_notification_for_users, list_notifications
from app.services.push import send_push_for_notification

__all__ = ["count_unread", "create_notification_for_users", "list_notifications", "send_push_for_notification"]
