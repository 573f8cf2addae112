from app.client.notifications import (
    ClientSession,
    LoggingNotifier,
    NotificationClient,
    Notifier,
    UnreadCounter,
)
from app.client.query_cache import QueryCache
from app.client.source import NotificationSource, StoreNotificationSource

__all__ = [
    "ClientSession",
    "LoggingNotifier",
    "NotificationClient",
    "NotificationSource",
    "Notifier",
    "QueryCache",
    "StoreNotificationSource",
    "UnreadCounter",
]
