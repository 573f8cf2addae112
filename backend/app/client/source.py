"""Where the client layer reads and writes notifications. All clients see the same contract."""
import asyncio
from typing import Any, AsyncContextManager, Callable, Protocol

from sqlalchemy.orm import Session

from app.core.realtime import ChangeFeed, Subscription, change_feed
from app.db.session import SessionLocal
from app.schemas.notification import NotificationOut
from app.services import notification_store
from app.services.notification_format import notification_to_payload


class NotificationSource(Protocol):
    """Query surface of the notification store plus its change feed, scoped by owner."""

    async def list(
        self,
        user_id: str,
        *,
        limit: int,
        offset: int,
        notification_type: str | None,
        unread_only: bool,
    ) -> list[NotificationOut]:
        ...

    async def count_unread(self, user_id: str) -> int:
        ...

    async def mark_read(self, user_id: str, notification_id: str) -> None:
        ...

    async def mark_all_read(self, user_id: str) -> int:
        ...

    async def soft_delete(self, user_id: str, notification_id: str) -> None:
        ...

    def subscribe(self, user_id: str) -> AsyncContextManager[Subscription]:
        """Change events for the user's notifications; closed when the context exits."""
        ...


class StoreNotificationSource:
    """Runs the blocking store functions in worker threads, one short-lived session per call."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        feed: ChangeFeed = change_feed,
    ) -> None:
        self._session_factory = session_factory
        self._feed = feed

    def _call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        db = self._session_factory()
        try:
            return fn(db, *args, **kwargs)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def _run(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        return await asyncio.to_thread(self._call, fn, *args, **kwargs)

    async def list(
        self,
        user_id: str,
        *,
        limit: int,
        offset: int,
        notification_type: str | None,
        unread_only: bool,
    ) -> list[NotificationOut]:
        def query(db: Session) -> list[NotificationOut]:
            rows = notification_store.list_notifications(
                db,
                user_id,
                limit=limit,
                offset=offset,
                notification_type=notification_type,
                unread_only=unread_only,
            )
            return [NotificationOut.model_validate(notification_to_payload(r)) for r in rows]

        return await self._run(query)

    async def count_unread(self, user_id: str) -> int:
        return await self._run(notification_store.count_unread, user_id)

    async def mark_read(self, user_id: str, notification_id: str) -> None:
        await self._run(notification_store.mark_read, user_id, notification_id)

    async def mark_all_read(self, user_id: str) -> int:
        return await self._run(notification_store.mark_all_read, user_id)

    async def soft_delete(self, user_id: str, notification_id: str) -> None:
        await self._run(notification_store.soft_delete, user_id, notification_id)

    def subscribe(self, user_id: str) -> AsyncContextManager[Subscription]:
        return self._feed.subscribe(user_id)
