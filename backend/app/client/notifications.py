"""
Async client layer used by UI surfaces: cached notification queries, mutations that
invalidate them, and a live unread counter driven by the realtime change feed.

Queries are disabled (not executed) while there is no signed-in session. Mutations
report failures through the notifier and leave cached data untouched; nothing retries.
"""
import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Protocol

from app.client.query_cache import QueryCache
from app.client.source import NotificationSource
from app.core.errors import AuthenticationRequiredError, NotificationMutationError
from app.core.realtime import EVENT_INSERT
from app.schemas.notification import NotificationOut

logger = logging.getLogger(__name__)

LIST_QUERY = "notifications"
UNREAD_COUNT_QUERY = "notifications-unread-count"

MSG_ALL_READ = "All notifications marked as read"
MSG_DELETED = "Notification deleted"
MSG_MARK_READ_FAILED = "Failed to mark notification as read"
MSG_MARK_ALL_FAILED = "Failed to mark all as read"
MSG_DELETE_FAILED = "Failed to delete notification"


@dataclass(frozen=True)
class ClientSession:
    """Signed-in identity handed over by the auth layer."""

    user_id: str
    access_token: str | None = None


class Notifier(Protocol):
    """User-visible notices (toasts, banners, status line)."""

    def success(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


class LoggingNotifier:
    def success(self, message: str) -> None:
        logger.info(message)

    def error(self, message: str) -> None:
        logger.warning(message)


class NotificationClient:
    def __init__(
        self,
        source: NotificationSource,
        session: ClientSession | None = None,
        *,
        cache: QueryCache | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.source = source
        self.session = session
        self.cache = cache or QueryCache()
        self.notifier = notifier or LoggingNotifier()
        self._counters: set["UnreadCounter"] = set()

    @property
    def user_id(self) -> str | None:
        return self.session.user_id if self.session else None

    async def set_session(self, session: ClientSession | None) -> None:
        """Switch identity (sign-in, sign-out, account change). Live counters follow the new user."""
        previous = self.user_id
        self.session = session
        if self.user_id == previous:
            return
        self.cancel_queries()
        for counter in list(self._counters):
            await counter.rebind(self.user_id)

    # --- Queries ---

    @staticmethod
    def list_key(
        user_id: str | None,
        limit: int,
        offset: int,
        notification_type: str | None,
        unread_only: bool,
    ) -> tuple[Any, ...]:
        return (LIST_QUERY, user_id, limit, offset, notification_type, unread_only)

    async def list_notifications(
        self,
        *,
        limit: int = 10,
        offset: int = 0,
        notification_type: str | None = None,
        unread_only: bool = False,
    ) -> list[NotificationOut] | None:
        """Newest first, deleted excluded. None (and no query at all) when signed out."""
        user_id = self.user_id
        if not user_id:
            return None
        key = self.list_key(user_id, limit, offset, notification_type, unread_only)
        return await self.cache.fetch(
            key,
            lambda: self.source.list(
                user_id,
                limit=limit,
                offset=offset,
                notification_type=notification_type,
                unread_only=unread_only,
            ),
        )

    async def unread_count(self) -> int:
        user_id = self.user_id
        if not user_id:
            return 0
        return await self._fetch_unread_count(user_id)

    async def _fetch_unread_count(self, user_id: str) -> int:
        return await self.cache.fetch(
            (UNREAD_COUNT_QUERY, user_id),
            lambda: self.source.count_unread(user_id),
        )

    def cancel_queries(self) -> None:
        """
        Drop in-flight queries whose results are no longer wanted (view closed, params changed).
        Recounts owned by live unread counters keep running.
        """
        watched = [(UNREAD_COUNT_QUERY, c.user_id) for c in self._counters if c.user_id]
        self.cache.cancel(LIST_QUERY)
        self.cache.cancel(UNREAD_COUNT_QUERY, keep=watched)

    def invalidate(self) -> None:
        self.cache.invalidate(LIST_QUERY)
        self.cache.invalidate(UNREAD_COUNT_QUERY)

    def invalidate_user(self, user_id: str) -> None:
        """Mark both query families of one user stale (a change event arrived for them)."""
        self.cache.invalidate((LIST_QUERY, user_id))
        self.cache.invalidate((UNREAD_COUNT_QUERY, user_id))

    @contextlib.asynccontextmanager
    async def listen(
        self,
        on_new_notification: Callable[[dict[str, Any]], None] | None = None,
    ) -> AsyncIterator[None]:
        """
        async with client.listen(on_new_notification=...): cached lists and counts of the
        current user go stale on every change event, and inserts are handed to the callback.
        Signed out, the block runs without a subscription.
        """
        user_id = self.user_id
        if not user_id:
            yield
            return
        ready = asyncio.Event()
        task = asyncio.create_task(self._follow_changes(user_id, ready, on_new_notification))
        try:
            await ready.wait()
            if task.done():
                await task
            yield
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _follow_changes(
        self,
        user_id: str,
        ready: asyncio.Event,
        on_new_notification: Callable[[dict[str, Any]], None] | None,
    ) -> None:
        try:
            async with self.source.subscribe(user_id) as sub:
                ready.set()
                async for event in sub:
                    self.invalidate_user(user_id)
                    if event.event == EVENT_INSERT and on_new_notification:
                        on_new_notification(event.record)
        finally:
            ready.set()

    # --- Mutations ---

    def _require_user(self) -> str:
        if not self.user_id:
            raise AuthenticationRequiredError()
        return self.user_id

    async def _mutate(
        self,
        op: Callable[[str], Awaitable[Any]],
        failure_message: str,
        success_message: str | None = None,
    ) -> Any:
        try:
            result = await op(self._require_user())
        except Exception as e:
            message = getattr(e, "message", None) or str(e) or failure_message
            self.notifier.error(message)
            raise NotificationMutationError(message) from e
        # Both query families may now be wrong; mark them stale before reporting success
        self.invalidate()
        for counter in list(self._counters):
            await counter.refresh()
        if success_message:
            self.notifier.success(success_message)
        return result

    async def mark_as_read(self, notification_id: str) -> None:
        await self._mutate(
            lambda uid: self.source.mark_read(uid, notification_id),
            MSG_MARK_READ_FAILED,
        )

    async def mark_all_as_read(self) -> int:
        """Returns how many notifications changed (0 when everything was already read)."""
        return await self._mutate(self.source.mark_all_read, MSG_MARK_ALL_FAILED, MSG_ALL_READ)

    async def delete_notification(self, notification_id: str) -> None:
        await self._mutate(
            lambda uid: self.source.soft_delete(uid, notification_id),
            MSG_DELETE_FAILED,
            MSG_DELETED,
        )

    # --- Live unread count ---

    def watch_unread_count(self, on_change: Callable[[int], None] | None = None) -> "UnreadCounter":
        """
        async with client.watch_unread_count() as counter: ... counter.value stays current.
        The realtime subscription is closed when the block exits, however it exits.
        """
        return UnreadCounter(self, on_change=on_change)


class UnreadCounter:
    """
    Unread count kept live by the change feed. Every event triggers a full recount
    (never +1/-1), so missed or reordered events cannot drift the number.
    """

    def __init__(self, client: NotificationClient, on_change: Callable[[int], None] | None = None) -> None:
        self._client = client
        self._on_change = on_change
        self._user_id: str | None = None
        self._task: asyncio.Task | None = None
        self._seq = 0
        self.value = 0

    async def __aenter__(self) -> "UnreadCounter":
        self._client._counters.add(self)
        try:
            await self._start(self._client.user_id)
        except BaseException:
            self._client._counters.discard(self)
            await self._stop()
            raise
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self._client._counters.discard(self)
        await self._stop()

    @property
    def subscribed(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def user_id(self) -> str | None:
        return self._user_id

    def _set(self, value: int) -> None:
        changed = value != self.value
        self.value = value
        if changed and self._on_change:
            self._on_change(value)

    async def _start(self, user_id: str | None) -> None:
        self._user_id = user_id
        if not user_id:
            self._set(0)
            return
        ready = asyncio.Event()
        self._task = asyncio.create_task(self._listen(user_id, ready))
        await ready.wait()
        if self._task.done():
            # subscription failed to open; surface the error
            await self._task
        await self.refresh()

    async def _stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _listen(self, user_id: str, ready: asyncio.Event) -> None:
        try:
            async with self._client.source.subscribe(user_id) as sub:
                ready.set()
                async for event in sub:
                    logger.debug("Unread counter: %s on %s, recounting", event.event, event.table)
                    # Any change can move rows in or out of a cached page, not just the count
                    self._client.invalidate_user(user_id)
                    await self.refresh()
        finally:
            ready.set()

    async def rebind(self, user_id: str | None) -> None:
        """Close the subscription for the old identity and open one for the new."""
        await self._stop()
        await self._start(user_id)

    async def refresh(self) -> int:
        """Recount from the store. A failed recount keeps the last value; the next event retries."""
        user_id = self._user_id
        if not user_id:
            return self.value
        self._seq += 1
        seq = self._seq
        self._client.cache.invalidate((UNREAD_COUNT_QUERY, user_id))
        try:
            count = await self._client._fetch_unread_count(user_id)
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
            # the shared fetch was cancelled under us; the counter itself stays live
            logger.debug("Unread count refresh for %s was cancelled; keeping %s", user_id, self.value)
            return self.value
        except Exception as e:
            logger.warning("Unread count refresh failed for %s: %s", user_id, e)
            return self.value
        # Only the most recently started recount for the current identity may land
        if seq == self._seq and user_id == self._user_id:
            self._set(count)
        return self.value
