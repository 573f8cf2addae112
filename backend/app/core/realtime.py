"""
In-process realtime change feed for the notifications table.

Store writes publish a ChangeEvent for the owning user; subscribers (live unread counters,
the WebSocket bridge) receive it on their own event loop. Events are a cue to refetch, never
a replacement for a fresh read: payloads may arrive out of order relative to queries.
publish() is safe to call from worker threads (sync routes, asyncio.to_thread).
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, AsyncIterator

logger = logging.getLogger(__name__)

EVENT_INSERT = "INSERT"
EVENT_UPDATE = "UPDATE"
EVENT_DELETE = "DELETE"

NOTIFICATIONS_TABLE = "notifications"


@dataclass(frozen=True)
class ChangeEvent:
    event: str
    table: str
    user_id: str
    record: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": "change",
            "event": self.event,
            "table": self.table,
            "user_id": self.user_id,
            "record": self.record,
        }


class Subscription:
    """Queue of change events for one user, bound to the loop that opened it."""

    def __init__(self, user_id: str, loop: asyncio.AbstractEventLoop) -> None:
        self.user_id = user_id
        self._loop = loop
        self._queue: asyncio.Queue[ChangeEvent | None] = asyncio.Queue()
        self.closed = False

    def deliver(self, event: ChangeEvent) -> None:
        if self.closed:
            return
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)
        except RuntimeError:
            # loop already closed; nothing left to wake
            self.closed = True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, None)
        except RuntimeError:
            pass

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self._queue.get()
        if event is None:
            raise StopAsyncIteration
        return event


class ChangeFeed:
    def __init__(self) -> None:
        self._subscribers: dict[str, set[Subscription]] = {}
        self._lock = Lock()

    @asynccontextmanager
    async def subscribe(self, user_id: str) -> AsyncIterator[Subscription]:
        """Open a subscription scoped to user_id; always removed on exit, including error exits."""
        sub = Subscription(user_id, asyncio.get_running_loop())
        with self._lock:
            self._subscribers.setdefault(user_id, set()).add(sub)
        logger.debug("Realtime: subscribed user %s", user_id)
        try:
            yield sub
        finally:
            with self._lock:
                subs = self._subscribers.get(user_id)
                if subs is not None:
                    subs.discard(sub)
                    if not subs:
                        del self._subscribers[user_id]
            sub.close()
            logger.debug("Realtime: unsubscribed user %s", user_id)

    def publish(self, event: ChangeEvent) -> int:
        """Fan the event out to the owner's subscribers. Returns how many were notified."""
        with self._lock:
            subs = list(self._subscribers.get(event.user_id, ()))
        for sub in subs:
            sub.deliver(event)
        return len(subs)

    def subscriber_count(self, user_id: str | None = None) -> int:
        with self._lock:
            if user_id is not None:
                return len(self._subscribers.get(user_id, ()))
            return sum(len(s) for s in self._subscribers.values())


change_feed = ChangeFeed()
