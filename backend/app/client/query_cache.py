"""
Read-through, write-invalidate query cache for the async client layer.

Keys are tuples whose first element names the query family ("notifications",
"notifications-unread-count") followed by the effective parameters, so different
filter combinations never share an entry.

Every invalidation bumps the key's generation. A fetch only writes its result if the
generation it started under is still current, so a slow fetch that finishes after a
newer invalidation cannot put stale data back. A fetch whose callers have all gone
away (cancelled) is cancelled and writes nothing.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable

logger = logging.getLogger(__name__)

QueryKey = tuple[Any, ...]


class _Entry:
    __slots__ = ("data", "has_data", "stale", "generation")

    def __init__(self) -> None:
        self.data: Any = None
        self.has_data = False
        self.stale = True
        self.generation = 0


class _InFlight:
    __slots__ = ("task", "generation", "waiters")

    def __init__(self, generation: int) -> None:
        self.task: asyncio.Task | None = None
        self.generation = generation
        self.waiters = 0


def _matches(key: QueryKey, prefix: str | QueryKey) -> bool:
    if isinstance(prefix, str):
        return bool(key) and key[0] == prefix
    return key[: len(prefix)] == prefix


class QueryCache:
    def __init__(self) -> None:
        self._entries: dict[QueryKey, _Entry] = {}
        self._inflight: dict[QueryKey, _InFlight] = {}

    def _entry(self, key: QueryKey) -> _Entry:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry()
        return entry

    def get(self, key: QueryKey) -> Any | None:
        """Last stored data for key (fresh or stale), or None."""
        entry = self._entries.get(key)
        return entry.data if entry is not None and entry.has_data else None

    def is_stale(self, key: QueryKey) -> bool:
        entry = self._entries.get(key)
        return entry is None or entry.stale

    def keys(self) -> list[QueryKey]:
        return [k for k, e in self._entries.items() if e.has_data]

    def _start(self, key: QueryKey, fn: Callable[[], Awaitable[Any]]) -> _InFlight:
        entry = self._entry(key)
        inflight = _InFlight(entry.generation)

        async def run() -> Any:
            try:
                data = await fn()
            finally:
                if self._inflight.get(key) is inflight:
                    del self._inflight[key]
            current = self._entry(key)
            if current.generation == inflight.generation:
                current.data = data
                current.has_data = True
                current.stale = False
            else:
                logger.debug("Query %s: dropped result from generation %s", key, inflight.generation)
            return data

        inflight.task = asyncio.create_task(run())
        self._inflight[key] = inflight
        return inflight

    async def fetch(self, key: QueryKey, fn: Callable[[], Awaitable[Any]]) -> Any:
        """
        Return fresh cached data for key, or run fn (shared with concurrent callers of
        the same key) and cache its result. Errors propagate and leave the cache as it was.
        """
        entry = self._entries.get(key)
        if entry is not None and entry.has_data and not entry.stale:
            return entry.data
        inflight = self._inflight.get(key)
        if inflight is None or inflight.task.done() or inflight.generation != self._entry(key).generation:
            inflight = self._start(key, fn)
        inflight.waiters += 1
        try:
            return await asyncio.shield(inflight.task)
        finally:
            inflight.waiters -= 1
            if inflight.waiters == 0 and not inflight.task.done():
                inflight.task.cancel()

    def invalidate(self, prefix: str | QueryKey) -> int:
        """Mark every matching entry stale; in-flight fetches for them will not write."""
        n = 0
        for key, entry in self._entries.items():
            if _matches(key, prefix):
                entry.stale = True
                entry.generation += 1
                n += 1
        return n

    def cancel(self, prefix: str | QueryKey, *, keep: Iterable[QueryKey] = ()) -> int:
        """
        Cancel in-flight fetches for matching keys (e.g. the view that wanted them is gone).
        Keys in `keep` are left running because another consumer still needs them.
        """
        keep = set(keep)
        n = 0
        for key, inflight in list(self._inflight.items()):
            if key in keep or not _matches(key, prefix):
                continue
            # a task cancelled before its first step never reaches its own cleanup
            del self._inflight[key]
            if inflight.task is not None and not inflight.task.done():
                inflight.task.cancel()
                n += 1
        return n

    def clear(self) -> None:
        self.cancel(())
        self._entries.clear()
