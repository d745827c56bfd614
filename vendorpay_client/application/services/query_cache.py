"""
In-memory query cache.

One cache instance is shared by every consumer of a client container. Entries
are addressed by tuple keys built from the key factories in
``shared.utils.constants`` (entity kind, scope, filter descriptor or id) and
every prefix-based operation matches keys by tuple prefix, so
``("invoices",)`` covers every invoice list, detail and activity entry.

All operations except ``fetch`` and ``drain`` are synchronous: reads, writes,
snapshots and restores never suspend. Background refetches run as asyncio
tasks on the running loop.
"""
import asyncio
import copy
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from shared.utils.constants import QueryKey
from shared.utils.logging_config import get_logger

logger = get_logger(__name__)

Fetcher = Callable[[], Awaitable[Any]]
ErrorCallback = Callable[[Exception], None]


def key_matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[:len(prefix)] == prefix


@dataclass
class CacheEntry:
    value: Any
    updated_at: float
    is_stale: bool = False


@dataclass(frozen=True)
class CacheSnapshot:
    """Values captured under a key prefix, used to roll back optimistic writes."""
    prefix: QueryKey
    entries: Dict[QueryKey, CacheEntry]


class QueryObserver:
    """A displayed query. Invalidating its key schedules a refetch."""

    def __init__(self, cache: "QueryCache", key: QueryKey, fetcher: Fetcher,
                 on_error: Optional[ErrorCallback] = None):
        self.cache = cache
        self.key = key
        self.fetcher = fetcher
        self.on_error = on_error
        self.active = True

    def close(self) -> None:
        """Stop observing. In-flight refetches still write their result."""
        if self.active:
            self.active = False
            self.cache._remove_observer(self)


class QueryCache:

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[QueryKey, CacheEntry] = {}
        self._observers: Dict[QueryKey, List[QueryObserver]] = {}
        self._generations: Dict[QueryKey, int] = {}
        self._pending: Set[asyncio.Task] = set()

    # ========== READ / WRITE ==========

    def read(self, key: QueryKey) -> Any:
        """Return the last known value, or None if the key was never fetched."""
        entry = self._entries.get(key)
        return None if entry is None else entry.value

    def contains(self, key: QueryKey) -> bool:
        return key in self._entries

    def keys(self, prefix: QueryKey = ()) -> List[QueryKey]:
        return [key for key in self._entries if key_matches(key, prefix)]

    def write(self, key: QueryKey, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, updated_at=self._clock())

    def update(self, prefix: QueryKey, transform: Callable[[QueryKey, Any], Any]) -> int:
        """
        Apply a pure ``(key, value) -> value`` transform to every cached key
        under ``prefix``. Returns the number of entries that changed.
        """
        changed = 0
        for key in self.keys(prefix):
            current = self._entries[key].value
            new_value = transform(key, current)
            if new_value is not current:
                self.write(key, new_value)
                changed += 1
        return changed

    def remove(self, prefix: QueryKey) -> None:
        """Purge every key under prefix."""
        for key in self.keys(prefix):
            del self._entries[key]
        self.cancel(prefix)

    def clear(self) -> None:
        self.remove(())

    def is_stale(self, key: QueryKey, stale_time: Optional[float] = None) -> bool:
        entry = self._entries.get(key)
        if entry is None or entry.is_stale:
            return True
        if stale_time is not None:
            return self._clock() - entry.updated_at >= stale_time
        return False

    # ========== SNAPSHOT / RESTORE ==========

    def snapshot(self, prefix: QueryKey) -> CacheSnapshot:
        entries = {
            key: CacheEntry(copy.deepcopy(entry.value), entry.updated_at, entry.is_stale)
            for key, entry in self._entries.items()
            if key_matches(key, prefix)
        }
        return CacheSnapshot(prefix=prefix, entries=entries)

    def restore(self, snapshot: CacheSnapshot) -> None:
        """Replace everything under the snapshot prefix with the captured values."""
        for key in self.keys(snapshot.prefix):
            if key not in snapshot.entries:
                del self._entries[key]
        for key, entry in snapshot.entries.items():
            self._entries[key] = CacheEntry(copy.deepcopy(entry.value), entry.updated_at, entry.is_stale)
        logger.debug("Cache restored", extra={"prefix": snapshot.prefix, "entries": len(snapshot.entries)})

    # ========== FETCHING ==========

    async def fetch(self, key: QueryKey, fetcher: Fetcher, stale_time: Optional[float] = None,
                    force: bool = False) -> Any:
        """
        Return the cached value when fresh, otherwise fetch and store it.

        Fetch errors propagate and leave the cached value untouched.
        """
        if not force and not self.is_stale(key, stale_time):
            return self.read(key)
        return await self._run_fetch(key, fetcher)

    def cancel(self, prefix: QueryKey) -> None:
        """Discard the results of in-flight fetches under prefix."""
        for key in list(self._generations):
            if key_matches(key, prefix):
                self._generations[key] += 1

    async def _run_fetch(self, key: QueryKey, fetcher: Fetcher) -> Any:
        generation = self._generations.get(key, 0) + 1
        self._generations[key] = generation
        result = await fetcher()
        if self._generations.get(key) == generation:
            self.write(key, result)
        else:
            logger.debug("Discarding superseded fetch result", extra={"key": key})
        return result

    # ========== OBSERVERS / INVALIDATION ==========

    def observe(self, key: QueryKey, fetcher: Fetcher, on_error: Optional[ErrorCallback] = None) -> QueryObserver:
        observer = QueryObserver(self, key, fetcher, on_error)
        self._observers.setdefault(key, []).append(observer)
        return observer

    def is_observed(self, key: QueryKey) -> bool:
        return bool(self._observers.get(key))

    def _remove_observer(self, observer: QueryObserver) -> None:
        observers = self._observers.get(observer.key, [])
        if observer in observers:
            observers.remove(observer)
        if not observers:
            self._observers.pop(observer.key, None)

    def invalidate(self, prefix: QueryKey) -> List[asyncio.Task]:
        """
        Mark every key under prefix stale and refetch the observed ones in the
        background. Returns the scheduled refetch tasks.
        """
        for key in self.keys(prefix):
            self._entries[key].is_stale = True

        observed = [key for key in self._observers if key_matches(key, prefix)]
        if not observed:
            return []

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, refetch deferred to next read", extra={"prefix": prefix})
            return []

        tasks = []
        for key in observed:
            task = loop.create_task(self._refetch(key, self._observers[key][0].fetcher))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            tasks.append(task)
        logger.debug("Scheduled refetches", extra={"prefix": prefix, "count": len(tasks)})
        return tasks

    async def _refetch(self, key: QueryKey, fetcher: Fetcher) -> None:
        try:
            await self._run_fetch(key, fetcher)
        except Exception as e:
            logger.warning("Background refetch failed", extra={"key": key, "error_details": str(e)})
            for observer in list(self._observers.get(key, [])):
                if observer.active and observer.on_error is not None:
                    observer.on_error(e)

    async def drain(self) -> None:
        """Wait for every scheduled refetch to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
