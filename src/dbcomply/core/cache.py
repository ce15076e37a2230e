"""In-memory TTL cache with single-flight fetches.

Concurrent `get_or_fetch` calls for the same key share one underlying fetch:
the first caller runs it, later callers block on the same Future. Entries are
never mutated in place; a refresh replaces the whole entry.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value and the time it was stored."""

    key: str
    data: T
    timestamp: float

    def is_valid(self, now: float, ttl: float) -> bool:
        return now - self.timestamp < ttl


class CatalogCache:
    """
    Thread-safe key/value cache with per-call TTL and request coalescing.

    A generation counter is bumped by `invalidate()`. Fetches that started
    before an invalidation still resolve their waiters, but do not store
    their (now stale) result.
    """

    def __init__(
        self,
        default_ttl: float = 300.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl = default_ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry[Any]] = {}
        self._in_flight: dict[str, Future] = {}
        self._generation = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str, ttl: float | None = None) -> Any | None:
        """Return the cached value for `key` if present and not expired."""
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_valid(self._clock(), ttl):
                return entry.data
        return None

    @property
    def generation(self) -> int:
        """Counter bumped by every `invalidate()`."""
        with self._lock:
            return self._generation

    def put(self, key: str, data: Any, *, generation: int | None = None) -> bool:
        """
        Store (replace) the entry for `key`.

        With `generation`, the write is dropped when the cache was
        invalidated since that generation was read. Returns whether it was
        stored.
        """
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            self._entries[key] = CacheEntry(key=key, data=data, timestamp=self._clock())
            return True

    def in_flight(self, key: str) -> Future | None:
        """Return the Future of a running fetch for `key`, if any."""
        with self._lock:
            return self._in_flight.get(key)

    def get_or_fetch(
        self,
        key: str,
        fetch_fn: Callable[[], T],
        ttl: float | None = None,
    ) -> T:
        """
        Return a fresh cached value, join a running fetch, or run `fetch_fn`.

        The in-flight marker is removed whether the fetch succeeds or fails;
        failures are raised to every waiter and are not cached.
        """
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_valid(self._clock(), ttl):
                return entry.data
            running = self._in_flight.get(key)
            if running is None:
                future: Future = Future()
                self._in_flight[key] = future
                generation = self._generation

        if running is not None:
            return running.result()

        try:
            data = fetch_fn()
        except BaseException as exc:
            with self._lock:
                if self._in_flight.get(key) is future:
                    del self._in_flight[key]
            future.set_exception(exc)
            raise

        with self._lock:
            if generation == self._generation:
                self._entries[key] = CacheEntry(
                    key=key, data=data, timestamp=self._clock()
                )
            if self._in_flight.get(key) is future:
                del self._in_flight[key]
        future.set_result(data)
        return data

    def invalidate(self, key_prefix: str | None = None) -> int:
        """
        Drop entries (and in-flight markers) whose key starts with
        `key_prefix`, or everything when no prefix is given.

        Returns the number of entries removed.
        """
        with self._lock:
            self._generation += 1
            if key_prefix is None:
                removed = len(self._entries)
                self._entries.clear()
                self._in_flight.clear()
                return removed
            doomed = [k for k in self._entries if k.startswith(key_prefix)]
            for k in doomed:
                del self._entries[k]
            for k in [k for k in self._in_flight if k.startswith(key_prefix)]:
                del self._in_flight[k]
            return len(doomed)
