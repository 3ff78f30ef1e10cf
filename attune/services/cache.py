"""
TTL caches for expensive idempotent computations.

Caches are advisory: losing one (process restart, eviction) only causes
recomputation. They are injected into the services that use them, and take
a `clock` so tests can move time deterministically.

Staleness is checked lazily at read time against the clock; nothing is
evicted in the background.

Public API
----------
TTLCache(ttl, clock, max_entries)        generic key → value store
SynthesisCache(ttl, clock, max_entries)  per-(user, day) attunement cache
utcnow()                                 default clock
"""
from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Generic, Hashable, Optional, TypeVar

T = TypeVar("T")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    cached_at: datetime


class TTLCache(Generic[T]):
    """Thread-safe in-process map with per-entry TTL and optional size bound."""

    def __init__(
        self,
        ttl: timedelta,
        clock: Clock = utcnow,
        max_entries: Optional[int] = None,
    ):
        self.ttl = ttl
        self._clock = clock
        self._max_entries = max_entries
        self._entries: OrderedDict[Hashable, CacheEntry[T]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[CacheEntry[T]]:
        """Return the live entry for `key`, or None. A stale entry is dropped."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.cached_at >= self.ttl:
                del self._entries[key]
                return None
            return entry

    def put(self, key: Hashable, value: T) -> CacheEntry[T]:
        """Store `value`, first evicting entries that have outlived the TTL."""
        entry = CacheEntry(value=value, cached_at=self._clock())
        with self._lock:
            self._entries.pop(key, None)
            # Entries are kept in write order, so the stale ones sit at the front.
            while self._entries:
                oldest = next(iter(self._entries.values()))
                if entry.cached_at - oldest.cached_at < self.ttl:
                    break
                self._entries.popitem(last=False)
            self._entries[key] = entry
            if self._max_entries is not None:
                while len(self._entries) > self._max_entries:
                    self._entries.popitem(last=False)
        return entry

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# ---------------------------------------------------------------------------
# Attunement cache
# ---------------------------------------------------------------------------

SYNTHESIS_CACHE_MAX_ENTRIES = 10_000


@dataclass(frozen=True)
class CachedAttunement:
    record: Any  # attune.services.attunement.AttunementResult
    cached_at: datetime


class SynthesisCache:
    """
    One synthesized attunement per (user, ISO day), valid for `ttl` after write.

    Not the source of the one-per-day invariant: the `daily_attunements`
    uniqueness constraint is.
    """

    def __init__(
        self,
        ttl: timedelta = timedelta(hours=24),
        clock: Clock = utcnow,
        max_entries: int = SYNTHESIS_CACHE_MAX_ENTRIES,
    ):
        self._cache: TTLCache[Any] = TTLCache(ttl=ttl, clock=clock, max_entries=max_entries)

    @property
    def ttl(self) -> timedelta:
        return self._cache.ttl

    @staticmethod
    def key(user_id: str, day: date) -> str:
        return f"attunement:{user_id}:{day.isoformat()}"

    def get(self, user_id: str, day: date) -> Optional[CachedAttunement]:
        entry = self._cache.get(self.key(user_id, day))
        if entry is None:
            return None
        return CachedAttunement(record=entry.value, cached_at=entry.cached_at)

    def put(self, user_id: str, day: date, record: Any) -> CachedAttunement:
        entry = self._cache.put(self.key(user_id, day), record)
        return CachedAttunement(record=entry.value, cached_at=entry.cached_at)

    def invalidate(self, user_id: str, day: date) -> None:
        self._cache.invalidate(self.key(user_id, day))

    def __len__(self) -> int:
        return len(self._cache)
