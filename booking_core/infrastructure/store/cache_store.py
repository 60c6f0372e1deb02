from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

V = TypeVar("V")


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    key: str
    value: V
    cached_at: float
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    size: int
    evictions: int


class CacheStore(Generic[V]):
    """In-memory TTL cache for availability and pricing lookups.

    The store never fetches anything itself; callers check it, and on a miss
    do the lookup and `put` the result. Expired entries read as a miss and are
    evicted on access.
    """

    def __init__(self, default_ttl: float, clock: Callable[[], float] = time.time, name: str = "cache") -> None:
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self._entries: dict[str, CacheEntry[V]] = {}
        self._default_ttl = default_ttl
        self._clock = clock
        self._name = name
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._lock = threading.RLock()
        self._logger = logging.getLogger(__name__)

    def get(self, key: str) -> V | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if not entry.is_valid(self._clock()):
                del self._entries[key]
                self._evictions += 1
                self._misses += 1
                self._logger.debug("Cache entry expired", extra={"cache_key": key, "cache": self._name})
                return None
            self._hits += 1
            return entry.value

    def put(self, key: str, value: V, ttl: float | None = None) -> CacheEntry[V]:
        ttl = self._default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        now = self._clock()
        entry = CacheEntry(key=key, value=value, cached_at=now, expires_at=now + ttl)
        with self._lock:
            self._entries[key] = entry
        return entry

    def contains(self, key: str) -> bool:
        """Check for a live entry without touching hit/miss counters."""
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and entry.is_valid(self._clock())

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for k in doomed:
                del self._entries[k]
            return len(doomed)

    def clean_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, entry in self._entries.items() if not entry.is_valid(now)]
            for k in expired:
                del self._entries[k]
            self._evictions += len(expired)
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                size=len(self._entries),
                evictions=self._evictions,
            )
