"""In-memory key/value store with per-entry TTL and LRU eviction."""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

from ..utils import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass
class CacheEntry(Generic[T]):
    """A cached value with its lifetime bookkeeping (epoch seconds)."""

    value: T
    created_at: float
    expires_at: float
    last_accessed_at: float

    def is_expired(self, now: float) -> bool:
        """Expired strictly after expires_at."""
        return now > self.expires_at


class TTLCache(Generic[T]):
    """Bounded TTL cache with lazy expiry and least-recently-used eviction.

    expires_at is fixed at insertion (created_at + ttl) and never extended by
    reads; reads only refresh last_accessed_at. Every public operation holds
    the lock for its whole read-modify-write.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int,
        name: str = "cache",
        clock: Optional[Clock] = None,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.name = name
        self._clock = clock or time.time
        self._store: dict[str, CacheEntry[T]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[T]:
        """Return the value for key, or None when absent or expired."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self.misses += 1
                return None

            now = self._clock()
            if entry.is_expired(now):
                del self._store[key]
                self.misses += 1
                logger.debug(f"{self.name}: expired {key}")
                return None

            entry.last_accessed_at = now
            self.hits += 1
            return entry.value

    def set(self, key: str, value: T) -> None:
        """Insert or replace an entry, evicting the LRU entry when full."""
        with self._lock:
            now = self._clock()
            if key not in self._store and len(self._store) >= self.max_entries:
                self._evict_lru()
            self._store[key] = CacheEntry(
                value=value,
                created_at=now,
                expires_at=now + self.ttl_seconds,
                last_accessed_at=now,
            )

    def peek(self, key: str) -> Optional[CacheEntry[T]]:
        """Entry for key without touching its access time or purging it."""
        with self._lock:
            return self._store.get(key)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._store.pop(key, None) is not None

    def sweep(self) -> int:
        """Purge all expired entries; returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._store.items() if e.is_expired(now)]
            for key in expired:
                del self._store[key]
        if expired:
            logger.debug(f"{self.name}: swept {len(expired)} expired entries")
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._store.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    @property
    def size(self) -> int:
        return len(self)

    def stats(self) -> dict:
        """Entry counts and hit/miss counters."""
        with self._lock:
            return {
                "entries": len(self._store),
                "capacity": self.max_entries,
                "ttlSeconds": self.ttl_seconds,
                "hits": self.hits,
                "misses": self.misses,
            }

    def _evict_lru(self) -> None:
        # Caller holds the lock. Ties go to the earliest-inserted entry.
        oldest_key: Optional[str] = None
        oldest_time = float("inf")
        for key, entry in self._store.items():
            if entry.last_accessed_at < oldest_time:
                oldest_time = entry.last_accessed_at
                oldest_key = key
        if oldest_key is not None:
            del self._store[oldest_key]
            logger.debug(f"{self.name}: evicted LRU entry {oldest_key}")
