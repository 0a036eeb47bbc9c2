"""
In-memory TTL cache for decoded registry results.
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional

from shared.logging import get_logger


DEFAULT_TTL_SECONDS = 300.0
DEFAULT_MAX_ENTRIES = 1000


@dataclass(frozen=True)
class CacheEntry:
    """Cached value with its freshness window."""
    value: Any
    inserted_at: float
    ttl: float
    fetched_at: float

    def is_expired(self, now: float) -> bool:
        return now - self.inserted_at > self.ttl


class TTLCache:
    """TTL-bounded key/value store with FIFO eviction.

    Entries expire ``ttl`` seconds after insertion regardless of access and are
    dropped lazily when read. When full, expired entries go first, then the
    least recently inserted one. A write produced by a fetch that started
    before the stored entry's fetch is ignored, so a slow response can never
    replace a fresher value.
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: "OrderedDict[Hashable, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._stats = {"hits": 0, "misses": 0, "evictions": 0, "expirations": 0, "stale_writes": 0}
        self.logger = get_logger("registry.cache")

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats["misses"] += 1
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._stats["expirations"] += 1
                self._stats["misses"] += 1
                return None
            self._stats["hits"] += 1
            return entry.value

    def put(self, key: Hashable, value: Any, ttl: Optional[float] = None,
            fetched_at: Optional[float] = None) -> bool:
        """Store ``value``; returns False when a fresher entry is kept instead."""
        with self._lock:
            now = self._clock()
            fetched_at = now if fetched_at is None else fetched_at
            current = self._entries.get(key)
            if current is not None and not current.is_expired(now) and current.fetched_at > fetched_at:
                self._stats["stale_writes"] += 1
                self.logger.debug("Ignoring stale cache write", key=str(key))
                return False

            self._entries.pop(key, None)
            if len(self._entries) >= self.max_entries:
                self._purge_expired_locked(now)
            while len(self._entries) >= self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self._stats["evictions"] += 1
                self.logger.debug("Evicted cache entry", key=str(evicted))

            self._entries[key] = CacheEntry(
                value=value,
                inserted_at=now,
                ttl=self.default_ttl if ttl is None else ttl,
                fetched_at=fetched_at,
            )
            return True

    def invalidate(self, key: Hashable) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        with self._lock:
            return self._purge_expired_locked(self._clock())

    def _purge_expired_locked(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        self._stats["expirations"] += len(expired)
        return len(expired)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {**self._stats, "size": len(self._entries)}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
