"""
TTL cache owned by the reference acquisitor.

Expiry is checked on read. Expired entries stay in place so the acquisitor
can still fall back to them explicitly with ``allow_stale``; they are only
dropped when the cache reaches ``max_entries``, expired ones first and then
the oldest.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, Optional, TypeVar

from ..config import constants

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    value: V
    stored_at: float


class TTLCache(Generic[K, V]):
    """
    Thread-safe, size-bounded mapping with per-entry time-to-live.

    Example:
        cache = TTLCache(ttl_s=1800)
        cache.set("ai regulation", articles)
        cache.get("ai regulation")                    # None once expired
        cache.get("ai regulation", allow_stale=True)  # still returns the old value
    """

    def __init__(
        self,
        ttl_s: float,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = constants.REFERENCE_CACHE_MAX_ENTRIES,
    ) -> None:
        if ttl_s <= 0:
            raise ValueError("ttl_s must be positive")
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl_s = ttl_s
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[K, CacheEntry[V]] = {}
        self._lock = threading.Lock()

    def get(self, key: K, allow_stale: bool = False) -> Optional[V]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not allow_stale and self._is_expired(entry):
                return None
            return entry.value

    def set(self, key: K, value: V) -> None:
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                self._evict_locked()
            self._entries[key] = CacheEntry(value=value, stored_at=self._clock())

    def invalidate(self, key: K) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def purge_expired(self) -> int:
        """Drop expired entries, returning how many were removed."""
        with self._lock:
            return self._purge_expired_locked()

    def __contains__(self, key: object) -> bool:
        return self.get(key) is not None  # type: ignore[arg-type]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict_locked(self) -> None:
        if self._purge_expired_locked():
            return
        oldest = min(self._entries, key=lambda k: self._entries[k].stored_at)
        del self._entries[oldest]

    def _purge_expired_locked(self) -> int:
        expired = [k for k, entry in self._entries.items() if self._is_expired(entry)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _is_expired(self, entry: CacheEntry[V]) -> bool:
        return self._clock() - entry.stored_at >= self.ttl_s
