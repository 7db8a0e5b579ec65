# core/similarity_cache.py

"""In-process TTL cache shared by the consolidation engine and the HS matcher."""

from __future__ import annotations
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


@dataclass
class CacheEntry(Generic[T]):
    value: T
    expiry: float

    def is_expired(self, now: float) -> bool:
        return now > self.expiry


class SimilarityCache:
    """
    Keyed store with per-entry expiry and a bounded entry count.

    The instance is owned by the caller and passed into whatever needs it;
    one cache per process (or per test) is the intended lifecycle.

    Parameters
    ----------
    max_entries :
        When a write pushes the store past this size, the single oldest
        entry by insertion order is evicted.
    default_ttl_seconds :
        TTL used when `set` is called without one.
    clock :
        Zero-argument callable returning seconds. Injected by tests.
    """

    def __init__(
        self,
        max_entries: int = 1000,
        default_ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry[Any]]" = OrderedDict()
        self._lock = threading.Lock()
        self._stats: Dict[str, int] = {
            "hits": 0,
            "misses": 0,
            "writes": 0,
            "evictions": 0,
            "expired": 0,
        }

    # ============================================================
    # Basic operations
    # ============================================================

    def _lookup(self, key: str) -> Any:
        # Caller holds the lock
        entry = self._entries.get(key)
        if entry is None:
            self._stats["misses"] += 1
            return _MISSING
        if entry.is_expired(self._clock()):
            del self._entries[key]
            self._stats["expired"] += 1
            self._stats["misses"] += 1
            return _MISSING
        self._stats["hits"] += 1
        return entry.value

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            value = self._lookup(key)
        return None if value is _MISSING else value

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            # Re-setting a key moves it to the newest position
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(value=value, expiry=self._clock() + ttl)
            self._stats["writes"] += 1
            if len(self._entries) > self.max_entries:
                oldest, _ = self._entries.popitem(last=False)
                self._stats["evictions"] += 1
                logger.debug("cache.evict key=%s", oldest)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [k for k in self._entries if k.startswith(prefix)]
            for k in keys:
                del self._entries[k]
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def cleanup(self) -> int:
        """Physically drop expired entries. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for k in expired:
                del self._entries[k]
            self._stats["expired"] += len(expired)
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            stats = dict(self._stats)
            stats["size"] = len(self._entries)
        return stats

    # ============================================================
    # Compute-through helpers
    # ============================================================

    def get_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], T],
        ttl_seconds: Optional[float] = None,
    ) -> T:
        """
        Return the cached value for `key`, computing and storing it on a miss.

        The lock is not held while `compute_fn` runs, so two callers racing
        on the same missing key may both compute; the later write wins.
        Exceptions from `compute_fn` propagate and nothing is stored.
        """
        with self._lock:
            value = self._lookup(key)
        if value is not _MISSING:
            return value
        value = compute_fn()
        self.set(key, value, ttl_seconds)
        return value

    async def aget_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], Awaitable[T]],
        ttl_seconds: Optional[float] = None,
    ) -> T:
        """Async twin of `get_or_compute` for coroutine-producing callables."""
        with self._lock:
            value = self._lookup(key)
        if value is not _MISSING:
            return value
        value = await compute_fn()
        self.set(key, value, ttl_seconds)
        return value
