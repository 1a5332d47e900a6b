# buildapp/utils/ttl_cache.py
"""
Bounded cache with LRU eviction and a time-to-live.

Instances are created by their owners and passed in as dependencies, so a
test can build one with a fake clock and clear it whenever it needs to.
"""
import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Hashable, Optional

logger = logging.getLogger(__name__)

_MISSING = object()


class BoundedTTLCache:
    def __init__(
        self,
        maxsize: int = 10000,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            maxsize: Maximum number of entries before LRU eviction
            ttl_seconds: Age after which an entry is treated as missing
            clock: Source of monotonic seconds
        """
        self.maxsize = maxsize
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: OrderedDict = OrderedDict()
        self._timestamps: Dict[Hashable, float] = {}
        self._lock = threading.Lock()
        self._stats = {
            "hits": 0,
            "misses": 0,
            "evictions": 0,
            "expired": 0,
        }

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            if key not in self._cache:
                self._stats["misses"] += 1
                return default

            if self._clock() - self._timestamps[key] > self.ttl_seconds:
                self._remove_key(key)
                self._stats["expired"] += 1
                self._stats["misses"] += 1
                return default

            self._cache.move_to_end(key)
            self._stats["hits"] += 1
            return self._cache[key]

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            now = self._clock()

            if key in self._cache:
                self._cache[key] = value
                self._timestamps[key] = now
                self._cache.move_to_end(key)
                return

            while len(self._cache) >= self.maxsize:
                oldest_key = next(iter(self._cache))
                self._remove_key(oldest_key)
                self._stats["evictions"] += 1
                logger.debug(f"LRU eviction: removed {oldest_key}")

            self._cache[key] = value
            self._timestamps[key] = now

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        """Return the cached value, calling `loader` on a miss. None is not cached."""
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        value = loader()
        if value is not None:
            self.set(key, value)
        return value

    def _remove_key(self, key: Hashable) -> None:
        """Remove a key (caller holds the lock)."""
        self._cache.pop(key, None)
        self._timestamps.pop(key, None)

    def delete(self, key: Hashable) -> None:
        with self._lock:
            self._remove_key(key)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._timestamps.clear()

    def cleanup_expired(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [
                key for key, ts in self._timestamps.items()
                if now - ts > self.ttl_seconds
            ]
            for key in expired:
                self._remove_key(key)
            self._stats["expired"] += len(expired)
            return len(expired)

    def __len__(self) -> int:
        return len(self._cache)

    @property
    def stats(self) -> dict:
        with self._lock:
            return {**self._stats, "size": len(self._cache), "maxsize": self.maxsize}
