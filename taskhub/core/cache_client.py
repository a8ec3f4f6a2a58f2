"""In-memory cache with per-entry TTL support.

Entries are read-mostly and tolerate brief staleness, so the cache relies on
TTL invalidation rather than locking. It must only be used from the event
loop thread.
"""

import logging
import time
from collections.abc import Callable, Hashable
from typing import Any, Generic, TypeVar


logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class TTLCache(Generic[K, V]):
    """Key-value cache where every entry expires ttl_seconds after it was set."""

    def __init__(self, ttl_seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the cache.

        Args:
            ttl_seconds: Lifetime of an entry; 0 or less means entries never expire
            clock: Monotonic time source in seconds
        """
        self._ttl = ttl_seconds
        self._clock = clock
        self._data: dict[K, V] = {}
        self._expiry: dict[K, float] = {}

        # Health tracking
        self._hits = 0
        self._misses = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get_health_status(self) -> dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dict with entry count, hits and misses
        """
        return {
            "entries": len(self._data),
            "hits": self._hits,
            "misses": self._misses,
            "ttl_seconds": self._ttl,
        }

    def _cleanup_expired(self, keys: list[K] | None = None) -> None:
        """Drop expired entries.

        Args:
            keys: Specific keys to check. If None, checks all keys.
        """
        now = self._clock()
        keys_to_check = list(self._expiry.keys()) if keys is None else keys

        for key in keys_to_check:
            expiry = self._expiry.get(key)
            if expiry is not None and expiry <= now:
                self._data.pop(key, None)
                self._expiry.pop(key, None)

    def get(self, key: K) -> V | None:
        """Return the cached value, or None if missing or expired."""
        self._cleanup_expired([key])

        if key in self._data:
            self._hits += 1
            return self._data[key]

        self._misses += 1
        return None

    def set(self, key: K, value: V) -> None:
        """Cache value under key, restarting its TTL."""
        self._data[key] = value
        if self._ttl > 0:
            self._expiry[key] = self._clock() + self._ttl
        else:
            self._expiry.pop(key, None)

    def replace_all(self, items: dict[K, V]) -> None:
        """Drop every entry and cache items with a fresh TTL."""
        self.clear()
        for key, value in items.items():
            self.set(key, value)
        logger.debug("Rebuilt cache with %d entries", len(items))

    def delete(self, *keys: K) -> None:
        for key in keys:
            self._data.pop(key, None)
            self._expiry.pop(key, None)

    def clear(self) -> None:
        self._data.clear()
        self._expiry.clear()

    def __len__(self) -> int:
        self._cleanup_expired()
        return len(self._data)
