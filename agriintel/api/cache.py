"""
In-Memory Response Cache

TTL cache with a bounded entry count, owned by a single service instance.
Eviction is insertion-ordered (FIFO): when full, the oldest inserted key is
dropped regardless of how recently it was read.
"""

import json
import time
from typing import Any, Callable, Dict, Generic, Mapping, Optional, TypeVar

import structlog

from ..models.service_models import CacheEntry

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def generate_cache_key(
    method: str,
    endpoint: str,
    params: Optional[Mapping[str, Any]] = None
) -> str:
    """
    Build a deterministic cache key for a request.

    Params are sorted so equal requests produce equal keys whatever order the
    caller supplied them in. ``None`` values are dropped, matching what is sent
    on the wire.

    Args:
        method: HTTP method
        endpoint: Endpoint path
        params: Query parameters

    Returns:
        Cache key string
    """
    cleaned = {k: v for k, v in (params or {}).items() if v is not None}
    params_str = json.dumps(cleaned, sort_keys=True, default=str, separators=(",", ":"))
    return f"{method.upper()}:{endpoint}:{params_str}"


class MemoryCache(Generic[T]):
    """
    Bounded in-memory TTL cache.

    Every read of a live entry counts as a hit and bumps its access count;
    absent or expired reads count as misses. Expired entries are removed on
    read.
    """

    def __init__(
        self,
        max_size: int = 100,
        clock: Callable[[], float] = time.time,
        service_name: str = "api"
    ):
        """
        Initialize the cache.

        Args:
            max_size: Maximum number of entries held at once
            clock: Time source returning seconds
            service_name: Owning service, for logging
        """
        self.max_size = max_size
        self._clock = clock
        self._entries: Dict[str, CacheEntry[T]] = {}
        self._hits = 0
        self._misses = 0

        self.logger = logger.bind(service=service_name, component="MemoryCache")

    def get_entry(self, key: str) -> Optional[CacheEntry[T]]:
        """
        Look up a live entry, counting the hit or miss.

        Args:
            key: Cache key

        Returns:
            The entry, or None if absent or expired
        """
        entry = self._entries.get(key)

        if entry is None:
            self._misses += 1
            self.logger.debug("Cache miss", key=key)
            return None

        if self._clock() >= entry.expires_at:
            del self._entries[key]
            self._misses += 1
            self.logger.debug("Cache entry expired", key=key)
            return None

        entry.access_count += 1
        self._hits += 1
        self.logger.debug("Cache hit", key=key, access_count=entry.access_count)
        return entry

    def get(self, key: str) -> Optional[T]:
        """Get a cached value, or None if absent or expired."""
        entry = self.get_entry(key)
        return entry.data if entry is not None else None

    def set(self, key: str, data: T, ttl: float) -> None:
        """
        Store a value.

        Args:
            key: Cache key
            data: Value to cache
            ttl: Time to live in seconds
        """
        if self.max_size <= 0:
            return

        if len(self._entries) >= self.max_size and key not in self._entries:
            oldest_key = next(iter(self._entries))
            del self._entries[oldest_key]
            self.logger.debug("Cache full - evicted oldest entry", evicted=oldest_key)

        now = self._clock()
        existing = self._entries.get(key)
        if existing is not None:
            # keep the original insertion position
            existing.data = data
            existing.timestamp = now
            existing.expires_at = now + ttl
            existing.access_count = 0
        else:
            self._entries[key] = CacheEntry(data=data, timestamp=now, expires_at=now + ttl)

        self.logger.debug("Cache set", key=key, ttl=ttl)

    def delete(self, key: str) -> None:
        """Remove a single entry if present."""
        self._entries.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        """
        Remove every entry whose key starts with ``prefix``.

        Args:
            prefix: Key prefix

        Returns:
            Number of entries removed
        """
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]

        if doomed:
            self.logger.debug("Cache entries invalidated", prefix=prefix, removed=len(doomed))
        return len(doomed)

    def clear(self) -> None:
        """Remove all entries. Hit and miss counters are kept."""
        self._entries.clear()
        self.logger.info("Cache cleared")

    def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._clock() < entry.expires_at

    def get_stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with size, max_size, hit_rate, hits and misses
        """
        total = self._hits + self._misses
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "hit_rate": self._hits / total if total > 0 else 0.0,
            "hits": self._hits,
            "misses": self._misses,
        }
