"""
CacheStore - Keyed storage of resolved values with per-entry TTL.

Features:
- Lazy expiry on read, eager expiry through sweep()
- Oldest-first eviction once max_size is reached
- Time read through an injected Clock
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Generic, TypeVar

from loguru import logger

from profile_cache.clock import Clock, SystemClock

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry with metadata."""

    value: T
    stored_at: float
    ttl: float  # seconds

    def is_expired(self, now: float) -> bool:
        """Check if entry is past its TTL."""
        return now - self.stored_at > self.ttl

    def expires_in(self, now: float) -> float:
        """Seconds left before the entry expires."""
        return max(0.0, self.stored_at + self.ttl - now)


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    expirations: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expirations": self.expirations,
            "evictions": self.evictions,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": f"{self.hit_rate:.2%}",
        }


class CacheStore(Generic[T]):
    """
    In-memory value cache with TTL.

    Methods never await, so on a single event loop every call is atomic
    with respect to other coroutines.

    Usage:
        store = CacheStore(clock=SystemClock())
        store.set("conv-1", profile, ttl=timedelta(minutes=5))

        entry = store.get("conv-1")
        if entry:
            return entry.value
    """

    def __init__(
        self,
        clock: Clock | None = None,
        default_ttl: timedelta = timedelta(minutes=5),
        max_size: int = 1000,
        debug: bool = False,
    ):
        self._entries: dict[str, CacheEntry[T]] = {}
        self._clock = clock or SystemClock()
        self._default_ttl = default_ttl
        self._max_size = max_size
        self._debug = debug
        self._stats = CacheStats()

    def get(self, key: str) -> CacheEntry[T] | None:
        """
        Get an entry from the cache.

        Returns the entry if present and within its TTL, None otherwise.
        Expired entries are dropped on the way out.
        """
        entry = self._entries.get(key)
        if entry is None:
            self._stats.misses += 1
            self._log(f"MISS: {key[:50]}")
            return None

        if entry.is_expired(self._clock.now()):
            del self._entries[key]
            self._stats.misses += 1
            self._stats.expirations += 1
            self._log(f"EXPIRED: {key[:50]}")
            return None

        self._stats.hits += 1
        self._log(f"HIT: {key[:50]}")
        return entry

    def set(self, key: str, value: T, ttl: timedelta | None = None) -> None:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time to live (uses default if not specified)
        """
        ttl = ttl if ttl is not None else self._default_ttl

        if len(self._entries) >= self._max_size and key not in self._entries:
            self._evict_oldest()

        self._entries[key] = CacheEntry(
            value=value,
            stored_at=self._clock.now(),
            ttl=ttl.total_seconds(),
        )
        self._log(f"SET: {key[:50]} (TTL: {ttl.total_seconds()}s)")

    def invalidate(self, key: str) -> bool:
        """Delete a specific key from cache."""
        if self._entries.pop(key, None) is not None:
            self._log(f"INVALIDATE: {key[:50]}")
            return True
        return False

    def clear(self) -> None:
        """Clear all cache entries."""
        count = len(self._entries)
        self._entries.clear()
        self._log(f"CLEAR: {count} entries removed")

    def sweep(self, now: float | None = None) -> int:
        """Remove all expired entries. Returns count of removed entries."""
        now = self._clock.now() if now is None else now
        expired_keys = [k for k, v in self._entries.items() if v.is_expired(now)]
        for key in expired_keys:
            del self._entries[key]

        if expired_keys:
            self._stats.expirations += len(expired_keys)
            self._log(f"SWEEP: {len(expired_keys)} expired entries removed")

        return len(expired_keys)

    @property
    def size(self) -> int:
        return len(self._entries)

    def _evict_oldest(self) -> None:
        """Evict the oldest entry."""
        if not self._entries:
            return

        oldest_key = min(
            self._entries.keys(),
            key=lambda k: self._entries[k].stored_at,
        )
        del self._entries[oldest_key]
        self._stats.evictions += 1
        self._log(f"EVICT: {oldest_key[:50]}")

    def get_stats(self) -> CacheStats:
        """Get cache statistics."""
        self._stats.size = len(self._entries)
        self._stats.max_size = self._max_size
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[CacheStore] {message}")
