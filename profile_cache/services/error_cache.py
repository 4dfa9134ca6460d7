"""
ErrorCache - Negative cache of classified fetch failures.

Entries are keyed by (resource key, error class), so a cached NOT_FOUND and
a later SERVER_ERROR for the same key live side by side. TTLs are chosen by
the caller per error class; the store hardcodes none.
"""

from dataclasses import dataclass
from datetime import timedelta

from loguru import logger

from profile_cache.clock import Clock, SystemClock
from profile_cache.services.errors import ErrorClass


@dataclass
class ErrorEntry:
    """A cached failure."""

    error_class: ErrorClass
    message: str
    stored_at: float
    ttl: float  # seconds

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl

    def expires_in(self, now: float) -> float:
        return max(0.0, self.stored_at + self.ttl - now)


class ErrorCache:
    """
    Keyed storage of classified failures.

    Usage:
        errors = ErrorCache(clock=SystemClock())
        errors.set("conv-1", ErrorClass.RATE_LIMITED, "HTTP 429", timedelta(seconds=30))

        if errors.find("conv-1"):
            return fallback("conv-1")
    """

    def __init__(self, clock: Clock | None = None, debug: bool = False):
        self._entries: dict[tuple[str, ErrorClass], ErrorEntry] = {}
        self._clock = clock or SystemClock()
        self._debug = debug

    def get(self, key: str, error_class: ErrorClass) -> ErrorEntry | None:
        """Get a live entry for (key, error_class), dropping it if expired."""
        entry = self._entries.get((key, error_class))
        if entry is None:
            return None

        if entry.is_expired(self._clock.now()):
            del self._entries[(key, error_class)]
            self._log(f"EXPIRED: {key[:50]} [{error_class.value}]")
            return None

        self._log(f"HIT: {key[:50]} [{error_class.value}]")
        return entry

    def find(self, key: str) -> ErrorEntry | None:
        """Get the first live entry of any class for key."""
        for error_class in ErrorClass:
            entry = self.get(key, error_class)
            if entry is not None:
                return entry
        return None

    def set(
        self,
        key: str,
        error_class: ErrorClass,
        message: str,
        ttl: timedelta,
    ) -> None:
        """Record a failure for key under error_class."""
        self._entries[(key, error_class)] = ErrorEntry(
            error_class=error_class,
            message=message,
            stored_at=self._clock.now(),
            ttl=ttl.total_seconds(),
        )
        self._log(
            f"SET: {key[:50]} [{error_class.value}] (TTL: {ttl.total_seconds()}s)"
        )

    def invalidate(self, key: str) -> int:
        """Drop every error class cached for key."""
        doomed = [k for k in self._entries if k[0] == key]
        for entry_key in doomed:
            del self._entries[entry_key]
        if doomed:
            self._log(f"INVALIDATE: {key[:50]} ({len(doomed)} entries)")
        return len(doomed)

    def clear(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        self._log(f"CLEAR: {count} entries removed")

    def sweep(self, now: float | None = None) -> int:
        """Remove all expired entries. Returns count of removed entries."""
        now = self._clock.now() if now is None else now
        expired = [k for k, v in self._entries.items() if v.is_expired(now)]
        for entry_key in expired:
            del self._entries[entry_key]

        if expired:
            self._log(f"SWEEP: {len(expired)} expired entries removed")

        return len(expired)

    @property
    def size(self) -> int:
        return len(self._entries)

    def _log(self, message: str) -> None:
        if self._debug:
            logger.debug(f"[ErrorCache] {message}")
