"""
CacheCoordinator - single entry point combining the resilience patterns.

Combines:
- CacheStore for positive caching
- ErrorCache for negative caching
- PendingRequestRegistry for concurrent request coalescing
- RetryExecutor for bounded exponential backoff
- FallbackProvider for degraded values
- JanitorTask for periodic expiry

Per key the coordinator moves Idle -> Pending -> Cached | Degraded and back to
Idle when the relevant TTL lapses. No record marks Idle: the absence of cache,
error and pending entries is Idle.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Generic, TypeVar

from loguru import logger

from profile_cache.clock import Clock, SystemClock
from profile_cache.services.cache import CacheStore
from profile_cache.services.error_cache import ErrorCache
from profile_cache.services.errors import ErrorClass, classify_error
from profile_cache.services.fallback import FallbackProvider
from profile_cache.services.fetcher import Fetcher
from profile_cache.services.janitor import JanitorTask
from profile_cache.services.pending import PendingRequestRegistry
from profile_cache.services.retry import RetryExecutor, RetryPolicy

T = TypeVar("T")

FETCH_OPERATION = "fetch"


def default_error_ttls() -> dict[ErrorClass, timedelta]:
    return {
        ErrorClass.NOT_FOUND: timedelta(minutes=5),
        ErrorClass.RATE_LIMITED: timedelta(seconds=30),
        ErrorClass.SERVER_ERROR: timedelta(minutes=2),
        ErrorClass.NETWORK_ERROR: timedelta(seconds=30),
        ErrorClass.UNKNOWN: timedelta(minutes=1),
    }


@dataclass
class CacheConfig:
    """Configuration for a CacheCoordinator."""

    default_ttl: timedelta = timedelta(minutes=5)
    error_ttl_by_class: dict[ErrorClass, timedelta] = field(
        default_factory=default_error_ttls
    )
    max_attempts: int = 3
    base_delay: timedelta = timedelta(seconds=1)
    max_backoff: timedelta = timedelta(seconds=10)
    sweep_interval: timedelta = timedelta(minutes=5)
    retry_idle_ttl: timedelta = timedelta(hours=1)  # Janitor drops older RetryState
    max_cache_size: int = 1000
    debug: bool = False

    def error_ttl(self, error_class: ErrorClass) -> timedelta:
        """TTL for error_class; classes without an entry use the UNKNOWN TTL."""
        if error_class in self.error_ttl_by_class:
            return self.error_ttl_by_class[error_class]
        return self.error_ttl_by_class.get(ErrorClass.UNKNOWN, timedelta(minutes=1))

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_backoff=self.max_backoff,
        )


@dataclass
class CoordinatorStats:
    """Coordinator statistics."""

    cache_size: int = 0
    error_cache_size: int = 0
    pending_count: int = 0
    retry_states: int = 0
    hits: int = 0  # Served from CacheStore
    degraded: int = 0  # Short-circuited by ErrorCache
    fetches: int = 0  # Fetcher invocations
    fallbacks: int = 0  # Fallback values returned, for any reason

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "cache_size": self.cache_size,
            "error_cache_size": self.error_cache_size,
            "pending_count": self.pending_count,
            "retry_states": self.retry_states,
            "hits": self.hits,
            "degraded": self.degraded,
            "fetches": self.fetches,
            "fallbacks": self.fallbacks,
        }


class CacheCoordinator(Generic[T]):
    """
    Resilient cached access to a Fetcher.

    get() never raises: it resolves to the real value, or to the
    FallbackProvider's value for the key when the real one is unavailable.

    Usage:
        coordinator = CacheCoordinator(
            fetcher=ProfileFetcher("https://api.example.com"),
            fallback=ProfileFallbackProvider(),
        )

        async with coordinator:
            profile = await coordinator.get("conv-1")
    """

    def __init__(
        self,
        fetcher: Fetcher[T],
        fallback: FallbackProvider[T],
        config: CacheConfig | None = None,
        clock: Clock | None = None,
    ):
        self.config = config or CacheConfig()
        self._fetcher = fetcher
        self._fallback = fallback
        self._clock = clock or SystemClock()

        # Initialize components
        self._cache: CacheStore[T] = CacheStore(
            clock=self._clock,
            default_ttl=self.config.default_ttl,
            max_size=self.config.max_cache_size,
            debug=self.config.debug,
        )
        self._errors = ErrorCache(clock=self._clock, debug=self.config.debug)
        self._retry = RetryExecutor(self.config.retry_policy(), clock=self._clock)
        self._pending = PendingRequestRegistry(debug=self.config.debug)
        self._janitor = JanitorTask(
            self.sweep,
            interval=self.config.sweep_interval,
            clock=self._clock,
        )

        # Bumped by invalidate() / clear() so in-flight fetches skip writing.
        self._generations: dict[str, int] = {}
        self._epoch = 0

        self._stats = CoordinatorStats()

    async def get(self, key: str) -> T:
        """
        Get the value for key.

        Order: cached value, cached error (fallback without network),
        in-flight request, new fetch with retries.
        """
        try:
            entry = self._cache.get(key)
            if entry is not None:
                self._stats.hits += 1
                return entry.value

            error = self._errors.find(key)
            if error is not None:
                self._stats.degraded += 1
                self._log(
                    f"DEGRADED: {key[:50]} [{error.error_class.value}] "
                    f"for another {error.expires_in(self._clock.now()):.1f}s"
                )
                return self._degrade(key)

            try:
                return await self._pending.coalesce(key, lambda: self._resolve(key))
            except asyncio.CancelledError:
                # Only the caller's own cancellation propagates; a shared
                # request cancelled by close() degrades like any failure.
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    raise
                logger.warning(f"Request for {key[:50]} was cancelled, using fallback")
                return self._degrade(key)

        except Exception:
            logger.exception(f"Unexpected failure resolving {key[:50]}, using fallback")
            return self._degrade(key)

    async def _resolve(self, key: str) -> T:
        """
        Fetch with retries and record the outcome in the stores.

        Outcomes of a fetch that was invalidated (or cleared) while in flight
        are returned to its callers but not stored.
        """
        generation = self._generation(key)
        try:
            value = await self._fetch_with_retry(key)
        except Exception as e:
            error_class = classify_error(e)
            ttl = self.config.error_ttl(error_class)
            self._retry.reset(key, FETCH_OPERATION)
            if self._generation(key) == generation:
                self._errors.set(key, error_class, f"{type(e).__name__}: {e}", ttl)
            logger.warning(
                f"Fetch for {key[:50]} failed after "
                f"{self.config.max_attempts} attempts ({error_class.value}), "
                f"serving fallback for {ttl.total_seconds()}s"
            )
            return self._degrade(key)

        if self._generation(key) == generation:
            self._cache.set(key, value, self.config.default_ttl)
        else:
            self._log(f"STALE: {key[:50]} invalidated while in flight, not cached")
        return value

    def _generation(self, key: str) -> tuple[int, int]:
        return self._epoch, self._generations.get(key, 0)

    async def _fetch_with_retry(self, key: str) -> T:
        """Call RetryExecutor.run until it succeeds or the attempts run out."""
        while True:
            try:
                return await self._retry.run(key, FETCH_OPERATION, self._fetch_op(key))
            except Exception:
                if self._retry.is_exhausted(key, FETCH_OPERATION):
                    raise

    def _fetch_op(self, key: str):
        async def do_fetch() -> T:
            self._stats.fetches += 1
            return await self._fetcher.fetch(key)

        return do_fetch

    def _degrade(self, key: str) -> T:
        self._stats.fallbacks += 1
        return self._fallback.fallback(key)

    def invalidate(self, key: str) -> None:
        """
        Drop cached value, cached errors and retry progress for key.

        A fetch already in flight for key still answers its callers, but its
        outcome is not written back to the stores.
        """
        self._cache.invalidate(key)
        self._errors.invalidate(key)
        self._retry.reset(key)
        self._generations[key] = self._generations.get(key, 0) + 1
        self._log(f"INVALIDATE: {key[:50]}")

    def clear(self) -> None:
        """Drop all cached state. In-flight requests finish without storing."""
        self._cache.clear()
        self._errors.clear()
        self._retry.clear()
        self._generations.clear()
        self._epoch += 1
        logger.info("Cache coordinator cleared")

    def sweep(self) -> dict[str, int]:
        """Eagerly remove expired entries from every store."""
        now = self._clock.now()
        return {
            "cache": self._cache.sweep(now),
            "errors": self._errors.sweep(now),
            "retry": self._retry.sweep(now, self.config.retry_idle_ttl),
        }

    def stats(self) -> CoordinatorStats:
        """Get current sizes and counters."""
        self._stats.cache_size = self._cache.size
        self._stats.error_cache_size = self._errors.size
        self._stats.pending_count = self._pending.get_in_flight_count()
        self._stats.retry_states = self._retry.size
        return self._stats

    def get_health_status(self) -> dict[str, Any]:
        """Get detailed status of every component."""
        return {
            "coordinator": self.stats().to_dict(),
            "cache": self._cache.get_stats().to_dict(),
            "pending": self._pending.get_stats().to_dict(),
            "retry": self._retry.get_status(),
            "janitor_running": self._janitor.is_running(),
        }

    def start(self) -> None:
        """Start the periodic janitor sweep."""
        self._janitor.start()

    async def close(self) -> None:
        """Stop the janitor and cancel in-flight requests."""
        self._janitor.stop()
        await self._pending.cancel_all()
        logger.debug("CacheCoordinator closed")

    async def __aenter__(self) -> "CacheCoordinator[T]":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self.config.debug:
            logger.debug(f"[CacheCoordinator] {message}")
