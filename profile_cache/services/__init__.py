"""
Service layer infrastructure - resilience patterns for profile fetches.

Provides:
- CacheStore / ErrorCache: Positive and negative caching with TTL
- RetryExecutor: Per-key exponential backoff
- PendingRequestRegistry: Coalesces duplicate concurrent requests
- FallbackProvider: Deterministic degraded values
- CacheCoordinator: Unified entry point combining all patterns
"""

from profile_cache.services.errors import (
    ErrorClass,
    ServiceError,
    FetchError,
    RateLimitError,
    RequestTimeoutError,
    RetryExhaustedError,
    ServiceUnavailableError,
    classify_error,
)
from profile_cache.services.cache import CacheStore, CacheEntry, CacheStats
from profile_cache.services.error_cache import ErrorCache, ErrorEntry
from profile_cache.services.retry import RetryExecutor, RetryPolicy, RetryState
from profile_cache.services.fallback import (
    FallbackProvider,
    HashedFallbackProvider,
    ProfileFallbackProvider,
    StaticFallbackProvider,
)
from profile_cache.services.pending import PendingRequestRegistry
from profile_cache.services.fetcher import Fetcher, ProfileFetcher
from profile_cache.services.janitor import JanitorTask
from profile_cache.services.coordinator import (
    CacheConfig,
    CacheCoordinator,
    CoordinatorStats,
)

__all__ = [
    # Errors
    "ErrorClass",
    "ServiceError",
    "FetchError",
    "RateLimitError",
    "RequestTimeoutError",
    "RetryExhaustedError",
    "ServiceUnavailableError",
    "classify_error",
    # Caches
    "CacheStore",
    "CacheEntry",
    "CacheStats",
    "ErrorCache",
    "ErrorEntry",
    # Retry
    "RetryExecutor",
    "RetryPolicy",
    "RetryState",
    # Fallback
    "FallbackProvider",
    "HashedFallbackProvider",
    "ProfileFallbackProvider",
    "StaticFallbackProvider",
    # Coalescing
    "PendingRequestRegistry",
    # Fetcher
    "Fetcher",
    "ProfileFetcher",
    # Coordinator
    "CacheConfig",
    "CacheCoordinator",
    "CoordinatorStats",
    "JanitorTask",
]
