from datetime import timedelta

from profile_cache.clock import ManualClock
from profile_cache.services.cache import CacheStore
from profile_cache.services.error_cache import ErrorCache
from profile_cache.services.errors import ErrorClass


def test_cache_store_returns_value_within_ttl() -> None:
    clock = ManualClock()
    store = CacheStore(clock=clock)
    store.set("conv-1", "alice", ttl=timedelta(seconds=10))

    clock.advance(10)
    entry = store.get("conv-1")
    assert entry is not None
    assert entry.value == "alice"


def test_cache_store_expires_lazily_on_read() -> None:
    clock = ManualClock()
    store = CacheStore(clock=clock)
    store.set("conv-1", "alice", ttl=timedelta(seconds=10))

    clock.advance(10.5)
    assert store.get("conv-1") is None
    assert store.size == 0
    stats = store.get_stats()
    assert stats.expirations == 1
    assert stats.misses == 1


def test_cache_store_uses_default_ttl() -> None:
    clock = ManualClock()
    store = CacheStore(clock=clock, default_ttl=timedelta(seconds=5))
    store.set("conv-1", "alice")

    clock.advance(6)
    assert store.get("conv-1") is None


def test_cache_store_sweep_removes_only_expired() -> None:
    clock = ManualClock()
    store = CacheStore(clock=clock)
    store.set("short", 1, ttl=timedelta(seconds=1))
    store.set("long", 2, ttl=timedelta(seconds=100))

    clock.advance(5)
    assert store.sweep() == 1
    assert store.size == 1
    assert store.get("long").value == 2


def test_cache_store_invalidate_and_clear() -> None:
    store = CacheStore(clock=ManualClock())
    store.set("a", 1)
    store.set("b", 2)

    assert store.invalidate("a") is True
    assert store.invalidate("a") is False
    assert store.get("a") is None

    store.clear()
    assert store.size == 0


def test_cache_store_evicts_oldest_at_capacity() -> None:
    clock = ManualClock()
    store = CacheStore(clock=clock, max_size=2)
    store.set("first", 1)
    clock.advance(1)
    store.set("second", 2)
    clock.advance(1)
    store.set("third", 3)

    assert store.get("first") is None
    assert store.get("second").value == 2
    assert store.get("third").value == 3
    assert store.get_stats().evictions == 1


def test_error_cache_classes_coexist_per_key() -> None:
    clock = ManualClock()
    errors = ErrorCache(clock=clock)
    errors.set("conv-1", ErrorClass.NOT_FOUND, "HTTP 404", timedelta(minutes=5))
    errors.set("conv-1", ErrorClass.SERVER_ERROR, "HTTP 500", timedelta(seconds=10))

    assert errors.get("conv-1", ErrorClass.NOT_FOUND).message == "HTTP 404"
    assert errors.get("conv-1", ErrorClass.SERVER_ERROR).message == "HTTP 500"
    assert errors.get("conv-1", ErrorClass.RATE_LIMITED) is None
    assert errors.size == 2

    clock.advance(11)
    assert errors.get("conv-1", ErrorClass.SERVER_ERROR) is None
    assert errors.get("conv-1", ErrorClass.NOT_FOUND) is not None


def test_error_cache_find_returns_any_live_class() -> None:
    clock = ManualClock()
    errors = ErrorCache(clock=clock)
    assert errors.find("conv-1") is None

    errors.set("conv-1", ErrorClass.RATE_LIMITED, "HTTP 429", timedelta(seconds=30))
    entry = errors.find("conv-1")
    assert entry is not None
    assert entry.error_class is ErrorClass.RATE_LIMITED
    assert entry.expires_in(clock.now()) == 30

    clock.advance(31)
    assert errors.find("conv-1") is None


def test_error_cache_invalidate_drops_every_class_for_key() -> None:
    errors = ErrorCache(clock=ManualClock())
    errors.set("conv-1", ErrorClass.NOT_FOUND, "404", timedelta(minutes=1))
    errors.set("conv-1", ErrorClass.UNKNOWN, "?", timedelta(minutes=1))
    errors.set("conv-2", ErrorClass.UNKNOWN, "?", timedelta(minutes=1))

    assert errors.invalidate("conv-1") == 2
    assert errors.find("conv-1") is None
    assert errors.find("conv-2") is not None


def test_error_cache_sweep() -> None:
    clock = ManualClock()
    errors = ErrorCache(clock=clock)
    errors.set("a", ErrorClass.RATE_LIMITED, "429", timedelta(seconds=30))
    errors.set("b", ErrorClass.NOT_FOUND, "404", timedelta(minutes=5))

    clock.advance(60)
    assert errors.sweep() == 1
    assert errors.size == 1
