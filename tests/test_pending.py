import asyncio

import pytest

from profile_cache.services.pending import PendingRequestRegistry


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_request() -> None:
    registry = PendingRequestRegistry()
    calls = 0
    release = asyncio.Event()

    async def request() -> str:
        nonlocal calls
        calls += 1
        await release.wait()
        return "value"

    waiters = [asyncio.create_task(registry.coalesce("k", request)) for _ in range(5)]
    await asyncio.sleep(0)
    assert registry.get_in_flight_count() == 1

    release.set()
    results = await asyncio.gather(*waiters)

    assert results == ["value"] * 5
    assert calls == 1
    stats = registry.get_stats()
    assert stats.total == 1
    assert stats.coalesced == 4
    assert stats.to_dict()["coalesce_rate"] == "80.00%"


@pytest.mark.asyncio
async def test_entry_removed_before_callers_see_result() -> None:
    registry = PendingRequestRegistry()
    calls = 0

    async def request() -> int:
        nonlocal calls
        calls += 1
        return calls

    assert await registry.coalesce("k", request) == 1
    assert registry.is_pending("k") is False
    assert await registry.coalesce("k", request) == 2


@pytest.mark.asyncio
async def test_failure_is_shared_and_entry_removed() -> None:
    registry = PendingRequestRegistry()
    release = asyncio.Event()

    async def request() -> str:
        await release.wait()
        raise RuntimeError("upstream down")

    waiters = [asyncio.create_task(registry.coalesce("k", request)) for _ in range(3)]
    await asyncio.sleep(0)
    release.set()
    results = await asyncio.gather(*waiters, return_exceptions=True)

    assert all(isinstance(r, RuntimeError) for r in results)
    assert registry.get_in_flight_count() == 0


@pytest.mark.asyncio
async def test_different_keys_run_independently() -> None:
    registry = PendingRequestRegistry()
    seen: list[str] = []

    def request_for(key: str):
        async def request() -> str:
            seen.append(key)
            await asyncio.sleep(0)
            return key

        return request

    results = await asyncio.gather(
        registry.coalesce("a", request_for("a")),
        registry.coalesce("b", request_for("b")),
    )
    assert results == ["a", "b"]
    assert sorted(seen) == ["a", "b"]


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_cancel_shared_request() -> None:
    registry = PendingRequestRegistry()
    release = asyncio.Event()

    async def request() -> str:
        await release.wait()
        return "value"

    first = asyncio.create_task(registry.coalesce("k", request))
    second = asyncio.create_task(registry.coalesce("k", request))
    await asyncio.sleep(0)

    first.cancel()
    await asyncio.sleep(0)
    release.set()

    assert await second == "value"
    assert first.cancelled()


@pytest.mark.asyncio
async def test_cancel_all() -> None:
    registry = PendingRequestRegistry()

    async def request() -> None:
        await asyncio.Event().wait()

    waiter = asyncio.create_task(registry.coalesce("k", request))
    await asyncio.sleep(0)

    assert await registry.cancel_all() == 1
    assert registry.get_in_flight_keys() == []
    with pytest.raises(asyncio.CancelledError):
        await waiter
