import pytest

from profile_cache.clock import ManualClock, SystemClock


@pytest.mark.asyncio
async def test_manual_clock_sleep_advances_time() -> None:
    clock = ManualClock(start=10.0)
    await clock.sleep(2.5)
    await clock.sleep(-1)

    assert clock.now() == 12.5
    assert clock.sleeps == [2.5, 0.0]


def test_manual_clock_cannot_go_backwards() -> None:
    clock = ManualClock()
    clock.advance(3)
    assert clock.now() == 3
    with pytest.raises(ValueError):
        clock.advance(-1)


@pytest.mark.asyncio
async def test_system_clock_is_monotonic() -> None:
    clock = SystemClock()
    before = clock.now()
    await clock.sleep(0)
    assert clock.now() >= before
