"""
Clock - time source for every TTL and backoff decision.

All stores, the retry executor and the janitor read time through a Clock,
so tests can move time forward without real delays.
"""

import asyncio
import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic time source with an awaitable sleep."""

    def now(self) -> float:
        """Current time in seconds."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend the caller for `seconds`."""
        ...


class SystemClock:
    """Clock backed by time.monotonic and asyncio.sleep."""

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))


class ManualClock:
    """
    Clock that only moves when told to.

    sleep() advances the clock by the requested amount and yields once to
    the event loop, so backoff waits complete instantly but in order.

    Usage:
        clock = ManualClock()
        clock.advance(30)
        assert clock.now() == 30
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        """Move the clock forward."""
        if seconds < 0:
            raise ValueError("Cannot move a clock backwards")
        self._now += seconds

    async def sleep(self, seconds: float) -> None:
        seconds = max(0.0, seconds)
        self.sleeps.append(seconds)
        self._now += seconds
        await asyncio.sleep(0)
