"""
JanitorTask - periodic eager expiry for the coordinator's stores.

Lazy expiry on read keeps answers correct; the janitor keeps memory bounded
for keys nobody asks about again.

The scheduler only ticks. Whether a tick sweeps is decided by the Clock, so
a ManualClock drives sweeps in tests exactly like real time does in service.
"""

from datetime import timedelta
from typing import Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from profile_cache.clock import Clock, SystemClock


class JanitorTask:
    """Runs a sweep function every `interval` of Clock time."""

    def __init__(
        self,
        sweep_fn: Callable[[], dict[str, int]],
        interval: timedelta = timedelta(minutes=5),
        clock: Clock | None = None,
        tick: timedelta = timedelta(seconds=1),
        job_id: str = "cache_janitor",
    ):
        self._sweep_fn = sweep_fn
        self._interval = interval
        self._clock = clock or SystemClock()
        self._tick = min(tick, interval) if interval > timedelta(0) else tick
        self._job_id = job_id
        self._last_sweep = self._clock.now()
        self.scheduler: AsyncIOScheduler | None = None
        self._is_running = False

    def is_due(self) -> bool:
        """Check whether a full interval has passed since the last sweep."""
        return self._clock.now() - self._last_sweep >= self._interval.total_seconds()

    def run_once(self) -> dict[str, int]:
        """Sweep immediately. Returns removed counts per store."""
        self._last_sweep = self._clock.now()
        removed = self._sweep_fn()
        total = sum(removed.values())
        if total:
            details = ", ".join(f"{name}={count}" for name, count in removed.items())
            logger.info(f"Janitor sweep removed {total} entries ({details})")
        return removed

    async def tick(self) -> dict[str, int] | None:
        """Sweep if due. Returns removed counts, or None when nothing ran."""
        # Coroutine job: runs on the event loop, not in an executor thread.
        if not self.is_due():
            return None
        try:
            return self.run_once()
        except Exception as e:
            logger.error(f"Error in scheduled cache sweep: {e}")
            return None

    def start(self) -> None:
        """Start the scheduler. Must be called with an event loop running."""
        if self._is_running:
            logger.warning("Cache janitor is already running")
            return

        self._last_sweep = self._clock.now()
        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.tick,
            trigger="interval",
            seconds=self._tick.total_seconds(),
            id=self._job_id,
            name="Cache Janitor",
            replace_existing=True,
        )
        self.scheduler.start()
        self._is_running = True

        logger.info(
            f"Cache janitor started: sweeping every {self._interval.total_seconds()}s"
        )

    def stop(self) -> None:
        """Stop the scheduler."""
        if not self._is_running:
            return

        if self.scheduler is not None:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
        self._is_running = False
        logger.info("Cache janitor stopped")

    def is_running(self) -> bool:
        return self._is_running
