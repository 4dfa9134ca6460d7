"""
PendingRequestRegistry - At most one in-flight request per key.

When multiple callers request the same resource simultaneously,
only one actual request is made and the outcome is shared.
"""

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

T = TypeVar("T")


class PendingRequestRegistry:
    """
    Coalesces concurrent async requests.

    When multiple coroutines request the same key simultaneously,
    only one actual request is made. All callers await the same task.
    The entry for a key is removed inside the task itself, before the
    outcome reaches any waiter, so a call made right after settlement
    always starts a fresh request.

    Usage:
        pending = PendingRequestRegistry()

        async def fetch_profile(key: str):
            return await pending.coalesce(key, lambda: fetcher.fetch(key))
    """

    def __init__(self, debug: bool = False):
        self._in_flight: dict[str, asyncio.Task[Any]] = {}
        self._debug = debug
        self._stats = CoalescingStats()

    async def coalesce(
        self,
        key: str,
        request_fn: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Execute request with coalescing.

        If a request with the same key is already in flight,
        wait for and return its result instead of making a new request.

        Args:
            key: Unique identifier for this request
            request_fn: Async function to execute if no request is in flight

        Returns:
            Result from request_fn (either fresh or from in-flight request)
        """
        # No await between lookup and registration.
        task = self._in_flight.get(key)
        if task is not None:
            self._stats.coalesced += 1
            self._log(f"COALESCE: Waiting for in-flight request: {key[:50]}")
        else:
            self._stats.total += 1
            self._log(f"NEW: Starting request: {key[:50]}")
            task = asyncio.create_task(self._execute_and_cleanup(key, request_fn))
            self._in_flight[key] = task

        # A cancelled waiter must not cancel the request other callers share.
        return await asyncio.shield(task)

    async def _execute_and_cleanup(
        self,
        key: str,
        request_fn: Callable[[], Awaitable[T]],
    ) -> T:
        """Execute request and unregister it when done."""
        try:
            return await request_fn()
        finally:
            if self._in_flight.get(key) is asyncio.current_task():
                del self._in_flight[key]
            self._log(f"DONE: Request settled: {key[:50]}")

    def is_pending(self, key: str) -> bool:
        return key in self._in_flight

    async def cancel_all(self) -> int:
        """Cancel all in-flight requests."""
        tasks = list(self._in_flight.values())
        self._in_flight.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            self._log(f"CANCEL_ALL: {len(tasks)} requests cancelled")
        return len(tasks)

    def get_in_flight_count(self) -> int:
        """Get number of in-flight requests."""
        return len(self._in_flight)

    def get_in_flight_keys(self) -> list[str]:
        """Get keys of all in-flight requests."""
        return list(self._in_flight.keys())

    def get_stats(self) -> "CoalescingStats":
        """Get coalescing statistics."""
        self._stats.in_flight = len(self._in_flight)
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[PendingRequests] {message}")


class CoalescingStats:
    """Statistics for request coalescing."""

    def __init__(self):
        self.total: int = 0  # Underlying requests started
        self.coalesced: int = 0  # Callers that joined an in-flight request
        self.in_flight: int = 0

    @property
    def coalesce_rate(self) -> float:
        """Calculate coalescing rate."""
        total = self.total + self.coalesced
        if total == 0:
            return 0.0
        return self.coalesced / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_requests": self.total,
            "coalesced": self.coalesced,
            "in_flight": self.in_flight,
            "coalesce_rate": f"{self.coalesce_rate:.2%}",
        }
