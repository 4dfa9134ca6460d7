"""Shared test fixtures and dummy classes."""

from __future__ import annotations

import asyncio

from profile_cache.clock import ManualClock


class StatusError(Exception):
    """Error carrying an HTTP status, like an HTTP client's response error."""

    def __init__(self, status: int) -> None:
        self.status = status
        super().__init__(f"HTTP {status}")


class FakeFetcher:
    """Fetcher that records calls against a clock.

    Each call consumes the next entry of `responses` (exceptions are raised,
    anything else returned). With `fail_with` set every call raises it.
    Once responses run out, returns "profile:<key>".
    """

    def __init__(
        self,
        clock: ManualClock,
        responses: list[object] | None = None,
        fail_with: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.clock = clock
        self.responses = list(responses or [])
        self.fail_with = fail_with
        self.delay = delay
        self.calls: list[tuple[str, float]] = []

    async def fetch(self, key: str) -> object:
        self.calls.append((key, self.clock.now()))
        if self.delay:
            # Real sleep: keeps the request in flight while others pile up.
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        outcome = self.responses.pop(0) if self.responses else f"profile:{key}"
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def call_times(self, key: str | None = None) -> list[float]:
        return [t for k, t in self.calls if key is None or k == key]


class KeyFallback:
    """Deterministic fallback used across coordinator tests."""

    def fallback(self, key: str) -> str:
        return f"fallback:{key}"
