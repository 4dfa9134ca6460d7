"""
RetryExecutor - Bounded exponential backoff, tracked per (key, operation).

The executor runs one attempt per call and remembers how it went:
- Success clears the state for (key, operation)
- Failure bumps the attempt count, records when it happened and grows the
  backoff, then re-raises
- A call arriving sooner than the current backoff allows waits out the rest
  before attempting
- Once max_attempts failures are recorded, further calls fail immediately
  with RetryExhaustedError until the state is reset

Looping is left to the caller.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from profile_cache.clock import Clock, SystemClock
from profile_cache.services.errors import RetryExhaustedError

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Configuration for retries."""

    max_attempts: int = 3
    base_delay: timedelta = timedelta(seconds=1)  # Wait before the 2nd attempt
    max_backoff: timedelta = timedelta(seconds=10)  # Ceiling for any wait

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay > self.max_backoff:
            raise ValueError("base_delay cannot exceed max_backoff")


@dataclass
class RetryState:
    """Progress of one retry sequence."""

    attempts: int
    last_attempt_at: float | None
    backoff: float  # seconds to wait after last_attempt_at

    def wait_time(self, now: float) -> float:
        """Seconds left before another attempt is allowed."""
        if self.last_attempt_at is None:
            return 0.0
        return max(0.0, self.backoff - (now - self.last_attempt_at))


class RetryExecutor:
    """
    Runs operations under a per-key backoff policy.

    Usage:
        retry = RetryExecutor(RetryPolicy(max_attempts=3))

        while True:
            try:
                return await retry.run(key, "fetch", lambda: fetcher.fetch(key))
            except Exception:
                if retry.is_exhausted(key, "fetch"):
                    raise
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        clock: Clock | None = None,
    ):
        self.policy = policy or RetryPolicy()
        self._clock = clock or SystemClock()
        self._states: dict[tuple[str, str], RetryState] = {}

    async def run(
        self,
        key: str,
        operation_name: str,
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Execute one attempt of operation for key.

        Raises:
            RetryExhaustedError: If max_attempts failures are already recorded
            Exception: Whatever operation raised, after recording the failure
        """
        state_key = (key, operation_name)
        state = self._states.get(state_key)
        if state is None:
            state = RetryState(
                attempts=0,
                last_attempt_at=None,
                backoff=self.policy.base_delay.total_seconds(),
            )

        if state.attempts >= self.policy.max_attempts:
            raise RetryExhaustedError(key, operation_name, state.attempts)

        wait = state.wait_time(self._clock.now())
        if wait > 0:
            logger.debug(
                f"[Retry] Waiting {wait:.2f}s before attempt {state.attempts + 1} "
                f"of '{operation_name}' for {key[:50]}"
            )
            await self._clock.sleep(wait)

        try:
            result = await operation()
        except Exception as e:
            self._record_failure(state_key, state)
            logger.warning(
                f"[Retry] '{operation_name}' for {key[:50]} failed "
                f"(attempt {state.attempts}/{self.policy.max_attempts}): "
                f"{type(e).__name__}: {e}"
            )
            raise

        self._states.pop(state_key, None)
        return result

    def _record_failure(self, state_key: tuple[str, str], state: RetryState) -> None:
        """Count a failed attempt and grow the backoff for the next one."""
        if state.attempts > 0:
            state.backoff = min(
                state.backoff * 2,
                self.policy.max_backoff.total_seconds(),
            )
        state.attempts += 1
        state.last_attempt_at = self._clock.now()
        self._states[state_key] = state

    def is_exhausted(self, key: str, operation_name: str) -> bool:
        """Check whether (key, operation_name) has used up its attempts."""
        state = self._states.get((key, operation_name))
        return state is not None and state.attempts >= self.policy.max_attempts

    def get_state(self, key: str, operation_name: str) -> RetryState | None:
        return self._states.get((key, operation_name))

    def reset(self, key: str, operation_name: str | None = None) -> int:
        """Forget retry progress for key (one operation, or all of them)."""
        if operation_name is not None:
            return 1 if self._states.pop((key, operation_name), None) else 0

        doomed = [k for k in self._states if k[0] == key]
        for state_key in doomed:
            del self._states[state_key]
        return len(doomed)

    def clear(self) -> None:
        self._states.clear()

    def sweep(
        self,
        now: float | None = None,
        idle_ttl: timedelta = timedelta(hours=1),
    ) -> int:
        """Remove retry states whose last attempt is older than idle_ttl."""
        now = self._clock.now() if now is None else now
        limit = idle_ttl.total_seconds()
        idle = [
            k
            for k, state in self._states.items()
            if state.last_attempt_at is not None
            and now - state.last_attempt_at > limit
        ]
        for state_key in idle:
            del self._states[state_key]
        return len(idle)

    @property
    def size(self) -> int:
        return len(self._states)

    def get_status(self) -> dict[str, Any]:
        """Get current retry states as a dictionary."""
        return {
            f"{key}:{operation}": {
                "attempts": state.attempts,
                "last_attempt_at": state.last_attempt_at,
                "backoff": state.backoff,
            }
            for (key, operation), state in self._states.items()
        }
