"""Time source and cancellation signals shared by the poller and retry executor.

Waiting is the only intentional suspension point in the engine, so every
wait goes through pause(), which honours the caller's cancellation token
and deadline.
"""

from __future__ import annotations

import asyncio
import time
from typing import Protocol

from .errors import ReconcileCancelled


class Clock(Protocol):
    """Monotonic time source with a cancellable sleep."""

    def monotonic(self) -> float: ...

    async def sleep(self, seconds: float, cancel: CancelToken | None = None) -> None: ...


class SystemClock:
    """Wall clock backed by time.monotonic and asyncio."""

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float, cancel: CancelToken | None = None) -> None:
        if cancel is None:
            await asyncio.sleep(seconds)
            return
        # Wake early when the token fires
        try:
            await asyncio.wait_for(cancel.wait(), timeout=seconds)
        except TimeoutError:
            pass


class CancelToken:
    """Caller-owned cancellation signal with an optional deadline.

    The deadline is expressed on the clock the engine is running with, so
    simulated clocks in tests see the same notion of time.
    """

    def __init__(self, deadline: float | None = None, clock: Clock | None = None) -> None:
        self._event = asyncio.Event()
        self._reason = "cancelled"
        self._deadline = deadline
        self._clock = clock or SystemClock()

    @classmethod
    def with_timeout(cls, seconds: float, clock: Clock | None = None) -> CancelToken:
        """Create a token that expires `seconds` from now."""
        clock = clock or SystemClock()
        return cls(deadline=clock.monotonic() + seconds, clock=clock)

    def cancel(self, reason: str = "cancelled") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.deadline_passed

    @property
    def deadline_passed(self) -> bool:
        return self._deadline is not None and self._clock.monotonic() >= self._deadline

    @property
    def reason(self) -> str:
        if self._event.is_set():
            return self._reason
        return "deadline exceeded"

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock.monotonic())

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise ReconcileCancelled(self.reason)


async def pause(clock: Clock, seconds: float, cancel: CancelToken | None = None) -> None:
    """Sleep for `seconds`, aborting promptly on cancellation.

    Raises:
        ReconcileCancelled: If the token fires or its deadline passes.
    """
    if cancel is not None:
        cancel.raise_if_cancelled()
        remaining = cancel.remaining()
        if remaining is not None and remaining < seconds:
            # Sleep only up to the deadline, then report it
            await clock.sleep(remaining, cancel)
            cancel.raise_if_cancelled()
            raise ReconcileCancelled(cancel.reason)

    if seconds > 0:
        await clock.sleep(seconds, cancel)

    if cancel is not None:
        cancel.raise_if_cancelled()
