"""Readiness polling for asynchronously provisioned resources.

The remote system acknowledges a mutation long before the resource settles.
The poller repeatedly fetches the resource until its status reaches one of
the target statuses, leaves the pending set, or the deadline passes.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from .cancellation import CancelToken, Clock, SystemClock, pause
from .errors import PollTimeoutError, UnexpectedStatusError
from .models import ObservedState

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=ObservedState)


@dataclass(frozen=True)
class PollSpec:
    """Status sets and timing for one readiness wait (all times in seconds)."""

    pending_statuses: frozenset[str]
    target_statuses: frozenset[str]
    timeout: float
    poll_interval: float
    initial_delay: float = 0.0

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if self.timeout < 0 or self.initial_delay < 0:
            raise ValueError("timeout and initial_delay cannot be negative")
        if self.pending_statuses & self.target_statuses:
            raise ValueError("a status cannot be both pending and target")

    def with_timeout(self, timeout: float) -> PollSpec:
        return PollSpec(
            pending_statuses=self.pending_statuses,
            target_statuses=self.target_statuses,
            timeout=timeout,
            poll_interval=self.poll_interval,
            initial_delay=self.initial_delay,
        )


class ReadinessPoller:
    """Waits for a resource to reach a stable target status."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()

    async def wait_until_ready(
        self,
        resource_id: str,
        poll_spec: PollSpec,
        fetch: Callable[[], Awaitable[S]],
        cancel: CancelToken | None = None,
    ) -> S:
        """Poll `fetch` until the resource reaches a target status.

        The timeout is measured from the moment this method is entered, so
        the initial delay counts against it.

        Raises:
            UnexpectedStatusError: Status is neither pending nor target.
            PollTimeoutError: Deadline passed while still pending.
            ReconcileCancelled: Caller cancelled or its deadline passed.
            Exception: Any error raised by `fetch`, unchanged.
        """
        deadline = self._clock.monotonic() + poll_spec.timeout
        max_fetches = int(poll_spec.timeout // poll_spec.poll_interval) + 1

        logger.debug(
            "Waiting for resource readiness",
            extra={
                "resource_id": resource_id,
                "targets": sorted(poll_spec.target_statuses),
                "timeout_seconds": poll_spec.timeout,
            },
        )

        await pause(self._clock, poll_spec.initial_delay, cancel)

        fetches = 0
        while True:
            if cancel is not None:
                cancel.raise_if_cancelled()

            state = await fetch()
            fetches += 1
            status = state.status or ""

            if status in poll_spec.target_statuses:
                logger.info(
                    "Resource ready",
                    extra={"resource_id": resource_id, "status": status, "fetches": fetches},
                )
                return state

            if status not in poll_spec.pending_statuses:
                raise UnexpectedStatusError(resource_id, status)

            remaining = deadline - self._clock.monotonic()
            if remaining <= 0:
                raise PollTimeoutError(resource_id, status, poll_spec.timeout)

            logger.debug(
                "Resource still pending",
                extra={"resource_id": resource_id, "status": status, "fetches": fetches},
            )
            if remaining >= poll_spec.poll_interval:
                await pause(self._clock, poll_spec.poll_interval, cancel)
                continue

            # Less than one interval left: wait out the deadline, then fetch
            # once more unless that would exceed timeout / interval + 1 fetches
            await pause(self._clock, remaining, cancel)
            if fetches >= max_fetches:
                raise PollTimeoutError(resource_id, status, poll_spec.timeout)
