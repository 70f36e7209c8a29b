"""Bounded retry of a single remote action.

Only failures the call site explicitly classifies as transient are retried;
everything else propagates unchanged on the first attempt.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .cancellation import CancelToken, Clock, SystemClock, pause
from .classifiers import ErrorClassifier
from .errors import ReconcileCancelled, RetriesExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExecutor:
    """Runs an action up to `max_attempts` times with a fixed interval."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()

    async def run(
        self,
        action: Callable[[], Awaitable[T]],
        is_retryable: ErrorClassifier,
        max_attempts: int,
        interval: float,
        cancel: CancelToken | None = None,
        description: str = "action",
    ) -> T:
        """Invoke `action` until it succeeds, fails fatally, or attempts run out.

        Args:
            action: Zero-argument coroutine function performing one attempt.
            is_retryable: Classifier applied to each failure.
            max_attempts: Total attempts allowed, including the first.
            interval: Seconds to wait between attempts.
            cancel: Optional caller cancellation token.
            description: Human-readable name for logging.

        Returns:
            Whatever `action` returns on success.

        Raises:
            RetriesExhaustedError: If every attempt failed with a retryable error.
            ReconcileCancelled: If cancelled before or between attempts.
            Exception: The first non-retryable error, unchanged.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        for attempt in range(1, max_attempts + 1):
            if cancel is not None:
                cancel.raise_if_cancelled()

            try:
                return await action()
            except ReconcileCancelled:
                raise
            except Exception as e:
                if not is_retryable(e):
                    raise

                if attempt == max_attempts:
                    logger.warning(
                        "Retries exhausted",
                        extra={
                            "description": description,
                            "attempts": attempt,
                            "error": str(e),
                        },
                    )
                    raise RetriesExhaustedError(attempt, e) from e

                logger.info(
                    "Transient failure, retrying",
                    extra={
                        "description": description,
                        "attempt": attempt,
                        "max_attempts": max_attempts,
                        "wait_seconds": interval,
                        "error": str(e),
                    },
                )
                await pause(self._clock, interval, cancel)

        # Unreachable: the loop either returns or raises on the last attempt
        raise AssertionError("retry loop exited without a result")
