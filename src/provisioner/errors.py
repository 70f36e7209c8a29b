"""Error taxonomy for the reconciliation engine.

Lower layers (planner, poller, retry executor, transport) raise these
without interpreting them. The coordinator is the only place that decides
whether a failure triggers compensation.
"""

from __future__ import annotations

NOT_FOUND_MARKERS: tuple[str, ...] = ("not found", "does not exist", "no rows in result set")


class ReconcileError(Exception):
    """Base class for every error raised by the engine."""

    pass


class ValidationError(ReconcileError):
    """Desired state violates an immutability or mutual-exclusion constraint.

    Always raised before any remote call is issued. Never retried.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class TransportError(ReconcileError):
    """The remote call layer failed (network, HTTP status, malformed body)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteOperationError(ReconcileError):
    """The remote system executed the call but returned logical errors."""

    def __init__(self, operation: str, messages: list[str]) -> None:
        self.operation = operation
        self.messages = list(messages) or ["unknown error"]
        super().__init__(self.messages[0])

    def is_not_found(self) -> bool:
        """Check whether the remote system reported a missing resource."""
        return any(
            marker in message.lower() for message in self.messages for marker in NOT_FOUND_MARKERS
        )


class PollTimeoutError(ReconcileError):
    """Readiness polling exceeded its deadline while still pending."""

    def __init__(self, resource_id: str, last_status: str | None, timeout_seconds: float) -> None:
        super().__init__(
            f"Timed out after {timeout_seconds:g}s waiting for {resource_id} "
            f"(last status: {last_status or 'unknown'})"
        )
        self.resource_id = resource_id
        self.last_status = last_status
        self.timeout_seconds = timeout_seconds


class UnexpectedStatusError(ReconcileError):
    """Readiness polling observed a status that is neither pending nor target."""

    def __init__(self, resource_id: str, status: str) -> None:
        super().__init__(f"Resource {resource_id} entered unexpected status '{status}'")
        self.resource_id = resource_id
        self.status = status


class RetriesExhaustedError(ReconcileError):
    """A retryable failure persisted through every allowed attempt."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"Retries exhausted after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class ReconcileCancelled(ReconcileError):
    """The caller cancelled the reconciliation or its deadline passed."""

    def __init__(self, reason: str = "cancelled") -> None:
        super().__init__(f"Reconciliation stopped: {reason}")
        self.reason = reason


class CompensationFailure(ReconcileError):
    """Cleanup after a failed creation failed as well.

    Carries both errors. The remote resource may still exist and has to be
    removed by hand.
    """

    requires_manual_intervention = True

    def __init__(self, primary: BaseException, compensation_error: BaseException) -> None:
        super().__init__(
            f"{primary}; compensating delete also failed: {compensation_error}. "
            "The resource may still exist and needs manual cleanup."
        )
        self.primary = primary
        self.compensation_error = compensation_error
