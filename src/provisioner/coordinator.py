"""Reconciliation coordinator.

Drives one resource from observed to desired state:
1. Validate immutability and mutual exclusion before any remote call
2. Plan the ordered ops with the resource type's MutationPlanner
3. Execute ops strictly in order, retrying where an op carries a classifier
4. Poll for readiness after in-flux ops and once more at the end
5. On a failed create, delete the half-created resource (compensation)

Updates are not rolled back. The result reports exactly which ops were
applied so the caller can decide what to do next.

The coordinator is the only component that turns exceptions into results;
every lower layer raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from .cancellation import CancelToken, Clock, SystemClock
from .config import Config
from .errors import (
    CompensationFailure,
    ReconcileCancelled,
    RemoteOperationError,
    ValidationError,
)
from .models import ObservedState, ResourceSpec
from .operations import MutationOp, OperationPlan, ResourceRef
from .poller import PollSpec, ReadinessPoller
from .resource_type import RemoteContext, ResourceType
from .retry import RetryExecutor
from .transport import Transport, call_checked

logger = logging.getLogger(__name__)


class ReconcileAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"


class FailedStep(str, Enum):
    """Phase of a reconciliation in which an error occurred."""

    VALIDATE = "validate"
    CREATE = "create"
    MUTATE = "mutate"
    POLL = "poll"
    READ = "read"


@dataclass
class ReconciliationResult:
    """Outcome of one create or update."""

    resource_type: str
    action: ReconcileAction
    resource_id: str | None = None
    plan: OperationPlan = field(default_factory=OperationPlan)
    applied: list[MutationOp] = field(default_factory=list)
    state: ObservedState | None = None
    failed_step: FailedStep | None = None
    failed_op: MutationOp | None = None
    error: Exception | None = None
    compensation_attempted: bool = False
    compensation_error: Exception | None = None
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None

    @property
    def duration_seconds(self) -> float:
        """Calculate duration in seconds."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def needs_manual_cleanup(self) -> bool:
        """True when a failed create may have left a resource behind."""
        return self.compensation_error is not None


@dataclass
class _Progress:
    step: FailedStep = FailedStep.VALIDATE
    op: MutationOp | None = None


class ReconciliationCoordinator:
    """Create, update, delete and read resources of one resource type.

    Callers must not run two reconciliations for the same resource id
    concurrently; nothing here serializes them.
    """

    def __init__(
        self,
        resource_type: ResourceType,
        transport: Transport,
        *,
        project_id: str | None = None,
        config: Config,
        clock: Clock | None = None,
    ) -> None:
        self._type = resource_type
        self._transport = transport
        self._config = config
        self._project_id = project_id or config.project_id
        self._clock = clock or SystemClock()
        self._retry = RetryExecutor(self._clock)
        self._poller = ReadinessPoller(self._clock)
        self._planner = resource_type.planner()

    @property
    def resource_type(self) -> ResourceType:
        return self._type

    def _context(self, cancel: CancelToken | None) -> RemoteContext:
        return RemoteContext(
            transport=self._transport,
            project_id=self._project_id,
            config=self._config,
            retry=self._retry,
            cancel=cancel,
        )

    def _create_poll(self) -> PollSpec | None:
        poll = self._type.create_poll
        if poll is not None and self._config.create_timeout_seconds is not None:
            return poll.with_timeout(self._config.create_timeout_seconds)
        return poll

    def _log_extra(self, resource_id: str | None, **fields: object) -> dict[str, object]:
        return {"resource_type": self._type.name, "resource_id": resource_id, **fields}

    # -------------------------------------------------------------------------
    # Planning
    # -------------------------------------------------------------------------

    def plan(self, desired: ResourceSpec, observed: ObservedState | None = None) -> OperationPlan:
        """Validate and plan without touching the remote system.

        Raises:
            ValidationError: Desired state is not reachable from observed.
        """
        if observed is None:
            desired = self._type.with_create_defaults(desired)
            self._type.validate_create(desired)
        else:
            self._type.check_immutable(desired, observed)
        self._type.validate(desired, observed)
        return self._planner.plan(desired, observed)

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    async def create(
        self,
        desired: ResourceSpec,
        *,
        parent_id: str | None = None,
        cancel: CancelToken | None = None,
    ) -> ReconciliationResult:
        """Create a resource and bring it to the desired state.

        Any failure after the resource exists triggers a compensating delete.
        Cancellation never does.
        """
        result = ReconciliationResult(self._type.name, ReconcileAction.CREATE)
        desired = self._type.with_create_defaults(desired)
        parent_id = parent_id or self._type.parent_id_for(desired)
        progress = _Progress()

        try:
            result.plan = self.plan(desired, None)
        except ValidationError as e:
            return self._finish(result, e, progress)

        create_op, *follow_up = result.plan
        ctx = self._context(cancel)

        logger.info(
            "Creating resource",
            extra=self._log_extra(None, ops=len(result.plan)),
        )

        progress.step, progress.op = FailedStep.CREATE, create_op
        try:
            resource_id = await self._run_create(desired, create_op, parent_id, ctx)
        except Exception as e:
            # Nothing exists yet, so there is nothing to compensate
            return self._finish(result, e, progress)

        result.resource_id = resource_id
        result.applied.append(create_op)
        ref = ResourceRef(self._type.name, resource_id, parent_id)

        create_poll = self._create_poll()
        try:
            last_state = None
            if create_poll is not None:
                progress.step = FailedStep.POLL
                last_state = await self._wait(ref, create_poll, ctx)

            state = await self._execute(
                ref,
                follow_up,
                result,
                progress,
                ctx,
                op_poll=self._type.update_poll,
                final_poll=create_poll,
                last_state=last_state,
            )
            result.state = self._with_write_only(state, desired)
        except ReconcileCancelled as e:
            logger.warning(
                "Create cancelled, resource left in place",
                extra=self._log_extra(resource_id, reason=e.reason),
            )
            return self._finish(result, e, progress)
        except Exception as e:
            await self._compensate(ref, result, e)
            return self._finish(result, result.error or e, progress)

        return self._finish(result, None, progress)

    async def _run_create(
        self,
        desired: ResourceSpec,
        create_op: MutationOp,
        parent_id: str | None,
        ctx: RemoteContext,
    ) -> str:
        async def attempt() -> str:
            return await self._type.create_remote(desired, create_op.value, parent_id, ctx)

        if ctx.cancel is not None:
            ctx.cancel.raise_if_cancelled()

        if self._type.create_retry_on is None:
            return await attempt()
        return await self._retry.run(
            attempt,
            self._type.create_retry_on,
            max_attempts=self._config.create_retry_attempts,
            interval=self._config.create_retry_interval_seconds,
            cancel=ctx.cancel,
            description=f"create {self._type.name}",
        )

    async def _compensate(
        self, ref: ResourceRef, result: ReconciliationResult, primary: Exception
    ) -> None:
        result.compensation_attempted = True
        logger.warning(
            "Create failed, deleting partially created resource",
            extra=self._log_extra(ref.resource_id, error=str(primary)),
        )
        try:
            # Compensation runs to completion regardless of the caller's token
            await self.delete(ref.resource_id, parent_id=ref.parent_id)
        except Exception as e:
            result.compensation_error = e
            result.error = CompensationFailure(primary, e)
            logger.error(
                "Compensating delete failed, manual cleanup required",
                extra=self._log_extra(
                    ref.resource_id,
                    error=str(primary),
                    compensation_error=str(e),
                    needs_manual_cleanup=True,
                ),
            )
            return
        result.error = primary

    # -------------------------------------------------------------------------
    # Update
    # -------------------------------------------------------------------------

    async def update(
        self,
        desired: ResourceSpec,
        observed: ObservedState,
        *,
        cancel: CancelToken | None = None,
    ) -> ReconciliationResult:
        """Apply the diff between `observed` and `desired` in place.

        An empty plan issues no remote call. Failures are not rolled back.
        """
        result = ReconciliationResult(
            self._type.name, ReconcileAction.UPDATE, resource_id=observed.id
        )
        progress = _Progress()

        try:
            result.plan = self.plan(desired, observed)
        except ValidationError as e:
            return self._finish(result, e, progress)

        if result.plan.is_empty:
            logger.info("Resource up to date", extra=self._log_extra(observed.id))
            result.state = observed
            return self._finish(result, None, progress)

        logger.info(
            "Updating resource",
            extra=self._log_extra(observed.id, ops=[str(op) for op in result.plan]),
        )

        parent_id = self._type.parent_id_for(desired) or self._type.parent_id_of(observed)
        ref = ResourceRef(self._type.name, observed.id, parent_id)
        try:
            state = await self._execute(
                ref,
                list(result.plan),
                result,
                progress,
                self._context(cancel),
                op_poll=self._type.update_poll,
                final_poll=self._type.update_poll,
            )
        except Exception as e:
            return self._finish(result, e, progress)

        result.state = self._with_write_only(state, desired)
        return self._finish(result, None, progress)

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def _execute(
        self,
        ref: ResourceRef,
        ops: list[MutationOp],
        result: ReconciliationResult,
        progress: _Progress,
        ctx: RemoteContext,
        *,
        op_poll: PollSpec | None,
        final_poll: PollSpec | None,
        last_state: ObservedState | None = None,
    ) -> ObservedState:
        """Run ops in order and return the settled state."""
        for op in ops:
            if ctx.cancel is not None:
                ctx.cancel.raise_if_cancelled()

            progress.step, progress.op = FailedStep.MUTATE, op
            await self._apply(op, ref, ctx)
            result.applied.append(op)
            last_state = None

            if op.in_flux and op_poll is not None:
                progress.step = FailedStep.POLL
                last_state = await self._wait(ref, op_poll, ctx)

        if last_state is not None:
            return last_state

        progress.op = None
        if final_poll is not None:
            progress.step = FailedStep.POLL
            return await self._wait(ref, final_poll, ctx)

        progress.step = FailedStep.READ
        return await self._type.read_remote(ref, ctx)

    async def _apply(self, op: MutationOp, ref: ResourceRef, ctx: RemoteContext) -> None:
        call = self._type.mutation_call(op, ref, ctx.project_id)
        logger.info(
            "Applying operation",
            extra=self._log_extra(ref.resource_id, op=op.kind.value, operation=call.operation),
        )

        async def attempt() -> None:
            await call_checked(ctx.transport, call.operation, call.variables)

        if op.retry_on is None:
            await attempt()
            return
        await self._retry.run(
            attempt,
            op.retry_on,
            max_attempts=self._config.attach_retry_attempts,
            interval=self._config.attach_retry_interval_seconds,
            cancel=ctx.cancel,
            description=f"{op.kind.value} {ref.resource_id}",
        )

    async def _wait(self, ref: ResourceRef, poll: PollSpec, ctx: RemoteContext) -> ObservedState:
        async def fetch() -> ObservedState:
            return await self._type.read_remote(ref, ctx)

        return await self._poller.wait_until_ready(ref.resource_id, poll, fetch, ctx.cancel)

    def _with_write_only(self, state: ObservedState, desired: ResourceSpec) -> ObservedState:
        carried = {
            name: getattr(desired, name)
            for name in self._type.write_only_fields
            if desired.is_set(name)
        }
        return state.model_copy(update=carried) if carried else state

    def _finish(
        self,
        result: ReconciliationResult,
        error: Exception | None,
        progress: _Progress,
    ) -> ReconciliationResult:
        result.end_time = datetime.now(UTC)
        if error is None:
            logger.info(
                "Reconciliation succeeded",
                extra=self._log_extra(
                    result.resource_id,
                    action=result.action.value,
                    applied=len(result.applied),
                    duration_seconds=result.duration_seconds,
                ),
            )
            return result

        result.error = error
        result.failed_step = progress.step
        result.failed_op = progress.op
        logger.error(
            "Reconciliation failed",
            extra=self._log_extra(
                result.resource_id,
                action=result.action.value,
                step=progress.step.value,
                op=str(progress.op) if progress.op else None,
                applied=[str(op) for op in result.applied],
                error=str(error),
                compensation_attempted=result.compensation_attempted,
            ),
        )
        return result

    # -------------------------------------------------------------------------
    # Delete / read
    # -------------------------------------------------------------------------

    async def delete(
        self,
        resource_id: str,
        *,
        parent_id: str | None = None,
        cancel: CancelToken | None = None,
    ) -> None:
        """Delete a resource. A resource that is already gone counts as deleted.

        Raises:
            RetriesExhaustedError: Delete stayed blocked through every attempt.
            RemoteOperationError: The remote system refused the delete.
            TransportError: The call could not be made.
            ReconcileCancelled: Caller cancelled between attempts.
        """
        ref = ResourceRef(self._type.name, resource_id, parent_id)
        call = self._type.delete_call(ref, self._project_id)

        async def attempt() -> None:
            await call_checked(self._transport, call.operation, call.variables)

        logger.info("Deleting resource", extra=self._log_extra(resource_id))
        try:
            if self._type.delete_retry_on is None:
                if cancel is not None:
                    cancel.raise_if_cancelled()
                await attempt()
            else:
                await self._retry.run(
                    attempt,
                    self._type.delete_retry_on,
                    max_attempts=self._config.delete_retry_attempts,
                    interval=self._config.delete_retry_interval_seconds,
                    cancel=cancel,
                    description=f"delete {self._type.name} {resource_id}",
                )
        except RemoteOperationError as e:
            if not e.is_not_found():
                raise
            logger.info("Resource already deleted", extra=self._log_extra(resource_id))
            return

        logger.info("Resource deleted", extra=self._log_extra(resource_id))

    async def read(self, resource_id: str, *, parent_id: str | None = None) -> ObservedState:
        """Fetch the current remote state of a resource."""
        ref = ResourceRef(self._type.name, resource_id, parent_id)
        return await self._type.read_remote(ref, self._context(None))
