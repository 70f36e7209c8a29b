"""Per-resource-type declarations consumed by the coordinator.

A ResourceType bundles everything the generic engine needs to know about
one kind of remote resource:
- field rules, gate field and create payload fields for the planner
- immutable fields and mutual-exclusion validation
- readiness PollSpecs for create and update
- retry classifiers for create and delete
- serializers turning ops into RemoteCalls and response data into state
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

from .cancellation import CancelToken
from .classifiers import ErrorClassifier
from .config import Config
from .errors import ValidationError
from .models import ObservedState, ResourceSpec
from .operations import MutationOp, RemoteCall, ResourceRef
from .planner import FieldRule, MutationPlanner
from .poller import PollSpec
from .retry import RetryExecutor
from .transport import Transport, call_checked


@dataclass(frozen=True)
class RemoteContext:
    """Explicit remote context passed to every serializer-driven call."""

    transport: Transport
    project_id: str
    config: Config
    retry: RetryExecutor
    cancel: CancelToken | None = None


class ResourceType:
    """Base declaration. Subclasses fill in the class attributes and serializers."""

    name: ClassVar[str] = ""
    spec_model: ClassVar[type[ResourceSpec]] = ResourceSpec
    state_model: ClassVar[type[ObservedState]] = ObservedState

    field_rules: ClassVar[tuple[FieldRule, ...]] = ()
    create_fields: ClassVar[tuple[str, ...]] = ()
    gate_field: ClassVar[str | None] = None
    immutable_fields: ClassVar[tuple[str, ...]] = ()
    # Assigned by the remote system after creation; None there means not yet known
    computed_fields: ClassVar[tuple[str, ...]] = ()
    # Applied to unset fields of a spec being created
    create_defaults: ClassVar[dict[str, Any]] = {}
    # Never reported back by the remote system; carried from the desired spec
    write_only_fields: ClassVar[tuple[str, ...]] = ()

    create_poll: ClassVar[PollSpec | None] = None
    update_poll: ClassVar[PollSpec | None] = None

    create_retry_on: ClassVar[ErrorClassifier | None] = None
    delete_retry_on: ClassVar[ErrorClassifier | None] = None

    def planner(self) -> MutationPlanner:
        return MutationPlanner(
            self.field_rules, gate_field=self.gate_field, create_fields=self.create_fields
        )

    def parent_id_for(self, desired: ResourceSpec) -> str | None:
        """Parent resource id implied by the desired state, if the type is nested."""
        return None

    def parent_id_of(self, observed: ObservedState) -> str | None:
        """Parent resource id recorded in an observed state."""
        return None

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(self, desired: ResourceSpec, observed: ObservedState | None) -> None:
        """Mutual-exclusion checks. Raise ValidationError on conflict."""

    def validate_create(self, desired: ResourceSpec) -> None:
        """Checks that only apply when creating (e.g. required fields)."""

    def check_immutable(self, desired: ResourceSpec, observed: ObservedState) -> None:
        """Reject changes to fields that cannot change after creation.

        Raises:
            ValidationError: A set immutable field differs from the observed value.
        """
        for name in self.immutable_fields:
            if not desired.is_set(name):
                continue
            current = getattr(observed, name, None)
            if current is None and name in self.computed_fields:
                continue
            wanted = getattr(desired, name)
            if not self.same_value(desired, name, current):
                raise ValidationError(
                    f"{self.name}.{name} cannot be changed after creation "
                    f"(current: {current!r}, desired: {wanted!r})",
                    field=name,
                )

    def same_value(self, desired: ResourceSpec, name: str, current: Any) -> bool:
        """Compare a desired immutable value with what the remote reports."""
        return getattr(desired, name) == current

    def with_create_defaults(self, desired: ResourceSpec) -> ResourceSpec:
        """Fill `create_defaults` into fields the desired spec leaves unset."""
        defaults = {
            name: value
            for name, value in self.create_defaults.items()
            if not desired.is_set(name)
        }
        if not defaults:
            return desired
        return desired.model_copy(update=defaults)

    # -------------------------------------------------------------------------
    # Serializers
    # -------------------------------------------------------------------------

    def create_call(
        self,
        desired: ResourceSpec,
        payload: dict[str, Any],
        project_id: str,
        parent_id: str | None,
    ) -> RemoteCall:
        raise NotImplementedError

    def parse_created(self, data: dict[str, Any], call: RemoteCall) -> str:
        """Extract the new resource id from the create response."""
        raise NotImplementedError

    def mutation_call(self, op: MutationOp, ref: ResourceRef, project_id: str) -> RemoteCall:
        raise NotImplementedError

    def read_call(self, ref: ResourceRef, project_id: str) -> RemoteCall:
        raise NotImplementedError

    def parse_state(self, data: dict[str, Any], ref: ResourceRef) -> ObservedState:
        raise NotImplementedError

    def delete_call(self, ref: ResourceRef, project_id: str) -> RemoteCall:
        raise NotImplementedError

    def unsupported(self, op: MutationOp) -> ValueError:
        return ValueError(f"{self.name} does not support {op.kind.value} on {op.target_field}")

    # -------------------------------------------------------------------------
    # Remote actions
    # -------------------------------------------------------------------------

    async def create_remote(
        self,
        desired: ResourceSpec,
        payload: dict[str, Any],
        parent_id: str | None,
        ctx: RemoteContext,
    ) -> str:
        """Issue the create call and return the new resource id."""
        call = self.create_call(desired, payload, ctx.project_id, parent_id)
        data = await call_checked(ctx.transport, call.operation, call.variables)
        return self.parse_created(data, call)

    async def read_remote(self, ref: ResourceRef, ctx: RemoteContext) -> ObservedState:
        call = self.read_call(ref, ctx.project_id)
        data = await call_checked(ctx.transport, call.operation, call.variables)
        return self.parse_state(data, ref)
