"""Virtual network resource type."""

from __future__ import annotations

import secrets
from typing import Any

from .errors import RemoteOperationError, ValidationError
from .models import ResourceSpec, VpcSpec, VpcState
from .operations import MutationOp, OpKind, RemoteCall, ResourceRef
from .planner import FieldRule
from .poller import PollSpec
from .resource_type import ResourceType

VPC_CREATE_POLL = PollSpec(
    pending_statuses=frozenset({"CREATING"}),
    target_statuses=frozenset({"CREATED"}),
    timeout=5 * 60,
    poll_interval=5,
    initial_delay=5,
)


def random_vpc_name() -> str:
    return f"vpc-{10000 + secrets.randbelow(90000)}"


def _vpc_id(ref: ResourceRef) -> int:
    try:
        return int(ref.resource_id)
    except ValueError as e:
        raise ValidationError(f"VPC id must be numeric: {ref.resource_id}", field="id") from e


class VpcType(ResourceType):
    """VPCs only support renaming once created; renames settle immediately."""

    name = "vpc"
    spec_model = VpcSpec
    state_model = VpcState

    create_fields = ("name", "cidr", "region_code")
    field_rules = (FieldRule(("name",), OpKind.RENAME),)
    immutable_fields = ("cidr", "region_code")

    create_poll = VPC_CREATE_POLL

    def validate_create(self, desired: ResourceSpec) -> None:
        missing = [name for name in ("cidr", "region_code") if getattr(desired, name) is None]
        if missing:
            raise ValidationError(f"vpc creation requires {', '.join(missing)}", field=missing[0])

    def create_call(
        self,
        desired: ResourceSpec,
        payload: dict[str, Any],
        project_id: str,
        parent_id: str | None,
    ) -> RemoteCall:
        return RemoteCall(
            "CreateVPC",
            {
                "projectId": project_id,
                "name": payload.get("name") or random_vpc_name(),
                "cidr": payload["cidr"],
                "regionCode": payload["region_code"],
            },
        )

    def parse_created(self, data: dict[str, Any], call: RemoteCall) -> str:
        vpc = data.get("createVPC") or {}
        if not vpc.get("id"):
            raise RemoteOperationError(call.operation, ["no vpc id returned"])
        return str(vpc["id"])

    def mutation_call(self, op: MutationOp, ref: ResourceRef, project_id: str) -> RemoteCall:
        if op.kind is OpKind.RENAME:
            return RemoteCall(
                "RenameVPC",
                {"projectId": project_id, "vpcId": _vpc_id(ref), "newName": op.value},
            )
        raise self.unsupported(op)

    def read_call(self, ref: ResourceRef, project_id: str) -> RemoteCall:
        return RemoteCall("GetVPCByID", {"projectId": project_id, "vpcId": _vpc_id(ref)})

    def parse_state(self, data: dict[str, Any], ref: ResourceRef) -> VpcState:
        vpc = data.get("getVPC")
        if not vpc:
            raise RemoteOperationError("GetVPCByID", [f"vpc {ref.resource_id} not found"])
        return VpcState(
            id=str(vpc["id"]),
            status=vpc.get("status"),
            name=vpc.get("name"),
            cidr=vpc.get("cidr"),
            region_code=vpc.get("regionCode"),
            provisioned_id=vpc.get("provisionedId"),
            error_message=vpc.get("errorMessage") or None,
        )

    def delete_call(self, ref: ResourceRef, project_id: str) -> RemoteCall:
        return RemoteCall("DeleteVPC", {"projectId": project_id, "vpcId": _vpc_id(ref)})
