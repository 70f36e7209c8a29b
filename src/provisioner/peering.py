"""VPC peering connection resource type.

A peering connection is opened from a managed VPC towards a peer VPC or a
transit gateway in another account. The platform only lists it under its
VPC, so every read fetches the VPC and picks the connection out of
`peeringConnections`. Until the cloud side has assigned a provisioned id the
connection is reported as PROVISIONING.
"""

from __future__ import annotations

import logging
from typing import Any

from .errors import RemoteOperationError, ValidationError
from .models import (
    ObservedState,
    PeeringConnectionSpec,
    PeeringConnectionState,
    ResourceSpec,
)
from .operations import MutationOp, OpKind, RemoteCall, ResourceRef
from .planner import FieldRule
from .poller import PollSpec
from .resource_type import ResourceType

logger = logging.getLogger(__name__)

PROVISIONING = "PROVISIONING"

PEERING_POLL = PollSpec(
    pending_statuses=frozenset({PROVISIONING}),
    target_statuses=frozenset({"PENDING", "ACTIVE", "APPROVED"}),
    timeout=10 * 60,
    poll_interval=15,
    initial_delay=30,
)

# Peer ids are AWS ids; the prefix tells which kind of peer they name
PEER_PREFIXES = {"vpc-": "vpc", "tgw-": "tgw"}


def _int_id(value: str | None, field: str) -> int:
    try:
        return int(value or "")
    except ValueError as e:
        raise ValidationError(f"{field} must be numeric: {value!r}", field=field) from e


def peering_type(peer_id: str) -> str:
    """Return "vpc" or "tgw" for a peer id.

    Raises:
        ValueError: The id carries neither prefix.
    """
    for prefix, kind in PEER_PREFIXES.items():
        if peer_id.startswith(prefix):
            return kind
    raise ValueError(f"invalid peer id: {peer_id}")


class PeeringConnectionType(ResourceType):
    """Only the peer CIDR blocks can change once the connection is open."""

    name = "peering_connection"
    spec_model = PeeringConnectionSpec
    state_model = PeeringConnectionState

    create_fields = (
        "vpc_id",
        "peer_account_id",
        "peer_region_code",
        "peer_vpc_id",
        "peer_tgw_id",
        "peer_cidr_blocks",
    )
    field_rules = (FieldRule(("peer_cidr_blocks",), OpKind.SET_PEER_CIDR_BLOCKS),)
    immutable_fields = (
        "vpc_id",
        "peer_account_id",
        "peer_region_code",
        "peer_vpc_id",
        "peer_tgw_id",
    )

    create_poll = PEERING_POLL

    def parent_id_for(self, desired: ResourceSpec) -> str | None:
        vpc_id = getattr(desired, "vpc_id", None)
        return str(vpc_id) if vpc_id is not None else None

    def parent_id_of(self, observed: ObservedState) -> str | None:
        vpc_id = getattr(observed, "vpc_id", None)
        return str(vpc_id) if vpc_id is not None else None

    def validate(self, desired: ResourceSpec, observed: ObservedState | None) -> None:
        if getattr(desired, "peer_vpc_id", None) and getattr(desired, "peer_tgw_id", None):
            raise ValidationError(
                "Only one of peer_vpc_id or peer_tgw_id can be provided", field="peer_vpc_id"
            )
        if observed is not None and desired.is_set("peer_cidr_blocks"):
            if not getattr(desired, "peer_cidr_blocks", None):
                raise ValidationError(
                    "peer_cidr_blocks can not be empty", field="peer_cidr_blocks"
                )

    def validate_create(self, desired: ResourceSpec) -> None:
        missing = [
            name
            for name in ("peer_account_id", "peer_region_code")
            if getattr(desired, name) is None
        ]
        if missing:
            raise ValidationError(
                f"peering connection creation requires {', '.join(missing)}", field=missing[0]
            )

        peer_vpc_id = getattr(desired, "peer_vpc_id", None)
        peer_tgw_id = getattr(desired, "peer_tgw_id", None)
        if not peer_vpc_id and not peer_tgw_id:
            raise ValidationError(
                "One of peer_vpc_id or peer_tgw_id is required", field="peer_vpc_id"
            )
        if peer_tgw_id and not getattr(desired, "peer_cidr_blocks", None):
            raise ValidationError(
                "peer_cidr_blocks is required for Transit Gateway peering",
                field="peer_cidr_blocks",
            )

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
        variables: dict[str, Any] = {
            "projectId": project_id,
            "vpcId": payload["vpc_id"],
            "externalVpcId": payload.get("peer_vpc_id") or payload.get("peer_tgw_id"),
            "accountId": payload["peer_account_id"],
            "regionCode": payload["peer_region_code"],
        }
        if payload.get("peer_cidr_blocks"):
            variables["cidrBlocks"] = list(payload["peer_cidr_blocks"])
        return RemoteCall("OpenPeerRequest", variables)

    def parse_created(self, data: dict[str, Any], call: RemoteCall) -> str:
        request = data.get("openPeerRequest") or {}
        if not request.get("id"):
            raise RemoteOperationError(call.operation, ["no peering connection id returned"])
        return str(request["id"])

    def mutation_call(self, op: MutationOp, ref: ResourceRef, project_id: str) -> RemoteCall:
        if op.kind is OpKind.SET_PEER_CIDR_BLOCKS:
            return RemoteCall(
                "UpdatePeeringConnectionCIDRs",
                {
                    "projectId": project_id,
                    "vpcId": _int_id(ref.parent_id, "vpc_id"),
                    "id": _int_id(ref.resource_id, "id"),
                    "cidrBlocks": list(op.value),
                },
            )
        raise self.unsupported(op)

    def read_call(self, ref: ResourceRef, project_id: str) -> RemoteCall:
        return RemoteCall(
            "GetVPCByID", {"projectId": project_id, "vpcId": _int_id(ref.parent_id, "vpc_id")}
        )

    def parse_state(self, data: dict[str, Any], ref: ResourceRef) -> PeeringConnectionState:
        vpc = data.get("getVPC")
        if not vpc:
            raise RemoteOperationError("GetVPCByID", [f"vpc {ref.parent_id} not found"])

        for connection in vpc.get("peeringConnections") or []:
            if str(connection.get("id")) == ref.resource_id:
                return self._to_state(vpc, connection)
        raise RemoteOperationError(
            "GetVPCByID", [f"peering connection {ref.resource_id} not found"]
        )

    def _to_state(
        self, vpc: dict[str, Any], connection: dict[str, Any]
    ) -> PeeringConnectionState:
        peer = connection.get("peerVPC") or {}
        provisioned_id = connection.get("provisionedId") or None
        status = connection.get("status") if provisioned_id else PROVISIONING

        peer_id = peer.get("id") or ""
        try:
            kind = peering_type(peer_id) if peer_id else None
        except ValueError as e:
            raise RemoteOperationError("GetVPCByID", [str(e)]) from e
        if connection.get("errorMessage"):
            logger.warning(
                "Peering connection reports an error",
                extra={
                    "resource_id": connection.get("id"),
                    "status": status,
                    "error": connection["errorMessage"],
                },
            )

        return PeeringConnectionState(
            id=str(connection["id"]),
            status=status,
            vpc_id=int(vpc["id"]),
            cloud_vpc_id=vpc.get("provisionedId"),
            provisioned_id=provisioned_id,
            error_message=connection.get("errorMessage") or None,
            peering_type=kind,
            peer_account_id=peer.get("accountId"),
            peer_region_code=peer.get("regionCode"),
            peer_vpc_id=peer_id if kind == "vpc" else None,
            peer_tgw_id=peer_id if kind == "tgw" else None,
            peer_cidr_blocks=list(peer.get("cidrBlocks") or []),
        )

    def delete_call(self, ref: ResourceRef, project_id: str) -> RemoteCall:
        return RemoteCall(
            "DeletePeeringConnection",
            {
                "projectId": project_id,
                "vpcId": _int_id(ref.parent_id, "vpc_id"),
                "id": _int_id(ref.resource_id, "id"),
            },
        )
