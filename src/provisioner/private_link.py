"""Private link connection resource type.

Connections are created on the cloud provider side (an AWS VPC endpoint or an
Azure private endpoint). Creating one here means waiting until the platform
has synced it, adopting it, and then configuring its IP address and name.
"""

from __future__ import annotations

import logging
from typing import Any

from .classifiers import DEPENDENT_BINDINGS
from .errors import ReconcileError, RemoteOperationError, ValidationError
from .models import (
    ObservedState,
    PrivateLinkConnectionSpec,
    PrivateLinkConnectionState,
    ResourceSpec,
)
from .operations import MutationOp, OpKind, RemoteCall, ResourceRef
from .planner import FieldRule
from .resource_type import RemoteContext, ResourceType
from .transport import call_checked

logger = logging.getLogger(__name__)

CLOUD_PROVIDERS = ("aws", "azure")


class ConnectionNotDiscovered(ReconcileError):
    """The provider-side connection has not been synced yet."""

    def __init__(self, provider_connection_id: str) -> None:
        super().__init__(f"connection {provider_connection_id} not found yet")
        self.provider_connection_id = provider_connection_id


def connection_pending(error: BaseException) -> bool:
    return isinstance(error, ConnectionNotDiscovered)


def find_connection(
    connections: list[dict[str, Any]], cloud_provider: str, provider_connection_id: str
) -> dict[str, Any] | None:
    """Match a provider-side id against the synced connections.

    Azure reports `<endpoint name>.<suffix>`, so only the prefix is compared.
    AWS reports the VPC endpoint id verbatim.
    """
    for connection in connections:
        reported = connection.get("providerConnectionId") or ""
        if cloud_provider == "azure" and reported.startswith(provider_connection_id + "."):
            return connection
        if cloud_provider == "aws" and reported == provider_connection_id:
            return connection
    return None


def _to_state(connection: dict[str, Any], cloud_provider: str | None) -> PrivateLinkConnectionState:
    return PrivateLinkConnectionState(
        id=connection["connectionId"],
        status=connection.get("state"),
        cloud_provider=connection.get("cloudProvider") or cloud_provider,
        provider_connection_id=connection.get("providerConnectionId"),
        region=connection.get("region"),
        ip_address=connection.get("ipAddress") or None,
        name=connection.get("name") or None,
        link_identifier=connection.get("linkIdentifier"),
    )


class PrivateLinkConnectionType(ResourceType):
    name = "private_link_connection"
    spec_model = PrivateLinkConnectionSpec
    state_model = PrivateLinkConnectionState

    create_fields = ("cloud_provider", "provider_connection_id", "region")
    field_rules = (
        FieldRule(("ip_address",), OpKind.SET_IP_ADDRESS),
        FieldRule(("name",), OpKind.RENAME),
    )
    immutable_fields = ("cloud_provider", "provider_connection_id", "region")

    # Deleting a connection is refused while services are still bound to it
    delete_retry_on = DEPENDENT_BINDINGS

    def same_value(self, desired: ResourceSpec, name: str, current: Any) -> bool:
        wanted = getattr(desired, name)
        if current is None:
            return wanted is None
        if name == "cloud_provider":
            return str(current).lower() == str(wanted).lower()
        if name == "provider_connection_id":
            reported = [{"providerConnectionId": current}]
            provider = str(getattr(desired, "cloud_provider", "")).lower()
            return find_connection(reported, provider, wanted) is not None
        return wanted == current

    def validate(self, desired: ResourceSpec, observed: ObservedState | None) -> None:
        provider = getattr(desired, "cloud_provider", None)
        if provider not in CLOUD_PROVIDERS:
            raise ValidationError(
                f"cloud_provider must be one of {', '.join(CLOUD_PROVIDERS)}",
                field="cloud_provider",
            )

    async def create_remote(
        self,
        desired: ResourceSpec,
        payload: dict[str, Any],
        parent_id: str | None,
        ctx: RemoteContext,
    ) -> str:
        """Sync provider connections until the desired one shows up."""
        cloud_provider = payload["cloud_provider"]
        provider_connection_id = payload["provider_connection_id"]

        async def discover() -> str:
            try:
                await call_checked(
                    ctx.transport, "SyncPrivateLinkConnections", {"projectId": ctx.project_id}
                )
            except RemoteOperationError as e:
                # Listing may still succeed from the last completed sync
                logger.warning(
                    "Failed to sync private link connections",
                    extra={"error": str(e)},
                )

            data = await call_checked(
                ctx.transport,
                "ListPrivateLinkConnections",
                {"projectId": ctx.project_id, "region": payload["region"]},
            )
            connections = data.get("listPrivateLinkConnections") or []
            match = find_connection(connections, cloud_provider, provider_connection_id)
            if match is None:
                raise ConnectionNotDiscovered(provider_connection_id)
            return str(match["connectionId"])

        return await ctx.retry.run(
            discover,
            connection_pending,
            max_attempts=ctx.config.create_retry_attempts,
            interval=ctx.config.create_retry_interval_seconds,
            cancel=ctx.cancel,
            description=f"discover private link {provider_connection_id}",
        )

    def mutation_call(self, op: MutationOp, ref: ResourceRef, project_id: str) -> RemoteCall:
        variables: dict[str, Any] = {"projectId": project_id, "connectionId": ref.resource_id}
        match op.kind:
            case OpKind.SET_IP_ADDRESS:
                return RemoteCall(
                    "UpdatePrivateLinkConnection", {**variables, "ipAddress": op.value}
                )
            case OpKind.RENAME:
                return RemoteCall("UpdatePrivateLinkConnection", {**variables, "name": op.value})
            case _:
                raise self.unsupported(op)

    def read_call(self, ref: ResourceRef, project_id: str) -> RemoteCall:
        return RemoteCall("ListPrivateLinkConnections", {"projectId": project_id})

    def parse_state(self, data: dict[str, Any], ref: ResourceRef) -> PrivateLinkConnectionState:
        for connection in data.get("listPrivateLinkConnections") or []:
            if connection.get("connectionId") == ref.resource_id:
                return _to_state(connection, None)
        raise RemoteOperationError(
            "ListPrivateLinkConnections", [f"connection {ref.resource_id} not found"]
        )

    def delete_call(self, ref: ResourceRef, project_id: str) -> RemoteCall:
        return RemoteCall(
            "DeletePrivateLinkConnection",
            {"projectId": project_id, "connectionId": ref.resource_id},
        )
