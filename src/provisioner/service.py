"""Database service resource type.

Services are the long-running compute resources. Most changes leave them in
a transitional status (CONFIGURING, PAUSING, ...) until the platform settles,
so resize, replica, pause and VPC ops are followed by a readiness poll.
"""

from __future__ import annotations

import secrets
from typing import Any

from .classifiers import BACKUPS_NOT_READY, STILL_ATTACHED
from .errors import RemoteOperationError, ValidationError
from .models import ObservedState, ResourceSpec, ServiceSpec, ServiceState
from .operations import MutationOp, OpKind, RemoteCall, ResourceRef
from .planner import FieldRule
from .poller import PollSpec
from .resource_type import ResourceType

DEFAULT_STORAGE_GB = "50"
SERVICE_TYPE = "TIMESCALEDB"
PASSWORD_TYPE = "SCRAM"

SERVICE_POLL = PollSpec(
    pending_statuses=frozenset({"QUEUED", "CONFIGURING", "UNSTABLE", "PAUSING", "RESUMING"}),
    target_statuses=frozenset({"READY", "PAUSED"}),
    timeout=45 * 60,
    poll_interval=15,
    initial_delay=30,
)


def random_service_name() -> str:
    return f"db-{10000 + secrets.randbelow(90000)}"


def _is_primary(desired: ResourceSpec) -> bool:
    return getattr(desired, "read_replica_source", None) is None


class ServiceType(ResourceType):
    name = "service"
    spec_model = ServiceSpec
    state_model = ServiceState

    create_fields = (
        "name",
        "milli_cpu",
        "memory_gb",
        "region_code",
        "ha_replicas",
        "sync_replicas",
        "connection_pooler_enabled",
        "environment_tag",
        "vpc_id",
        "read_replica_source",
    )

    # Ops run in declaration order
    field_rules = (
        FieldRule(("paused",), OpKind.SET_PAUSED, default=False, in_flux=True),
        FieldRule(("connection_pooler_enabled",), OpKind.SET_POOLER, default=False),
        FieldRule(("environment_tag",), OpKind.SET_ENVIRONMENT),
        FieldRule(
            ("ha_replicas", "sync_replicas"), OpKind.SET_REPLICA_COUNT, default=0, in_flux=True
        ),
        FieldRule(("vpc_id",), OpKind.ATTACH_NETWORK, reference=True, in_flux=True),
        FieldRule(("name",), OpKind.RENAME),
        FieldRule(
            ("metric_exporter_id",),
            OpKind.ATTACH_EXPORTER,
            reference=True,
            detach_kind=OpKind.DETACH_EXPORTER,
        ),
        FieldRule(
            ("log_exporter_id",),
            OpKind.ATTACH_EXPORTER,
            reference=True,
            detach_kind=OpKind.DETACH_EXPORTER,
        ),
        FieldRule(
            ("private_link_connection_id",),
            OpKind.ATTACH_NETWORK,
            reference=True,
            retry_on=STILL_ATTACHED,
        ),
        FieldRule(("milli_cpu", "memory_gb"), OpKind.RESIZE, in_flux=True),
        # Read replicas share the primary's credentials
        FieldRule(("password",), OpKind.SET_PASSWORD, tier=1, when=_is_primary),
    )

    immutable_fields = ("region_code", "hostname", "port", "read_replica_source")
    computed_fields = ("hostname", "port")
    write_only_fields = ("password",)

    create_poll = SERVICE_POLL
    update_poll = SERVICE_POLL

    create_retry_on = BACKUPS_NOT_READY

    def validate(self, desired: ResourceSpec, observed: ObservedState | None) -> None:
        def effective(name: str, default: Any = None) -> Any:
            if desired.is_set(name):
                return getattr(desired, name)
            if observed is not None:
                return getattr(observed, name, default)
            return default

        ha_replicas = effective("ha_replicas") or 0
        sync_replicas = effective("sync_replicas") or 0

        if sync_replicas == 1 and ha_replicas != 2:
            raise ValidationError(
                "sync_replicas = 1 requires ha_replicas = 2", field="sync_replicas"
            )
        if effective("read_replica_source") is not None and ha_replicas > 0:
            raise ValidationError(
                "A read replica cannot have HA replicas", field="ha_replicas"
            )

    def validate_create(self, desired: ResourceSpec) -> None:
        required = ("milli_cpu", "memory_gb", "region_code")
        missing = [name for name in required if getattr(desired, name) is None]
        if missing:
            raise ValidationError(
                f"service creation requires {', '.join(missing)}", field=missing[0]
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
            "name": payload.get("name") or random_service_name(),
            "type": SERVICE_TYPE,
            "regionCode": payload.get("region_code"),
            "resourceConfig": {
                "milliCPU": str(payload.get("milli_cpu")),
                "storageGB": DEFAULT_STORAGE_GB,
                "memoryGB": str(payload.get("memory_gb")),
                "replicaCount": str(payload.get("ha_replicas") or 0),
                "synchronousReplicaCount": str(payload.get("sync_replicas") or 0),
            },
            "enableConnectionPooler": bool(payload.get("connection_pooler_enabled")),
        }
        if payload.get("vpc_id"):
            variables["vpcId"] = payload["vpc_id"]
        if payload.get("environment_tag"):
            variables["environmentTag"] = payload["environment_tag"]
        if payload.get("read_replica_source"):
            variables["forkConfig"] = {
                "projectID": project_id,
                "serviceID": payload["read_replica_source"],
                "isStandby": True,
            }
        return RemoteCall("CreateService", variables)

    def parse_created(self, data: dict[str, Any], call: RemoteCall) -> str:
        service = (data.get("createService") or {}).get("service") or {}
        if not service.get("id"):
            raise RemoteOperationError(call.operation, ["no service id returned"])
        return str(service["id"])

    def mutation_call(self, op: MutationOp, ref: ResourceRef, project_id: str) -> RemoteCall:
        variables: dict[str, Any] = {"projectId": project_id, "serviceId": ref.resource_id}

        match (op.kind, op.target_field):
            case (OpKind.RENAME, _):
                return RemoteCall("RenameService", {**variables, "newName": op.value})
            case (OpKind.SET_PAUSED, _):
                status = "INACTIVE" if op.value else "ACTIVE"
                return RemoteCall("ToggleService", {**variables, "status": status})
            case (OpKind.SET_POOLER, _):
                return RemoteCall("ToggleConnectionPooler", {**variables, "enable": bool(op.value)})
            case (OpKind.SET_ENVIRONMENT, _):
                return RemoteCall("SetEnvironmentTag", {**variables, "environment": op.value})
            case (OpKind.RESIZE, _):
                config = {
                    "milliCPU": str(op.value["milli_cpu"]),
                    "storageGB": "0",
                    "memoryGB": str(op.value["memory_gb"]),
                }
                return RemoteCall("ResizeInstance", {**variables, "config": config})
            case (OpKind.SET_REPLICA_COUNT, _):
                return RemoteCall(
                    "SetReplicaCount",
                    {
                        **variables,
                        "replicaCount": op.value["ha_replicas"] or 0,
                        "synchronousReplicaCount": op.value["sync_replicas"] or 0,
                    },
                )
            case (OpKind.ATTACH_NETWORK, "vpc_id"):
                return RemoteCall("AttachServiceToVPC", {**variables, "vpcId": op.value})
            case (OpKind.DETACH_NETWORK, "vpc_id"):
                return RemoteCall("DetachServiceFromVPC", {**variables, "vpcId": op.value})
            case (OpKind.ATTACH_NETWORK, "private_link_connection_id"):
                return RemoteCall(
                    "AttachServiceToPrivateLink",
                    {**variables, "privateEndpointConnectionId": op.value},
                )
            case (OpKind.DETACH_NETWORK, "private_link_connection_id"):
                return RemoteCall(
                    "DetachServiceFromPrivateLink",
                    {**variables, "privateEndpointConnectionId": op.value},
                )
            case (OpKind.ATTACH_EXPORTER, "metric_exporter_id"):
                return RemoteCall("AttachMetricExporter", {**variables, "exporterUuid": op.value})
            case (OpKind.DETACH_EXPORTER, "metric_exporter_id"):
                return RemoteCall("DetachMetricExporter", {**variables, "exporterUuid": op.value})
            case (OpKind.ATTACH_EXPORTER, "log_exporter_id"):
                return RemoteCall("AttachGenericExporter", {**variables, "exporterId": op.value})
            case (OpKind.DETACH_EXPORTER, "log_exporter_id"):
                return RemoteCall("DetachGenericExporter", {**variables, "exporterId": op.value})
            case (OpKind.SET_PASSWORD, _):
                return RemoteCall(
                    "ResetServicePassword",
                    {
                        **variables,
                        "password": op.value.get_secret_value(),
                        "passwordType": PASSWORD_TYPE,
                    },
                )
            case _:
                raise self.unsupported(op)

    def read_call(self, ref: ResourceRef, project_id: str) -> RemoteCall:
        return RemoteCall("GetService", {"projectId": project_id, "serviceId": ref.resource_id})

    def parse_state(self, data: dict[str, Any], ref: ResourceRef) -> ServiceState:
        service = data.get("getService")
        if not service:
            raise RemoteOperationError("GetService", [f"service {ref.resource_id} not found"])

        resources = service.get("resources") or [{}]
        resource_spec = resources[0].get("spec") or {}
        spec = service.get("spec") or {}
        vpc_endpoint = service.get("vpcEndpoint") or {}
        fork = service.get("forkedFromId") or {}
        metadata = service.get("metadata") or {}

        vpc_id = vpc_endpoint.get("vpcId")
        return ServiceState(
            id=service["id"],
            status=service.get("status"),
            name=service.get("name"),
            milli_cpu=resource_spec.get("milliCPU"),
            memory_gb=resource_spec.get("memoryGB"),
            storage_gb=resource_spec.get("storageGB"),
            region_code=service.get("regionCode"),
            ha_replicas=resource_spec.get("replicaCount") or 0,
            sync_replicas=resource_spec.get("syncReplicaCount") or 0,
            connection_pooler_enabled=bool(spec.get("connectionPoolerEnabled")),
            environment_tag=metadata.get("environment"),
            vpc_id=int(vpc_id) if vpc_id else None,
            private_link_connection_id=service.get("privateLinkEndpointConnectionId"),
            metric_exporter_id=spec.get("metricExporterUuid") or None,
            log_exporter_id=spec.get("genericExporterID") or None,
            paused=bool(service.get("paused")),
            read_replica_source=fork.get("serviceId") if fork.get("isStandby") else None,
            hostname=spec.get("hostname"),
            port=spec.get("port"),
        )

    def delete_call(self, ref: ResourceRef, project_id: str) -> RemoteCall:
        return RemoteCall("DeleteService", {"projectId": project_id, "serviceId": ref.resource_id})
