"""S3 live-sync connector resource type.

A connector only accepts configuration changes while it is disabled, so the
planner wraps every change in SetEnabled(False) ... SetEnabled(True) when the
connector is currently enabled. Every op is sent as a single-item
UpdateS3Connector request list so failures map to exactly one op.
"""

from __future__ import annotations

import uuid
from typing import Any

from .errors import RemoteOperationError, ValidationError
from .models import (
    ColumnMapping,
    ObservedState,
    ResourceSpec,
    S3ConnectorSpec,
    S3ConnectorState,
    S3Credentials,
    S3Definition,
    TableIdentifier,
)
from .operations import MutationOp, OpKind, RemoteCall, ResourceRef
from .planner import FieldRule
from .resource_type import ResourceType

CREDENTIAL_TYPES = ("Public", "RoleARN")
DEFINITION_TYPES = ("CSV", "PARQUET")

# Update request type and payload key per op kind
UPDATE_REQUESTS: dict[OpKind, tuple[str, str]] = {
    OpKind.SET_BUCKET: ("BUCKET", "bucket"),
    OpKind.SET_PATTERN: ("PATTERN", "pattern"),
    OpKind.SET_CREDENTIALS: ("CREDENTIALS", "credentials"),
    OpKind.SET_DEFINITION: ("DEFINITION", "definition"),
    OpKind.SET_TABLE_IDENTIFIER: ("TABLE_IDENTIFIER", "table_identifier"),
    OpKind.SET_FREQUENCY: ("FREQUENCY", "frequency"),
    OpKind.RENAME: ("NAME", "name"),
    OpKind.SET_SETTINGS: ("SETTINGS", "settings"),
    OpKind.SET_ENABLED: ("ENABLED", "enabled"),
}


def credentials_input(credentials: S3Credentials) -> dict[str, Any]:
    result: dict[str, Any] = {"type": credentials.type}
    if credentials.role_arn:
        result["role"] = {"arn": credentials.role_arn}
    return result


def _mappings_input(mappings: list[ColumnMapping]) -> list[dict[str, str]]:
    return [{"source": m.source, "destination": m.destination} for m in mappings]


def definition_input(definition: S3Definition) -> dict[str, Any]:
    result: dict[str, Any] = {"type": definition.type}
    if definition.csv is not None:
        csv: dict[str, Any] = {
            "skip_header": definition.csv.skip_header,
            "auto_column_mapping": definition.csv.auto_column_mapping,
        }
        if definition.csv.delimiter:
            csv["delimiter"] = definition.csv.delimiter
        if definition.csv.column_names:
            csv["column_names"] = list(definition.csv.column_names)
        if definition.csv.column_mappings:
            csv["column_mappings"] = _mappings_input(definition.csv.column_mappings)
        result["csv"] = csv
    if definition.parquet is not None:
        parquet: dict[str, Any] = {"auto_column_mapping": definition.parquet.auto_column_mapping}
        if definition.parquet.column_mappings:
            parquet["column_mappings"] = _mappings_input(definition.parquet.column_mappings)
        result["parquet"] = parquet
    return result


def table_identifier_input(table: TableIdentifier) -> dict[str, Any]:
    return {"table_name": table.table_name, "schema_name": table.schema_name or ""}


class S3ConnectorType(ResourceType):
    name = "s3_connector"
    spec_model = S3ConnectorSpec
    state_model = S3ConnectorState

    create_fields = (
        "service_id",
        "name",
        "bucket",
        "pattern",
        "credentials",
        "definition",
        "table_identifier",
    )

    field_rules = (
        FieldRule(("bucket",), OpKind.SET_BUCKET),
        FieldRule(("pattern",), OpKind.SET_PATTERN),
        FieldRule(("credentials",), OpKind.SET_CREDENTIALS),
        FieldRule(("definition",), OpKind.SET_DEFINITION),
        FieldRule(("table_identifier",), OpKind.SET_TABLE_IDENTIFIER),
        FieldRule(("frequency",), OpKind.SET_FREQUENCY),
        FieldRule(("name",), OpKind.RENAME),
        FieldRule(("on_conflict_do_nothing",), OpKind.SET_SETTINGS),
    )
    gate_field = "enabled"
    immutable_fields = ("service_id",)
    # New connectors sync continuously unless told otherwise
    create_defaults = {"frequency": "@always", "enabled": True}

    def parent_id_for(self, desired: ResourceSpec) -> str | None:
        return getattr(desired, "service_id", None)

    def parent_id_of(self, observed: ObservedState) -> str | None:
        return getattr(observed, "service_id", None)

    def validate(self, desired: ResourceSpec, observed: ObservedState | None) -> None:
        credentials = getattr(desired, "credentials", None)
        if credentials is not None:
            if credentials.type not in CREDENTIAL_TYPES:
                raise ValidationError(
                    f"credentials.type must be one of {', '.join(CREDENTIAL_TYPES)}",
                    field="credentials",
                )
            if credentials.type == "RoleARN" and not credentials.role_arn:
                raise ValidationError(
                    "credentials.role_arn is required for RoleARN credentials",
                    field="credentials",
                )
            if credentials.type == "Public" and credentials.role_arn:
                raise ValidationError(
                    "credentials.role_arn is not allowed for Public credentials",
                    field="credentials",
                )

        definition = getattr(desired, "definition", None)
        if definition is not None:
            self._validate_definition(definition)

    def _validate_definition(self, definition: S3Definition) -> None:
        if definition.type not in DEFINITION_TYPES:
            raise ValidationError(
                f"definition.type must be one of {', '.join(DEFINITION_TYPES)}",
                field="definition",
            )
        if definition.type == "CSV" and definition.parquet is not None:
            raise ValidationError(
                "CSV definitions cannot carry parquet options", field="definition"
            )
        if definition.type == "PARQUET" and definition.csv is not None:
            raise ValidationError(
                "PARQUET definitions cannot carry csv options", field="definition"
            )

        csv = definition.csv
        if csv is None:
            return

        column_options = [
            bool(csv.column_names),
            bool(csv.column_mappings),
            csv.auto_column_mapping,
        ]
        if sum(column_options) > 1:
            raise ValidationError(
                "Only one of column_names, column_mappings and auto_column_mapping may be set",
                field="definition",
            )
        if (csv.column_mappings or csv.auto_column_mapping) and not csv.skip_header:
            raise ValidationError(
                "column_mappings and auto_column_mapping require skip_header",
                field="definition",
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
            "id": str(uuid.uuid4()),
            "projectId": project_id,
            "serviceId": parent_id or payload["service_id"],
        }
        if payload.get("bucket"):
            variables["bucket"] = payload["bucket"]
        if payload.get("pattern"):
            variables["pattern"] = payload["pattern"]
        if payload.get("name"):
            variables["name"] = payload["name"]
        if payload.get("credentials") is not None:
            variables["credentials"] = credentials_input(payload["credentials"])
        if payload.get("definition") is not None:
            variables["definition"] = definition_input(payload["definition"])
        if payload.get("table_identifier") is not None:
            variables["tableIdentifier"] = table_identifier_input(payload["table_identifier"])
        return RemoteCall("CreateS3Connector", variables)

    def parse_created(self, data: dict[str, Any], call: RemoteCall) -> str:
        # The id is chosen client-side; the response only acknowledges it
        return call.variables["id"]

    def _update_value(self, op: MutationOp) -> Any:
        match op.kind:
            case OpKind.SET_CREDENTIALS:
                return credentials_input(op.value)
            case OpKind.SET_DEFINITION:
                return definition_input(op.value)
            case OpKind.SET_TABLE_IDENTIFIER:
                return table_identifier_input(op.value)
            case OpKind.SET_SETTINGS:
                return {"on_conflict_do_nothing": bool(op.value)}
            case OpKind.SET_ENABLED:
                return bool(op.value)
            case _:
                return op.value

    def mutation_call(self, op: MutationOp, ref: ResourceRef, project_id: str) -> RemoteCall:
        if op.kind not in UPDATE_REQUESTS:
            raise self.unsupported(op)
        request_type, key = UPDATE_REQUESTS[op.kind]
        return RemoteCall(
            "UpdateS3Connector",
            {
                "id": ref.resource_id,
                "projectId": project_id,
                "serviceId": ref.parent_id,
                "requests": [{"type": request_type, key: {"value": self._update_value(op)}}],
            },
        )

    def read_call(self, ref: ResourceRef, project_id: str) -> RemoteCall:
        return RemoteCall(
            "GetS3Connector",
            {"id": ref.resource_id, "projectId": project_id, "serviceId": ref.parent_id},
        )

    def parse_state(self, data: dict[str, Any], ref: ResourceRef) -> S3ConnectorState:
        connector = data.get("getS3LiveSync")
        if not connector:
            raise RemoteOperationError("GetS3Connector", ["connector not found"])

        credentials = connector.get("credentials")
        if credentials:
            credentials = S3Credentials(
                type=credentials["type"],
                role_arn=(credentials.get("role") or {}).get("arn"),
            )

        table = connector.get("table_identifier")
        if table:
            table = TableIdentifier(
                table_name=table["table_name"], schema_name=table.get("schema_name") or None
            )

        definition = connector.get("definition")
        settings = connector.get("settings") or {}
        return S3ConnectorState(
            id=connector["id"],
            service_id=connector.get("service_id") or ref.parent_id,
            name=connector.get("name"),
            bucket=connector.get("bucket"),
            pattern=connector.get("pattern"),
            credentials=credentials or None,
            definition=S3Definition.model_validate(definition) if definition else None,
            table_identifier=table or None,
            frequency=connector.get("frequency"),
            on_conflict_do_nothing=settings.get("on_conflict_do_nothing"),
            enabled=bool(connector.get("enabled")),
            last_error=connector.get("last_error") or None,
        )

    def delete_call(self, ref: ResourceRef, project_id: str) -> RemoteCall:
        return RemoteCall(
            "DeleteS3Connector",
            {"id": ref.resource_id, "projectId": project_id, "serviceId": ref.parent_id},
        )
