"""Pydantic models for desired and observed resource state.

Desired specs distinguish three situations for every field:
1. Unset: the field is absent from `model_fields_set` and is left alone
2. Null: the field is explicitly None (e.g. detach from a network)
3. A value, including zero values such as 0, False and ""

Observed states mirror what the remote system last reported. Both are frozen
so a reconciliation pass can never mutate its inputs.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, Field, SecretStr

# =============================================================================
# Base Models
# =============================================================================


class ResourceSpec(BaseModel):
    """Desired configuration for one managed resource."""

    model_config = {"extra": "forbid", "frozen": True, "populate_by_name": True}

    def is_set(self, name: str) -> bool:
        """Check whether a field was provided (even if provided as None)."""
        return name in self.model_fields_set

    def set_fields(self) -> dict[str, Any]:
        """Return provided fields in declaration order."""
        return {
            name: getattr(self, name)
            for name in type(self).model_fields
            if name in self.model_fields_set
        }


class ObservedState(BaseModel):
    """Last known remote representation of a resource."""

    model_config = {"extra": "ignore", "frozen": True, "populate_by_name": True}

    id: str
    status: str | None = None


# =============================================================================
# Compute Services
# =============================================================================


class ServiceSpec(ResourceSpec):
    """Database service specification."""

    name: str | None = None
    milli_cpu: Annotated[int, Field(gt=0)] | None = Field(None, alias="milliCpu")
    memory_gb: Annotated[int, Field(gt=0)] | None = Field(None, alias="memoryGb")
    region_code: str | None = Field(None, alias="regionCode")
    ha_replicas: Annotated[int, Field(ge=0, le=2)] | None = Field(None, alias="haReplicas")
    sync_replicas: Annotated[int, Field(ge=0, le=1)] | None = Field(None, alias="syncReplicas")
    connection_pooler_enabled: bool | None = Field(None, alias="connectionPoolerEnabled")
    environment_tag: str | None = Field(None, alias="environmentTag")
    vpc_id: int | None = Field(None, alias="vpcId")
    private_link_connection_id: str | None = Field(None, alias="privateLinkConnectionId")
    metric_exporter_id: str | None = Field(None, alias="metricExporterId")
    log_exporter_id: str | None = Field(None, alias="logExporterId")
    paused: bool | None = None
    password: SecretStr | None = None
    read_replica_source: str | None = Field(None, alias="readReplicaSource")

    # Computed by the remote system; only compared, never sent
    hostname: str | None = None
    port: int | None = None


class ServiceState(ObservedState):
    """Observed database service."""

    name: str | None = None
    milli_cpu: int | None = None
    memory_gb: int | None = None
    storage_gb: int | None = None
    region_code: str | None = None
    ha_replicas: int = 0
    sync_replicas: int = 0
    connection_pooler_enabled: bool = False
    environment_tag: str | None = None
    vpc_id: int | None = None
    private_link_connection_id: str | None = None
    metric_exporter_id: str | None = None
    log_exporter_id: str | None = None
    paused: bool = False
    password: SecretStr | None = None
    read_replica_source: str | None = None
    hostname: str | None = None
    port: int | None = None


# =============================================================================
# Virtual Networks
# =============================================================================


class VpcSpec(ResourceSpec):
    """Virtual network specification."""

    name: str | None = None
    cidr: str | None = None
    region_code: str | None = Field(None, alias="regionCode")


class VpcState(ObservedState):
    """Observed virtual network."""

    name: str | None = None
    cidr: str | None = None
    region_code: str | None = None
    provisioned_id: str | None = None
    error_message: str | None = None


# =============================================================================
# S3 Data Connectors
# =============================================================================


class S3Credentials(BaseModel):
    """Bucket access configuration."""

    model_config = {"extra": "forbid", "frozen": True, "populate_by_name": True}

    type: str
    role_arn: str | None = Field(None, alias="roleArn")


class ColumnMapping(BaseModel):
    model_config = {"extra": "forbid", "frozen": True}

    source: str
    destination: str


class CsvDefinition(BaseModel):
    model_config = {"extra": "forbid", "frozen": True, "populate_by_name": True}

    delimiter: str | None = None
    skip_header: bool = Field(False, alias="skipHeader")
    column_names: list[str] = Field(default_factory=list, alias="columnNames")
    column_mappings: list[ColumnMapping] = Field(default_factory=list, alias="columnMappings")
    auto_column_mapping: bool = Field(False, alias="autoColumnMapping")


class ParquetDefinition(BaseModel):
    model_config = {"extra": "forbid", "frozen": True, "populate_by_name": True}

    column_mappings: list[ColumnMapping] = Field(default_factory=list, alias="columnMappings")
    auto_column_mapping: bool = Field(False, alias="autoColumnMapping")


class S3Definition(BaseModel):
    """File format of the imported objects."""

    model_config = {"extra": "forbid", "frozen": True}

    type: str
    csv: CsvDefinition | None = None
    parquet: ParquetDefinition | None = None


class TableIdentifier(BaseModel):
    model_config = {"extra": "forbid", "frozen": True, "populate_by_name": True}

    table_name: str = Field(alias="tableName")
    schema_name: str | None = Field(None, alias="schemaName")


class S3ConnectorSpec(ResourceSpec):
    """S3 live-sync connector specification."""

    service_id: str = Field(alias="serviceId")
    name: str | None = None
    bucket: str | None = None
    pattern: str | None = None
    credentials: S3Credentials | None = None
    definition: S3Definition | None = None
    table_identifier: TableIdentifier | None = Field(None, alias="tableIdentifier")
    frequency: str | None = None
    on_conflict_do_nothing: bool | None = Field(None, alias="onConflictDoNothing")
    enabled: bool | None = None


class S3ConnectorState(ObservedState):
    """Observed S3 connector."""

    service_id: str | None = None
    name: str | None = None
    bucket: str | None = None
    pattern: str | None = None
    credentials: S3Credentials | None = None
    definition: S3Definition | None = None
    table_identifier: TableIdentifier | None = None
    frequency: str | None = None
    on_conflict_do_nothing: bool | None = None
    enabled: bool = False
    last_error: str | None = None


# =============================================================================
# Private Network Links
# =============================================================================


class PrivateLinkConnectionSpec(ResourceSpec):
    """Private link connection specification.

    The connection itself is created on the cloud provider side; the engine
    adopts it once it shows up and configures it.
    """

    cloud_provider: str = Field(alias="cloudProvider")
    provider_connection_id: str = Field(alias="providerConnectionId")
    region: str
    ip_address: str | None = Field(None, alias="ipAddress")
    name: str | None = None


class PrivateLinkConnectionState(ObservedState):
    """Observed private link connection."""

    cloud_provider: str | None = None
    provider_connection_id: str | None = None
    region: str | None = None
    ip_address: str | None = None
    name: str | None = None
    link_identifier: str | None = None


# =============================================================================
# Peering Connections
# =============================================================================


class PeeringConnectionSpec(ResourceSpec):
    """Peering between a managed VPC and a peer VPC or transit gateway."""

    vpc_id: int = Field(alias="vpcId")
    peer_account_id: str | None = Field(None, alias="peerAccountId")
    peer_region_code: str | None = Field(None, alias="peerRegionCode")
    peer_vpc_id: str | None = Field(None, alias="peerVpcId")
    peer_tgw_id: str | None = Field(None, alias="peerTgwId")
    peer_cidr_blocks: list[str] | None = Field(None, alias="peerCidrBlocks")


class PeeringConnectionState(ObservedState):
    """Observed peering connection."""

    vpc_id: int | None = None
    cloud_vpc_id: str | None = None
    provisioned_id: str | None = None
    error_message: str | None = None
    peering_type: str | None = None
    peer_account_id: str | None = None
    peer_region_code: str | None = None
    peer_vpc_id: str | None = None
    peer_tgw_id: str | None = None
    peer_cidr_blocks: list[str] = Field(default_factory=list)
