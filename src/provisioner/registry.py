"""Lookup of resource types by manifest kind."""

from __future__ import annotations

from .peering import PeeringConnectionType
from .private_link import PrivateLinkConnectionType
from .resource_type import ResourceType
from .s3_connector import S3ConnectorType
from .service import ServiceType
from .vpc import VpcType

RESOURCE_TYPES: dict[str, type[ResourceType]] = {
    ServiceType.name: ServiceType,
    VpcType.name: VpcType,
    S3ConnectorType.name: S3ConnectorType,
    PrivateLinkConnectionType.name: PrivateLinkConnectionType,
    PeeringConnectionType.name: PeeringConnectionType,
}


def get_resource_type(kind: str) -> ResourceType:
    """Instantiate the resource type registered under `kind`.

    Raises:
        KeyError: If no resource type has that name.
    """
    try:
        return RESOURCE_TYPES[kind]()
    except KeyError:
        valid = ", ".join(sorted(RESOURCE_TYPES))
        raise KeyError(f"Unknown resource kind '{kind}'. Valid kinds: {valid}") from None
