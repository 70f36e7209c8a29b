"""GraphQL documents keyed by operation name."""

from __future__ import annotations

_SERVICE_FIELDS = """
    id
    projectId
    name
    status
    regionCode
    paused
    created
    replicaStatus
    privateLinkEndpointConnectionId
    resources {
      id
      spec {
        ... on ResourceNode {
          milliCPU
          memoryGB
          storageGB
          replicaCount
          syncReplicaCount
        }
      }
    }
    spec {
      ... on TimescaleDBServiceSpec {
        hostname
        username
        port
        connectionPoolerEnabled
        metricExporterUuid
        genericExporterID
      }
    }
    vpcEndpoint {
      host
      port
      vpcId
    }
    forkedFromId {
      projectId
      serviceId
      isStandby
    }
    metadata {
      environment
    }
"""

_VPC_FIELDS = """
    id
    provisionedId
    projectId
    cidr
    name
    regionCode
    status
    errorMessage
    created
    updated
    peeringConnections {
      id
      vpcId
      provisionedId
      status
      errorMessage
      peerVPC {
        id
        cidrBlocks
        accountId
        regionCode
      }
    }
"""

_S3_CONNECTOR_FIELDS = """
    id
    project_id
    service_id
    bucket
    pattern
    credentials
    definition
    table_identifier
    frequency
    enabled
    name
    last_error
    settings
"""

_PRIVATE_LINK_FIELDS = """
    connectionId
    providerConnectionId
    cloudProvider
    linkIdentifier
    state
    ipAddress
    name
    region
"""

QUERIES: dict[str, str] = {
    # Authentication
    "GetJWTForClientCredentials": """
query GetJWTForClientCredentials($accessKey: String!, $secretKey: String!) {
  getJWTForClientCredentials(accessKey: $accessKey, secretKey: $secretKey)
}
""",
    # Services
    "CreateService": f"""
mutation CreateService(
  $projectId: ID!, $name: String!, $type: Type!, $regionCode: String!,
  $resourceConfig: ResourceConfig, $vpcId: ID, $forkConfig: ForkConfig,
  $enableConnectionPooler: Boolean, $environmentTag: String
) {{
  createService(data: {{
    projectId: $projectId, name: $name, type: $type, regionCode: $regionCode,
    resourceConfig: $resourceConfig, vpcId: $vpcId, forkConfig: $forkConfig,
    enableConnectionPooler: $enableConnectionPooler, environmentTag: $environmentTag
  }}) {{
    initialPassword
    service {{ {_SERVICE_FIELDS} }}
  }}
}}
""",
    "GetService": f"""
query GetService($projectId: ID!, $serviceId: ID!) {{
  getService(data: {{ projectId: $projectId, serviceId: $serviceId }}) {{ {_SERVICE_FIELDS} }}
}}
""",
    "RenameService": """
mutation RenameService($projectId: ID!, $serviceId: ID!, $newName: String!) {
  renameService(data: { projectId: $projectId, serviceId: $serviceId, newName: $newName }) { id }
}
""",
    "ResizeInstance": """
mutation ResizeInstance($projectId: ID!, $serviceId: ID!, $config: ResourceConfig!) {
  resizeInstance(data: { projectId: $projectId, serviceId: $serviceId, config: $config })
}
""",
    "SetReplicaCount": """
mutation SetReplicaCount(
  $projectId: ID!, $serviceId: ID!, $replicaCount: Int!, $synchronousReplicaCount: Int
) {
  setReplicaCount(data: {
    projectId: $projectId, serviceId: $serviceId,
    replicaCount: $replicaCount, synchronousReplicaCount: $synchronousReplicaCount
  })
}
""",
    "ToggleService": f"""
mutation ToggleService($projectId: ID!, $serviceId: ID!, $status: Status!) {{
  toggleService(data: {{ projectId: $projectId, serviceId: $serviceId, status: $status }}) {{
    {_SERVICE_FIELDS}
  }}
}}
""",
    "ToggleConnectionPooler": """
mutation ToggleConnectionPooler($projectId: ID!, $serviceId: ID!, $enable: Boolean!) {
  toggleConnectionPooler(data: { projectId: $projectId, serviceId: $serviceId, enable: $enable })
}
""",
    "SetEnvironmentTag": """
mutation SetEnvironmentTag($projectId: ID!, $serviceId: ID!, $environment: String!) {
  setEnvironmentTag(data: {
    projectId: $projectId, serviceId: $serviceId, environment: $environment
  })
}
""",
    "ResetServicePassword": """
mutation ResetServicePassword(
  $projectId: ID!, $serviceId: ID!, $password: String!, $passwordType: PasswordType
) {
  resetServicePassword(data: {
    projectId: $projectId, serviceId: $serviceId,
    password: $password, passwordType: $passwordType
  })
}
""",
    "DeleteService": """
mutation DeleteService($projectId: ID!, $serviceId: ID!) {
  deleteService(data: { projectId: $projectId, serviceId: $serviceId }) { id }
}
""",
    "AttachServiceToVPC": """
mutation AttachServiceToVPC($projectId: ID!, $serviceId: ID!, $vpcId: ID!) {
  attachServiceToVPC(data: { projectId: $projectId, serviceId: $serviceId, vpcId: $vpcId })
}
""",
    "DetachServiceFromVPC": """
mutation DetachServiceFromVPC($projectId: ID!, $serviceId: ID!, $vpcId: ID!) {
  detachServiceFromVPC(data: { projectId: $projectId, serviceId: $serviceId, vpcId: $vpcId })
}
""",
    "AttachServiceToPrivateLink": """
mutation AttachServiceToPrivateLink(
  $projectId: ID!, $serviceId: ID!, $privateEndpointConnectionId: String!
) {
  attachServiceToPrivateLink(data: {
    projectId: $projectId, serviceId: $serviceId,
    privateEndpointConnectionId: $privateEndpointConnectionId
  })
}
""",
    "DetachServiceFromPrivateLink": """
mutation DetachServiceFromPrivateLink(
  $projectId: ID!, $serviceId: ID!, $privateEndpointConnectionId: String!
) {
  detachServiceFromPrivateLink(data: {
    projectId: $projectId, serviceId: $serviceId,
    privateEndpointConnectionId: $privateEndpointConnectionId
  })
}
""",
    "AttachMetricExporter": """
mutation AttachMetricExporter($projectId: ID!, $serviceId: ID!, $exporterUuid: String!) {
  attachServiceToMetricExporter(data: {
    projectId: $projectId, serviceId: $serviceId, exporterUuid: $exporterUuid
  })
}
""",
    "DetachMetricExporter": """
mutation DetachMetricExporter($projectId: ID!, $serviceId: ID!, $exporterUuid: String!) {
  detachServiceFromMetricExporter(data: {
    projectId: $projectId, serviceId: $serviceId, exporterUuid: $exporterUuid
  })
}
""",
    "AttachGenericExporter": """
mutation AttachGenericExporter($projectId: ID!, $serviceId: ID!, $exporterId: ID!) {
  attachServiceToGenericExporter(data: {
    projectId: $projectId, serviceId: $serviceId, exporterId: $exporterId
  })
}
""",
    "DetachGenericExporter": """
mutation DetachGenericExporter($projectId: ID!, $serviceId: ID!, $exporterId: ID!) {
  detachServiceFromGenericExporter(data: {
    projectId: $projectId, serviceId: $serviceId, exporterId: $exporterId
  })
}
""",
    # VPCs
    "CreateVPC": f"""
mutation CreateVPC($projectId: ID!, $name: String!, $cidr: String!, $regionCode: String!) {{
  createVPC(data: {{
    projectId: $projectId, name: $name, cidr: $cidr, regionCode: $regionCode
  }}) {{ {_VPC_FIELDS} }}
}}
""",
    "GetVPCByID": f"""
query GetVPCByID($projectId: ID!, $vpcId: ID!) {{
  getVPC(data: {{ projectId: $projectId, vpcId: $vpcId }}) {{ {_VPC_FIELDS} }}
}}
""",
    "RenameVPC": """
mutation RenameVPC($projectId: ID!, $vpcId: ID!, $newName: String!) {
  renameVPC(data: { projectId: $projectId, vpcId: $vpcId, newName: $newName }) { id }
}
""",
    "DeleteVPC": """
mutation DeleteVPC($projectId: ID!, $vpcId: ID!) {
  deleteVPC(data: { projectId: $projectId, vpcId: $vpcId })
}
""",
    # Peering connections
    "OpenPeerRequest": """
mutation OpenPeerRequest(
  $projectId: ID!, $vpcId: ID!, $externalVpcId: String!, $accountId: String!,
  $regionCode: String!, $cidrBlocks: [String!]
) {
  openPeerRequest(data: {
    projectId: $projectId, vpcId: $vpcId, externalVpcId: $externalVpcId,
    accountId: $accountId, regionCode: $regionCode, cidrBlocks: $cidrBlocks
  }) { id }
}
""",
    "UpdatePeeringConnectionCIDRs": """
mutation UpdatePeeringConnectionCIDRs(
  $projectId: ID!, $vpcId: ID!, $id: ID!, $cidrBlocks: [String!]!
) {
  updatePeeringConnectionCIDRs(data: {
    projectId: $projectId, vpcId: $vpcId, id: $id, cidrBlocks: $cidrBlocks
  })
}
""",
    "DeletePeeringConnection": """
mutation DeletePeeringConnection($projectId: ID!, $vpcId: ID!, $id: ID!) {
  deletePeeringConnection(data: { projectId: $projectId, vpcId: $vpcId, id: $id })
}
""",
    # S3 connectors
    "CreateS3Connector": """
mutation CreateS3Connector(
  $id: ID!, $projectId: ID!, $serviceId: ID!, $bucket: String, $pattern: String,
  $name: String, $credentials: S3CredentialsInput, $definition: S3DefinitionInput,
  $tableIdentifier: TableIdentifierInput
) {
  createS3LiveSync(data: {
    id: $id, projectId: $projectId, serviceId: $serviceId, bucket: $bucket,
    pattern: $pattern, name: $name, credentials: $credentials,
    definition: $definition, tableIdentifier: $tableIdentifier
  })
}
""",
    "UpdateS3Connector": f"""
mutation UpdateS3Connector(
  $id: ID!, $projectId: ID!, $serviceId: ID!, $requests: [S3LiveSyncUpdateRequest!]!
) {{
  updateS3LiveSync(data: {{
    id: $id, projectId: $projectId, serviceId: $serviceId, requests: $requests
  }}) {{ {_S3_CONNECTOR_FIELDS} }}
}}
""",
    "GetS3Connector": f"""
query GetS3Connector($id: ID!, $projectId: ID!, $serviceId: ID!) {{
  getS3LiveSync(data: {{ id: $id, projectId: $projectId, serviceId: $serviceId }}) {{
    {_S3_CONNECTOR_FIELDS}
  }}
}}
""",
    "DeleteS3Connector": """
mutation DeleteS3Connector($id: ID!, $projectId: ID!, $serviceId: ID!) {
  deleteS3LiveSync(data: { id: $id, projectId: $projectId, serviceId: $serviceId })
}
""",
    # Private link connections
    "SyncPrivateLinkConnections": """
mutation SyncPrivateLinkConnections($projectId: ID!) {
  syncPrivateLinkConnections(projectId: $projectId)
}
""",
    "ListPrivateLinkConnections": f"""
query ListPrivateLinkConnections($projectId: ID!, $region: String) {{
  listPrivateLinkConnections(projectId: $projectId, region: $region) {{ {_PRIVATE_LINK_FIELDS} }}
}}
""",
    "UpdatePrivateLinkConnection": f"""
mutation UpdatePrivateLinkConnection(
  $projectId: ID!, $connectionId: String!, $ipAddress: String, $name: String
) {{
  updatePrivateLinkConnection(data: {{
    projectId: $projectId, connectionId: $connectionId, ipAddress: $ipAddress, name: $name
  }}) {{ {_PRIVATE_LINK_FIELDS} }}
}}
""",
    "DeletePrivateLinkConnection": """
mutation DeletePrivateLinkConnection($projectId: ID!, $connectionId: String!) {
  deletePrivateLinkConnection(projectId: $projectId, connectionId: $connectionId)
}
""",
}


def get_query(operation: str) -> str:
    """Return the document for `operation`.

    Raises:
        KeyError: If the operation is unknown.
    """
    return QUERIES[operation]
