"""Cloud API Mock for Integration Testing.

This module provides an in-memory implementation of the cloud GraphQL API
so the reconciliation engine can be tested end to end without network
access or real time passing.

Key Features:
- In-memory state for services, VPCs, peering connections, S3 connectors
  and private links
- Transitional statuses (QUEUED, CONFIGURING, PAUSING, ...) on async changes
- Error injection per operation for failure scenarios
- Simulated clock that records every wait

Usage:
    from cloud_mock import MockClock, MockTransport

    transport = MockTransport()
    coordinator = ReconciliationCoordinator(
        ServiceType(), transport, config=config, clock=MockClock()
    )
    result = await coordinator.create(spec)

    assert transport.mutations() == ["CreateService"]
"""

from .clock import MockClock
from .state import (
    MockCloudState,
    MockPeering,
    MockPrivateLink,
    MockRemoteError,
    MockService,
    MockVpc,
)
from .transport import MockTransport

__all__ = [
    "MockClock",
    "MockCloudState",
    "MockPeering",
    "MockPrivateLink",
    "MockRemoteError",
    "MockService",
    "MockTransport",
    "MockVpc",
]
