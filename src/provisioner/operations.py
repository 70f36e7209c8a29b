"""Atomic remote operations and the ordered plans built from them."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .classifiers import ErrorClassifier


class OpKind(str, Enum):
    """Kinds of atomic remote mutation."""

    CREATE = "Create"
    RENAME = "Rename"
    RESIZE = "Resize"
    SET_REPLICA_COUNT = "SetReplicaCount"
    ATTACH_NETWORK = "AttachNetwork"
    DETACH_NETWORK = "DetachNetwork"
    SET_ENABLED = "SetEnabled"
    SET_PAUSED = "SetPaused"
    SET_FREQUENCY = "SetFrequency"
    SET_CREDENTIALS = "SetCredentials"
    SET_DEFINITION = "SetDefinition"
    SET_BUCKET = "SetBucket"
    SET_PATTERN = "SetPattern"
    SET_TABLE_IDENTIFIER = "SetTableIdentifier"
    SET_SETTINGS = "SetSettings"
    SET_POOLER = "SetPooler"
    SET_ENVIRONMENT = "SetEnvironment"
    SET_PASSWORD = "SetPassword"
    SET_IP_ADDRESS = "SetIpAddress"
    ATTACH_EXPORTER = "AttachExporter"
    DETACH_EXPORTER = "DetachExporter"
    SET_PEER_CIDR_BLOCKS = "SetPeerCidrBlocks"


@dataclass(frozen=True)
class MutationOp:
    """One atomic remote mutation.

    Attributes:
        kind: What the operation does.
        target_field: Spec field (or first field of a grouped rule) it changes.
        value: Value sent to the remote system. Grouped rules carry a dict.
        in_flux: The resource needs a readiness poll after this op.
        retry_on: Classifier for transient failures of this op, if any.
    """

    kind: OpKind
    target_field: str
    value: Any = None
    in_flux: bool = field(default=False, compare=False)
    retry_on: ErrorClassifier | None = field(default=None, compare=False, repr=False)

    def __str__(self) -> str:
        return f"{self.kind.value}({self.target_field}={self.value!r})"


class OperationPlan:
    """Immutable ordered sequence of MutationOps."""

    __slots__ = ("_ops",)

    def __init__(self, ops: tuple[MutationOp, ...] | list[MutationOp] = ()) -> None:
        self._ops = tuple(ops)

    def __iter__(self) -> Iterator[MutationOp]:
        return iter(self._ops)

    def __len__(self) -> int:
        return len(self._ops)

    def __getitem__(self, index: int) -> MutationOp:
        return self._ops[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, OperationPlan):
            return self._ops == other._ops
        if isinstance(other, (list, tuple)):
            return list(self._ops) == list(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"OperationPlan({list(self._ops)!r})"

    @property
    def ops(self) -> tuple[MutationOp, ...]:
        return self._ops

    @property
    def is_empty(self) -> bool:
        return not self._ops

    def kinds(self) -> list[OpKind]:
        return [op.kind for op in self._ops]


@dataclass(frozen=True)
class ResourceRef:
    """Identifies one remote resource, optionally nested under a parent."""

    resource_type: str
    resource_id: str
    parent_id: str | None = None


@dataclass(frozen=True)
class RemoteCall:
    """Serialized form of one operation for the transport."""

    operation: str
    variables: dict[str, Any]
