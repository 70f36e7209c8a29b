"""Manifest loading with validation.

SECURITY: Manifest files are size-limited before they are read and parsed
with yaml.safe_load. Input validation is performed at the boundary.

Manifest format:

    resources:
      - kind: service
        spec:
          name: analytics
          milliCpu: 1000
          memoryGb: 4
          regionCode: us-east-1
      - kind: s3_connector
        id: 6f1c...        # present when the resource already exists
        parentId: svc-123  # optional, derived from the spec when omitted
        spec:
          serviceId: svc-123
          bucket: raw-events
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .config import MAX_MANIFEST_FILE_SIZE_BYTES, MAX_MANIFEST_RESOURCES
from .models import ResourceSpec
from .registry import get_resource_type

logger = logging.getLogger(__name__)


class SpecLoadError(Exception):
    """Raised when manifest loading or validation fails."""

    pass


class ManifestEntry(BaseModel):
    """One resource entry before its spec is bound to a resource type."""

    model_config = {"extra": "forbid", "populate_by_name": True}

    kind: str
    id: str | None = None
    parent_id: str | None = Field(None, alias="parentId")
    spec: dict[str, Any] = Field(default_factory=dict)


class Manifest(BaseModel):
    model_config = {"extra": "forbid"}

    resources: list[ManifestEntry] = Field(default_factory=list, max_length=MAX_MANIFEST_RESOURCES)


@dataclass(frozen=True)
class ManifestResource:
    """A validated manifest entry with its typed spec."""

    kind: str
    spec: ResourceSpec
    resource_id: str | None = None
    parent_id: str | None = None

    @property
    def exists(self) -> bool:
        return self.resource_id is not None


def _format_errors(error: PydanticValidationError, prefix: str = "") -> str:
    lines = []
    for item in error.errors():
        loc = ".".join(str(x) for x in item["loc"])
        lines.append(f"  - {prefix}{loc}: {item['msg']}")
    return "\n".join(lines)


def load_manifest(path: Path) -> list[ManifestResource]:
    """Load and validate a resource manifest from YAML.

    Args:
        path: Manifest file.

    Returns:
        Validated resources in file order.

    Raises:
        SpecLoadError: If the file cannot be loaded or fails validation.
    """
    if not path.exists():
        raise SpecLoadError(f"Manifest file not found: {path}")

    # SECURITY: Check file size before reading to prevent DoS
    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat manifest file {path}: {e}") from e

    if file_size > MAX_MANIFEST_FILE_SIZE_BYTES:
        raise SpecLoadError(
            f"Manifest file exceeds maximum size of {MAX_MANIFEST_FILE_SIZE_BYTES} bytes: {path}"
        )

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read manifest file {path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"Manifest file must contain a YAML mapping: {path}")

    try:
        manifest = Manifest.model_validate(raw_data)
    except PydanticValidationError as e:
        raise SpecLoadError(f"Validation failed for {path}:\n{_format_errors(e)}") from e

    resources = []
    for index, entry in enumerate(manifest.resources):
        try:
            resource_type = get_resource_type(entry.kind)
        except KeyError as e:
            raise SpecLoadError(f"resources.{index}.kind: {e.args[0]}") from e

        try:
            spec = resource_type.spec_model.model_validate(entry.spec)
        except PydanticValidationError as e:
            errors = _format_errors(e, prefix=f"resources.{index}.spec.")
            raise SpecLoadError(f"Validation failed for {path}:\n{errors}") from e

        resources.append(
            ManifestResource(
                kind=entry.kind,
                spec=spec,
                resource_id=entry.id,
                parent_id=entry.parent_id or resource_type.parent_id_for(spec),
            )
        )

    logger.info("Loaded manifest with %d resources from %s", len(resources), path)
    return resources
