"""Entry point for applying a resource manifest.

Resources are reconciled one at a time in manifest order, because later
entries (connectors, private link attachments) usually depend on earlier ones.
The run stops at the first failure. SIGTERM and SIGINT cancel the in-flight
reconciliation without compensation so nothing is deleted on shutdown.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import signal
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import TextIO

from .cancellation import CancelToken, Clock
from .config import Config, ConfigurationError
from .coordinator import ReconciliationCoordinator
from .errors import ReconcileError
from .operations import OperationPlan
from .registry import get_resource_type
from .security import ClientCredentials, CredentialError
from .spec_loader import ManifestResource, SpecLoadError, load_manifest
from .transport import GraphQLTransport, Transport

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_MANUAL_CLEANUP = 2

DEFAULT_MANIFEST_PATH = "manifest.yaml"

_RESERVED_RECORD_ATTRS = frozenset(
    (
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    )
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        # Add extra fields from the record
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: int = logging.INFO, stream: TextIO | None = None) -> None:
    """Configure structured logging with JSON output.

    Calling it again replaces the previously installed handler.
    """
    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if isinstance(existing.formatter, JsonFormatter):
            root_logger.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Reduce noise from the HTTP stack
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


async def connect(config: Config) -> GraphQLTransport:
    """Build an authenticated transport from environment credentials.

    Raises:
        CredentialError: Credentials are missing.
        ReconcileError: The credential exchange failed.
    """
    credentials = ClientCredentials.from_env()
    transport = GraphQLTransport(config)
    try:
        await transport.authenticate(credentials)
    except ReconcileError:
        transport.close()
        raise
    return transport


async def plan_resources(
    resources: list[ManifestResource],
    transport: Transport,
    config: Config,
) -> list[tuple[ManifestResource, OperationPlan]]:
    """Compute the plan for every resource without mutating anything.

    Raises:
        ValidationError: A resource fails immutability or exclusion checks.
        ReconcileError: Reading an existing resource failed.
    """
    plans = []
    for resource in resources:
        coordinator = ReconciliationCoordinator(
            get_resource_type(resource.kind), transport, config=config
        )
        observed = None
        if resource.exists:
            observed = await coordinator.read(resource.resource_id, parent_id=resource.parent_id)
        plans.append((resource, coordinator.plan(resource.spec, observed)))
    return plans


async def apply_resources(
    resources: list[ManifestResource],
    transport: Transport,
    config: Config,
    *,
    cancel: CancelToken | None = None,
    clock: Clock | None = None,
) -> int:
    """Create or update every resource in order.

    Returns:
        EXIT_OK, EXIT_FAILURE, or EXIT_MANUAL_CLEANUP when a failed create
        could not be cleaned up.
    """
    logger = logging.getLogger(__name__)

    for resource in resources:
        coordinator = ReconciliationCoordinator(
            get_resource_type(resource.kind), transport, config=config, clock=clock
        )
        if resource.exists:
            try:
                observed = await coordinator.read(
                    resource.resource_id, parent_id=resource.parent_id
                )
            except ReconcileError as e:
                logger.error(
                    "Failed to read resource",
                    extra={
                        "resource_type": resource.kind,
                        "resource_id": resource.resource_id,
                        "error": str(e),
                    },
                )
                return EXIT_FAILURE
            result = await coordinator.update(resource.spec, observed, cancel=cancel)
        else:
            result = await coordinator.create(
                resource.spec, parent_id=resource.parent_id, cancel=cancel
            )

        if result.needs_manual_cleanup:
            return EXIT_MANUAL_CLEANUP
        if not result.success:
            return EXIT_FAILURE

    return EXIT_OK


async def main(manifest_path: Path) -> int:
    """Apply a manifest using environment configuration.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    setup_logging()
    logger = logging.getLogger(__name__)

    try:
        config = Config.from_env()
    except ConfigurationError as e:
        logger.error("Configuration error", extra={"error": str(e)})
        return EXIT_FAILURE

    try:
        resources = load_manifest(manifest_path)
    except SpecLoadError as e:
        logger.error("Failed to load manifest", extra={"error": str(e)})
        return EXIT_FAILURE

    try:
        transport = await connect(config)
    except (CredentialError, ReconcileError) as e:
        logger.error("Authentication failed", extra={"error": str(e)})
        return EXIT_FAILURE

    cancel = CancelToken()
    loop = asyncio.get_running_loop()

    def signal_handler(sig: signal.Signals) -> None:
        logger.info("Received signal", extra={"signal": sig.name})
        cancel.cancel(f"received {sig.name}")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))

    logger.info(
        "Applying manifest",
        extra={"manifest": str(manifest_path), "resources": len(resources)},
    )
    try:
        exit_code = await apply_resources(resources, transport, config, cancel=cancel)
    finally:
        transport.close()
    logger.info("Manifest applied", extra={"exit_code": exit_code})
    return exit_code


def run() -> None:
    """Entry point for container deployments (manifest path from PROVISIONER_MANIFEST)."""
    manifest_path = Path(os.environ.get("PROVISIONER_MANIFEST", DEFAULT_MANIFEST_PATH))
    sys.exit(asyncio.run(main(manifest_path)))


if __name__ == "__main__":
    run()
