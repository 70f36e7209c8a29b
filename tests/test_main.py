"""Tests for the manifest apply loop and logging setup."""

from __future__ import annotations

import io
import json
import logging
import tomllib
from collections.abc import Iterator
from pathlib import Path

import pytest
from cloud_mock import MockClock, MockTransport

from provisioner.config import Config
from provisioner.main import (
    EXIT_FAILURE,
    EXIT_MANUAL_CLEANUP,
    EXIT_OK,
    JsonFormatter,
    apply_resources,
    main,
    plan_resources,
    run,
    setup_logging,
)
from provisioner.models import S3ConnectorSpec, ServiceSpec, VpcSpec
from provisioner.spec_loader import ManifestResource


@pytest.fixture(autouse=True)
def restore_logging() -> Iterator[None]:
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler.formatter, JsonFormatter):
            root.removeHandler(handler)
    root.setLevel(level)


class TestSetupLogging:
    """Tests for structured logging configuration."""

    def test_json_output_with_extra_fields(self) -> None:
        stream = io.StringIO()
        setup_logging(logging.INFO, stream=stream)

        logging.getLogger("provisioner.test").info(
            "Applying operation", extra={"resource_id": "svc00001", "op": "Rename"}
        )

        record = json.loads(stream.getvalue().splitlines()[-1])
        assert record["message"] == "Applying operation"
        assert record["level"] == "INFO"
        assert record["resource_id"] == "svc00001"
        assert record["op"] == "Rename"
        assert record["timestamp"].endswith("Z")

    def test_repeated_setup_replaces_handler(self) -> None:
        setup_logging(stream=io.StringIO())
        setup_logging(stream=io.StringIO())

        json_handlers = [
            h for h in logging.getLogger().handlers if isinstance(h.formatter, JsonFormatter)
        ]
        assert len(json_handlers) == 1


class TestApplyResources:
    """Tests for apply_resources ordering and exit codes."""

    @pytest.mark.asyncio
    async def test_updates_and_creates_in_order(
        self, transport: MockTransport, clock: MockClock, config: Config
    ) -> None:
        vpc = transport.state.add_vpc(name="net")
        resources = [
            ManifestResource("vpc", VpcSpec(name="renamed"), resource_id=vpc.id),
            ManifestResource(
                "service",
                ServiceSpec(milli_cpu=1000, memory_gb=4, region_code="us-east-1", vpc_id=1001),
            ),
        ]

        exit_code = await apply_resources(resources, transport, config, clock=clock)

        assert exit_code == EXIT_OK
        assert transport.mutations() == ["RenameVPC", "CreateService"]

    @pytest.mark.asyncio
    async def test_stops_at_first_failure(
        self, transport: MockTransport, clock: MockClock, config: Config
    ) -> None:
        vpc = transport.state.add_vpc(name="net")
        transport.inject_error("RenameVPC", "name already taken")
        resources = [
            ManifestResource("vpc", VpcSpec(name="renamed"), resource_id=vpc.id),
            ManifestResource(
                "service", ServiceSpec(milli_cpu=1000, memory_gb=4, region_code="us-east-1")
            ),
        ]

        exit_code = await apply_resources(resources, transport, config, clock=clock)

        assert exit_code == EXIT_FAILURE
        assert "CreateService" not in transport.operations()

    @pytest.mark.asyncio
    async def test_read_failure(
        self, transport: MockTransport, clock: MockClock, config: Config
    ) -> None:
        resources = [ManifestResource("vpc", VpcSpec(name="x"), resource_id="4040")]

        exit_code = await apply_resources(resources, transport, config, clock=clock)

        assert exit_code == EXIT_FAILURE
        assert transport.mutations() == []

    @pytest.mark.asyncio
    async def test_manual_cleanup(
        self, transport: MockTransport, clock: MockClock, config: Config
    ) -> None:
        service = transport.state.add_service()
        transport.inject_error("UpdateS3Connector", "invalid frequency")
        transport.inject_error("DeleteS3Connector", "internal error")
        resources = [
            ManifestResource(
                "s3_connector",
                S3ConnectorSpec(service_id=service.id, frequency="bogus"),
                parent_id=service.id,
            )
        ]

        exit_code = await apply_resources(resources, transport, config, clock=clock)

        assert exit_code == EXIT_MANUAL_CLEANUP

    @pytest.mark.asyncio
    async def test_plan_resources_makes_no_mutations(
        self, transport: MockTransport, config: Config
    ) -> None:
        service = transport.state.add_service(name="db")
        resources = [
            ManifestResource("service", ServiceSpec(name="renamed"), resource_id=service.id)
        ]

        ((resource, plan),) = await plan_resources(resources, transport, config)

        assert resource is resources[0]
        assert len(plan) == 1
        assert transport.mutations() == []


class TestMain:
    """Tests for the container entry point."""

    @pytest.mark.asyncio
    async def test_configuration_error(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("CLOUD_PROJECT_ID", raising=False)

        assert await main(tmp_path / "manifest.yaml") == EXIT_FAILURE

    @pytest.mark.asyncio
    async def test_missing_manifest(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CLOUD_PROJECT_ID", "proj123456")

        assert await main(tmp_path / "missing.yaml") == EXIT_FAILURE

    @pytest.mark.asyncio
    async def test_missing_credentials(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CLOUD_PROJECT_ID", "proj123456")
        monkeypatch.delenv("CLOUD_ACCESS_KEY", raising=False)
        monkeypatch.delenv("CLOUD_SECRET_KEY", raising=False)
        manifest = tmp_path / "manifest.yaml"
        manifest.write_text("resources: []\n")

        assert await main(manifest) == EXIT_FAILURE

    def test_run_exits_with_main_result(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """run() reads the manifest path from the environment and exits."""
        monkeypatch.delenv("CLOUD_PROJECT_ID", raising=False)
        monkeypatch.setenv("PROVISIONER_MANIFEST", str(tmp_path / "manifest.yaml"))

        with pytest.raises(SystemExit) as exc_info:
            run()

        assert exc_info.value.code == EXIT_FAILURE

    def test_run_is_an_installed_script(self) -> None:
        pyproject = Path(__file__).parent.parent / "pyproject.toml"

        with pyproject.open("rb") as f:
            scripts = tomllib.load(f)["project"]["scripts"]

        assert scripts["provisioner-apply"] == "provisioner.main:run"
