"""Tests for the provisioner CLI."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner
from cloud_mock import MockTransport

from provisioner import cli as cli_module
from provisioner.cli import cli
from provisioner.config import Config
from provisioner.main import JsonFormatter
from provisioner.security import CredentialError


@pytest.fixture(autouse=True)
def restore_logging() -> Iterator[None]:
    """Drop the JSON handler the CLI installs on the root logger."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler.formatter, JsonFormatter):
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture
def mock_transport(monkeypatch: pytest.MonkeyPatch) -> MockTransport:
    transport = MockTransport()

    async def fake_connect(config: Config) -> MockTransport:
        return transport

    monkeypatch.setattr(cli_module, "connect", fake_connect)
    monkeypatch.setenv("CLOUD_PROJECT_ID", "proj123456")
    return transport


def write_manifest(tmp_path: Path, resources: list[dict]) -> Path:
    path = tmp_path / "manifest.yaml"
    path.write_text(yaml.safe_dump({"resources": resources}))
    return path


class TestPlanCommand:
    """Tests for `provisioner plan`."""

    def test_plan_lists_operations(self, tmp_path: Path, mock_transport: MockTransport) -> None:
        vpc = mock_transport.state.add_vpc(name="net")
        manifest = write_manifest(
            tmp_path,
            [
                {"kind": "vpc", "id": vpc.id, "spec": {"name": "renamed"}},
                {"kind": "vpc", "id": vpc.id, "spec": {"name": "renamed"}},
            ],
        )

        result = CliRunner().invoke(cli, ["plan", str(manifest)])

        assert result.exit_code == 0, result.output
        assert f"vpc {vpc.id}:" in result.output
        assert "1. Rename(name='renamed')" in result.output
        assert "Plan: 2 operation(s) across 2 resource(s)" in result.output
        assert mock_transport.mutations() == []
        assert mock_transport.closed

    def test_plan_new_resource(self, tmp_path: Path, mock_transport: MockTransport) -> None:
        manifest = write_manifest(
            tmp_path,
            [{"kind": "vpc", "spec": {"cidr": "10.0.0.0/16", "regionCode": "us-east-1"}}],
        )

        result = CliRunner().invoke(cli, ["plan", str(manifest)])

        assert result.exit_code == 0, result.output
        assert "vpc (new):" in result.output
        assert "1. Create(" in result.output
        assert mock_transport.calls == []

    def test_plan_without_changes(self, tmp_path: Path, mock_transport: MockTransport) -> None:
        vpc = mock_transport.state.add_vpc(name="net")
        manifest = write_manifest(
            tmp_path, [{"kind": "vpc", "id": vpc.id, "spec": {"name": "net"}}]
        )

        result = CliRunner().invoke(cli, ["plan", str(manifest)])

        assert result.exit_code == 0, result.output
        assert "no changes" in result.output
        assert "Plan: 0 operation(s) across 1 resource(s)" in result.output

    def test_plan_rejects_immutable_change(
        self, tmp_path: Path, mock_transport: MockTransport
    ) -> None:
        vpc = mock_transport.state.add_vpc(cidr="10.0.0.0/16")
        manifest = write_manifest(
            tmp_path, [{"kind": "vpc", "id": vpc.id, "spec": {"cidr": "10.9.0.0/16"}}]
        )

        result = CliRunner().invoke(cli, ["plan", str(manifest)])

        assert result.exit_code == 1
        assert "cannot be changed after creation" in result.output


class TestApplyCommand:
    """Tests for `provisioner apply`."""

    def test_apply_updates_and_creates(
        self, tmp_path: Path, mock_transport: MockTransport
    ) -> None:
        vpc = mock_transport.state.add_vpc(name="net")
        service = mock_transport.state.add_service()
        manifest = write_manifest(
            tmp_path,
            [
                {"kind": "vpc", "id": vpc.id, "spec": {"name": "renamed"}},
                {
                    "kind": "s3_connector",
                    "spec": {"serviceId": service.id, "bucket": "raw", "enabled": True},
                },
            ],
        )

        result = CliRunner().invoke(cli, ["apply", str(manifest)])

        assert result.exit_code == 0, result.output
        assert "Applied 2 resource(s)" in result.output
        assert mock_transport.state.vpcs[vpc.id].name == "renamed"
        (connector,) = mock_transport.state.connectors.values()
        assert connector["enabled"] is True

    def test_apply_failure_exit_code(self, tmp_path: Path, mock_transport: MockTransport) -> None:
        vpc = mock_transport.state.add_vpc(name="net")
        mock_transport.inject_error("RenameVPC", "name already taken")
        manifest = write_manifest(tmp_path, [{"kind": "vpc", "id": vpc.id, "spec": {"name": "x"}}])

        result = CliRunner().invoke(cli, ["apply", str(manifest)])

        assert result.exit_code == 1

    def test_apply_manual_cleanup_exit_code(
        self, tmp_path: Path, mock_transport: MockTransport
    ) -> None:
        """A failed create whose cleanup also failed exits with 2."""
        service = mock_transport.state.add_service()
        mock_transport.inject_error("UpdateS3Connector", "invalid frequency")
        mock_transport.inject_error("DeleteS3Connector", "internal error")
        manifest = write_manifest(
            tmp_path,
            [{"kind": "s3_connector", "spec": {"serviceId": service.id, "frequency": "bogus"}}],
        )

        result = CliRunner().invoke(cli, ["apply", str(manifest)])

        assert result.exit_code == 2
        assert len(mock_transport.state.connectors) == 1

    def test_invalid_manifest(self, tmp_path: Path, mock_transport: MockTransport) -> None:
        manifest = write_manifest(tmp_path, [{"kind": "cluster", "spec": {}}])

        result = CliRunner().invoke(cli, ["apply", str(manifest)])

        assert result.exit_code == 1
        assert "Unknown resource kind 'cluster'" in result.output


class TestDeleteCommand:
    """Tests for `provisioner delete`."""

    def test_delete_service(self, mock_transport: MockTransport) -> None:
        service = mock_transport.state.add_service()

        result = CliRunner().invoke(cli, ["delete", "service", service.id])

        assert result.exit_code == 0, result.output
        assert f"Deleted service {service.id}" in result.output
        assert mock_transport.state.services == {}

    def test_delete_already_deleted(self, mock_transport: MockTransport) -> None:
        result = CliRunner().invoke(cli, ["delete", "service", "svc99999"])

        assert result.exit_code == 0, result.output

    def test_delete_connector_with_parent(self, mock_transport: MockTransport) -> None:
        service = mock_transport.state.add_service()
        mock_transport.state.add_connector("conn-1", service.id)

        result = CliRunner().invoke(
            cli, ["delete", "s3_connector", "conn-1", "--parent-id", service.id]
        )

        assert result.exit_code == 0, result.output
        assert mock_transport.calls_to("DeleteS3Connector")[0]["serviceId"] == service.id

    def test_unknown_kind(self, mock_transport: MockTransport) -> None:
        result = CliRunner().invoke(cli, ["delete", "cluster", "x"])

        assert result.exit_code == 2


class TestEnvironmentErrors:
    """Configuration and credential errors become CLI errors."""

    def test_missing_project(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("CLOUD_PROJECT_ID", raising=False)
        manifest = write_manifest(tmp_path, [])

        result = CliRunner().invoke(cli, ["plan", str(manifest)])

        assert result.exit_code == 1
        assert "CLOUD_PROJECT_ID is required" in result.output

    def test_missing_credentials(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        async def failing_connect(config: Config) -> MockTransport:
            raise CredentialError("Missing credential environment variables: CLOUD_ACCESS_KEY")

        monkeypatch.setattr(cli_module, "connect", failing_connect)
        monkeypatch.setenv("CLOUD_PROJECT_ID", "proj123456")
        manifest = write_manifest(tmp_path, [])

        result = CliRunner().invoke(cli, ["apply", str(manifest)])

        assert result.exit_code == 1
        assert "CLOUD_ACCESS_KEY" in result.output
