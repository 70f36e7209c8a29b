"""Tests for credential handling and request authentication."""

from __future__ import annotations

import logging

import pytest
from azure.core.pipeline import PipelineContext, PipelineRequest
from azure.core.rest import HttpRequest

from provisioner.security import (
    BearerTokenPolicy,
    ClientCredentials,
    CredentialError,
    StaticTokenCredential,
    log_security_audit_event,
    mask,
)


def make_request() -> PipelineRequest:
    return PipelineRequest(
        HttpRequest("POST", "https://api.example.com/query"), PipelineContext(None)
    )


class TestMask:
    """Tests for secret masking."""

    def test_keeps_prefix(self) -> None:
        assert mask("abcdef123456") == "abcd..."

    def test_short_values_fully_masked(self) -> None:
        assert mask("abc") == "***"


class TestClientCredentials:
    """Tests for ClientCredentials."""

    def test_repr_hides_secret(self) -> None:
        """Neither the secret nor the full access key appear in repr."""
        credentials = ClientCredentials("access-key-123", "super-secret-value")

        text = repr(credentials)

        assert "super-secret-value" not in text
        assert "access-key-123" not in text
        assert "acce..." in text

    def test_empty_values_rejected(self) -> None:
        with pytest.raises(CredentialError):
            ClientCredentials("access-key-123", "")

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CLOUD_ACCESS_KEY", "access-key-123")
        monkeypatch.setenv("CLOUD_SECRET_KEY", "super-secret-value")

        credentials = ClientCredentials.from_env()

        assert credentials.access_key == "access-key-123"
        assert credentials.secret_key == "super-secret-value"

    def test_from_env_lists_missing_variables(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CLOUD_ACCESS_KEY", raising=False)
        monkeypatch.delenv("CLOUD_SECRET_KEY", raising=False)

        with pytest.raises(CredentialError) as exc_info:
            ClientCredentials.from_env()

        assert "CLOUD_ACCESS_KEY" in str(exc_info.value)
        assert "CLOUD_SECRET_KEY" in str(exc_info.value)


class TestBearerTokenPolicy:
    """Tests for the Authorization header policy."""

    def test_adds_bearer_header(self) -> None:
        policy = BearerTokenPolicy(StaticTokenCredential("jwt-abc"))
        request = make_request()

        policy.on_request(request)

        assert request.http_request.headers["Authorization"] == "Bearer jwt-abc"

    def test_no_header_without_credential(self) -> None:
        policy = BearerTokenPolicy()
        request = make_request()

        policy.on_request(request)

        assert "Authorization" not in request.http_request.headers

    def test_credential_can_be_installed_later(self) -> None:
        """The transport installs the JWT after authenticating."""
        policy = BearerTokenPolicy()
        policy.credential = StaticTokenCredential("jwt-later")
        request = make_request()

        policy.on_request(request)

        assert request.http_request.headers["Authorization"] == "Bearer jwt-later"

    def test_empty_token_rejected(self) -> None:
        with pytest.raises(CredentialError):
            StaticTokenCredential("")

    def test_token_not_in_repr(self) -> None:
        assert "jwt-abc" not in repr(StaticTokenCredential("jwt-abc"))


class TestAuditLogging:
    """Tests for security audit events."""

    def test_audit_event_fields(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="provisioner.security"):
            log_security_audit_event(
                "auth",
                action="client_credentials",
                result="success",
                principal="acce...",
            )

        record = caplog.records[-1]
        assert record.security_audit is True
        assert record.event_type == "auth"
        assert record.result == "success"
        assert record.principal == "acce..."
