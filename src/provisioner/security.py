"""Credential handling for the cloud API.

The API authenticates with a short-lived JWT obtained by exchanging a
client-credential pair (access key + secret key). Secrets are only ever
held in memory, never logged, and masked in every repr.

SECURITY INVARIANTS:
1. Secret keys and tokens never appear in log records or exception messages
2. Credentials come from the environment or the caller, never from files
3. Every outgoing request carries the bearer token through BearerTokenPolicy
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from azure.core.credentials import AccessToken
from azure.core.pipeline import PipelineRequest
from azure.core.pipeline.policies import SansIOHTTPPolicy

logger = logging.getLogger(__name__)

ACCESS_KEY_ENV_VAR = "CLOUD_ACCESS_KEY"
SECRET_KEY_ENV_VAR = "CLOUD_SECRET_KEY"


class CredentialError(Exception):
    """Raised when client credentials are missing or malformed."""

    pass


def mask(value: str, visible: int = 4) -> str:
    """Mask all but the first `visible` characters of a secret."""
    if len(value) <= visible:
        return "*" * len(value)
    return value[:visible] + "..."


@dataclass(frozen=True)
class ClientCredentials:
    """Access key / secret key pair used to obtain a JWT."""

    access_key: str
    secret_key: str = field(repr=False)

    def __post_init__(self) -> None:
        if not self.access_key or not self.secret_key:
            raise CredentialError("Both access key and secret key are required")

    def __repr__(self) -> str:
        return f"ClientCredentials(access_key={mask(self.access_key)!r}, secret_key='***')"

    @classmethod
    def from_env(cls) -> ClientCredentials:
        """Load credentials from CLOUD_ACCESS_KEY and CLOUD_SECRET_KEY.

        Raises:
            CredentialError: If either variable is missing or empty.
        """
        access_key = os.environ.get(ACCESS_KEY_ENV_VAR, "")
        secret_key = os.environ.get(SECRET_KEY_ENV_VAR, "")
        missing = [
            name
            for name, value in ((ACCESS_KEY_ENV_VAR, access_key), (SECRET_KEY_ENV_VAR, secret_key))
            if not value
        ]
        if missing:
            raise CredentialError(f"Missing credential environment variables: {', '.join(missing)}")
        return cls(access_key=access_key, secret_key=secret_key)


class StaticTokenCredential:
    """azure-core TokenCredential wrapping an already issued JWT."""

    def __init__(self, token: str, expires_on: int = 0) -> None:
        if not token:
            raise CredentialError("Token cannot be empty")
        self._token = token
        self._expires_on = expires_on

    def __repr__(self) -> str:
        return "StaticTokenCredential(token='***')"

    def get_token(self, *scopes: str, **kwargs: object) -> AccessToken:
        return AccessToken(self._token, self._expires_on)


class BearerTokenPolicy(SansIOHTTPPolicy):
    """Adds `Authorization: Bearer <jwt>` when a credential is configured.

    The credential can be swapped after construction, which is how the
    transport installs the JWT obtained during authentication.
    """

    def __init__(self, credential: StaticTokenCredential | None = None) -> None:
        super().__init__()
        self.credential = credential

    def on_request(self, request: PipelineRequest) -> None:
        if self.credential is None:
            return
        token = self.credential.get_token().token
        request.http_request.headers["Authorization"] = f"Bearer {token}"


def log_security_audit_event(
    event_type: str,
    action: str | None = None,
    result: str | None = None,
    principal: str | None = None,
) -> None:
    """Log a security-relevant event with structured fields.

    Args:
        event_type: Type of security event (auth, credential, ...).
        action: Action being performed.
        result: Outcome (success, failure, denied).
        principal: Masked identifier of the acting credential.
    """
    logger.info(
        f"Security audit: {event_type}",
        extra={
            "security_audit": True,
            "event_type": event_type,
            "action": action,
            "result": result,
            "principal": principal,
        },
    )
