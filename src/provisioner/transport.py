"""Remote call layer.

The engine only depends on the Transport protocol: one asynchronous call per
operation returning the GraphQL `data` and `errors`. GraphQLTransport is the
production implementation on top of an azure-core HTTP pipeline, which
provides HTTP-level retries with exponential backoff, header injection and a
bearer token policy. The blocking pipeline runs in the default executor so
the event loop stays responsive.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from azure.core import PipelineClient
from azure.core.exceptions import AzureError
from azure.core.pipeline.policies import HeadersPolicy, RetryPolicy, UserAgentPolicy
from azure.core.rest import HttpRequest

from .config import MAX_RESPONSE_PREVIEW_CHARS, Config
from .errors import RemoteOperationError, TransportError
from .queries import QUERIES
from .security import (
    BearerTokenPolicy,
    ClientCredentials,
    StaticTokenCredential,
    log_security_audit_event,
    mask,
)

logger = logging.getLogger(__name__)

USER_AGENT = "cloud-provisioner/0.1.0"


@dataclass(frozen=True)
class GraphQLResponse:
    """Decoded GraphQL response body."""

    data: dict[str, Any] | None
    errors: list[str] = field(default_factory=list)


class Transport(Protocol):
    """Executes one named remote operation."""

    async def call(self, operation: str, variables: dict[str, Any]) -> GraphQLResponse: ...


async def call_checked(
    transport: Transport, operation: str, variables: dict[str, Any]
) -> dict[str, Any]:
    """Call `operation` and return its data, raising on logical errors.

    Raises:
        RemoteOperationError: The response carried errors or no data.
        TransportError: Propagated from the transport.
    """
    response = await transport.call(operation, variables)
    if response.errors:
        raise RemoteOperationError(operation, response.errors)
    if response.data is None:
        raise RemoteOperationError(operation, ["no response found"])
    return response.data


def _preview(body: str) -> str:
    if len(body) > MAX_RESPONSE_PREVIEW_CHARS:
        return body[:MAX_RESPONSE_PREVIEW_CHARS] + "..."
    return body


def parse_response(status_code: int, body: str) -> GraphQLResponse:
    """Convert an HTTP status and body into a GraphQLResponse.

    Raises:
        TransportError: Non-2xx status or a body that is not a GraphQL object.
    """
    if status_code < 200 or status_code >= 300:
        raise TransportError(
            f"HTTP request failed with status code {status_code}: {_preview(body)}",
            status_code=status_code,
        )

    try:
        payload = json.loads(body)
    except json.JSONDecodeError as e:
        raise TransportError(
            f"Failed to parse JSON response: {e}. Response body: {_preview(body)}",
            status_code=status_code,
        ) from e

    if not isinstance(payload, dict):
        raise TransportError(
            f"Unexpected response shape. Response body: {_preview(body)}",
            status_code=status_code,
        )

    errors = [
        str(error.get("message", "unknown error")) if isinstance(error, dict) else str(error)
        for error in payload.get("errors") or []
    ]
    return GraphQLResponse(data=payload.get("data"), errors=errors)


class GraphQLTransport:
    """Transport posting GraphQL documents through an azure-core pipeline."""

    def __init__(
        self,
        config: Config,
        client: PipelineClient | None = None,
        token: str | None = None,
    ) -> None:
        self._config = config
        self._auth_policy = BearerTokenPolicy(StaticTokenCredential(token) if token else None)
        self._client = client or PipelineClient(
            base_url=config.api_url,
            policies=[
                HeadersPolicy({"Content-Type": "application/json"}),
                UserAgentPolicy(user_agent=USER_AGENT),
                RetryPolicy(
                    retry_total=config.http_max_retries,
                    retry_backoff_factor=config.retry_wait_min_seconds,
                    retry_backoff_max=config.retry_wait_max_seconds,
                ),
                self._auth_policy,
            ],
        )

    @property
    def authenticated(self) -> bool:
        return self._auth_policy.credential is not None

    async def authenticate(self, credentials: ClientCredentials) -> None:
        """Exchange client credentials for a JWT used on every later call.

        Raises:
            RemoteOperationError: The API rejected the credentials.
            TransportError: The exchange request failed.
        """
        data = await call_checked(
            self,
            "GetJWTForClientCredentials",
            {"accessKey": credentials.access_key, "secretKey": credentials.secret_key},
        )
        token = data.get("getJWTForClientCredentials")
        principal = mask(credentials.access_key)
        if not token:
            log_security_audit_event(
                "auth",
                action="client_credentials",
                result="failure",
                principal=principal,
            )
            raise RemoteOperationError("GetJWTForClientCredentials", ["no token returned"])

        self._auth_policy.credential = StaticTokenCredential(token)
        log_security_audit_event(
            "auth",
            action="client_credentials",
            result="success",
            principal=principal,
        )

    async def call(self, operation: str, variables: dict[str, Any]) -> GraphQLResponse:
        try:
            query = QUERIES[operation]
        except KeyError as e:
            raise TransportError(f"Unknown operation: {operation}") from e

        body = {"operationName": operation, "query": query, "variables": variables}
        loop = asyncio.get_running_loop()
        status_code, text = await loop.run_in_executor(
            None, functools.partial(self._post, operation, body)
        )
        return parse_response(status_code, text)

    def _post(self, operation: str, body: dict[str, Any]) -> tuple[int, str]:
        request = HttpRequest("POST", self._config.api_url, json=body)
        logger.debug("Sending request", extra={"operation": operation})
        try:
            response = self._client.send_request(
                request,
                connection_timeout=self._config.request_timeout_seconds,
                read_timeout=self._config.request_timeout_seconds,
            )
            response.read()
        except AzureError as e:
            logger.error(
                "HTTP request failed",
                extra={"operation": operation, "error": str(e)},
            )
            raise TransportError(f"HTTP request failed for {operation}: {e}") from e

        if response.status_code >= 300:
            logger.error(
                "HTTP request returned error status",
                extra={"operation": operation, "status_code": response.status_code},
            )
        return response.status_code, response.text()

    def close(self) -> None:
        self._client.close()
