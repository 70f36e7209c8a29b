"""Tests for the GraphQL transport layer."""

from __future__ import annotations

import json
from typing import Any

import pytest
from azure.core.exceptions import ServiceRequestError
from cloud_mock import MockTransport

from provisioner.config import MAX_RESPONSE_PREVIEW_CHARS, Config
from provisioner.errors import RemoteOperationError, TransportError
from provisioner.queries import QUERIES, get_query
from provisioner.security import ClientCredentials
from provisioner.transport import (
    GraphQLResponse,
    GraphQLTransport,
    call_checked,
    parse_response,
)


class FakeResponse:
    def __init__(self, status_code: int, body: Any) -> None:
        self.status_code = status_code
        self._body = body if isinstance(body, str) else json.dumps(body)

    def read(self) -> bytes:
        return self._body.encode()

    def text(self) -> str:
        return self._body


class FakePipelineClient:
    """Records requests and replays queued responses or errors."""

    def __init__(self, *responses: FakeResponse | Exception) -> None:
        self.responses = list(responses)
        self.requests: list[Any] = []
        self.kwargs: list[dict[str, Any]] = []
        self.closed = False

    def send_request(self, request: Any, **kwargs: Any) -> FakeResponse:
        self.requests.append(request)
        self.kwargs.append(kwargs)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self) -> None:
        self.closed = True

    def body(self, index: int = 0) -> dict[str, Any]:
        content = self.requests[index].content
        if isinstance(content, (str, bytes)):
            return json.loads(content)
        return content


@pytest.fixture
def config() -> Config:
    return Config(project_id="proj123456", request_timeout_seconds=12)


class TestParseResponse:
    """Tests for HTTP status and body decoding."""

    def test_data_response(self) -> None:
        response = parse_response(200, '{"data": {"getService": {"id": "svc00001"}}}')

        assert response.data == {"getService": {"id": "svc00001"}}
        assert response.errors == []

    def test_error_messages_extracted(self) -> None:
        body = json.dumps({"data": None, "errors": [{"message": "a"}, {"message": "b"}]})

        response = parse_response(200, body)

        assert response.data is None
        assert response.errors == ["a", "b"]

    def test_non_2xx_status(self) -> None:
        with pytest.raises(TransportError) as exc_info:
            parse_response(503, "upstream unavailable")

        assert exc_info.value.status_code == 503
        assert "status code 503" in str(exc_info.value)
        assert "upstream unavailable" in str(exc_info.value)

    def test_error_body_preview_is_truncated(self) -> None:
        with pytest.raises(TransportError) as exc_info:
            parse_response(500, "x" * (MAX_RESPONSE_PREVIEW_CHARS * 2))

        assert len(str(exc_info.value)) < MAX_RESPONSE_PREVIEW_CHARS + 100

    def test_invalid_json(self) -> None:
        with pytest.raises(TransportError) as exc_info:
            parse_response(200, "<html>gateway</html>")

        assert "Failed to parse JSON response" in str(exc_info.value)

    def test_non_object_body(self) -> None:
        with pytest.raises(TransportError):
            parse_response(200, "[1, 2, 3]")


class TestCallChecked:
    """Tests for error checking on top of any Transport."""

    @pytest.mark.asyncio
    async def test_returns_data(self) -> None:
        transport = MockTransport()
        service = transport.state.add_service()

        data = await call_checked(transport, "GetService", {"serviceId": service.id})

        assert data["getService"]["id"] == service.id

    @pytest.mark.asyncio
    async def test_errors_raise_remote_operation_error(self) -> None:
        transport = MockTransport()
        transport.inject_error("RenameService", "name already taken")

        with pytest.raises(RemoteOperationError) as exc_info:
            await call_checked(transport, "RenameService", {"serviceId": "svc00001"})

        assert exc_info.value.operation == "RenameService"
        assert exc_info.value.messages == ["name already taken"]
        assert not exc_info.value.is_not_found()

    @pytest.mark.asyncio
    async def test_missing_data_is_an_error(self) -> None:
        class EmptyTransport:
            async def call(self, operation: str, variables: dict) -> GraphQLResponse:
                return GraphQLResponse(data=None)

        with pytest.raises(RemoteOperationError) as exc_info:
            await call_checked(EmptyTransport(), "GetService", {})

        assert exc_info.value.messages == ["no response found"]

    @pytest.mark.asyncio
    async def test_transport_errors_propagate(self) -> None:
        transport = MockTransport()
        transport.inject_error("GetService", TransportError("connection reset"))

        with pytest.raises(TransportError):
            await call_checked(transport, "GetService", {"serviceId": "svc00001"})


class TestGraphQLTransport:
    """Tests for the azure-core backed transport."""

    @pytest.mark.asyncio
    async def test_posts_named_operation(self, config: Config) -> None:
        client = FakePipelineClient(FakeResponse(200, {"data": {"getService": None}}))
        transport = GraphQLTransport(config, client=client)

        response = await transport.call("GetService", {"serviceId": "svc00001"})

        assert response.data == {"getService": None}
        body = client.body()
        assert body["operationName"] == "GetService"
        assert body["query"] == QUERIES["GetService"]
        assert body["variables"] == {"serviceId": "svc00001"}
        assert client.requests[0].method == "POST"
        assert client.kwargs[0]["read_timeout"] == 12

    @pytest.mark.asyncio
    async def test_unknown_operation(self, config: Config) -> None:
        client = FakePipelineClient()
        transport = GraphQLTransport(config, client=client)

        with pytest.raises(TransportError):
            await transport.call("DropDatabase", {})

        assert client.requests == []

    @pytest.mark.asyncio
    async def test_network_error_becomes_transport_error(self, config: Config) -> None:
        client = FakePipelineClient(ServiceRequestError("connection refused"))
        transport = GraphQLTransport(config, client=client)

        with pytest.raises(TransportError) as exc_info:
            await transport.call("GetService", {"serviceId": "svc00001"})

        assert "connection refused" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_http_error_status(self, config: Config) -> None:
        client = FakePipelineClient(FakeResponse(401, "unauthorized"))
        transport = GraphQLTransport(config, client=client)

        with pytest.raises(TransportError) as exc_info:
            await transport.call("GetService", {"serviceId": "svc00001"})

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_authenticate_exchanges_credentials(self, config: Config) -> None:
        client = FakePipelineClient(
            FakeResponse(200, {"data": {"getJWTForClientCredentials": "jwt-abc"}})
        )
        transport = GraphQLTransport(config, client=client)
        assert not transport.authenticated

        await transport.authenticate(ClientCredentials("access-key-1", "secret-key-1"))

        assert transport.authenticated
        assert client.body()["variables"] == {
            "accessKey": "access-key-1",
            "secretKey": "secret-key-1",
        }

    @pytest.mark.asyncio
    async def test_authenticate_rejected(self, config: Config) -> None:
        client = FakePipelineClient(
            FakeResponse(200, {"data": None, "errors": [{"message": "invalid credentials"}]})
        )
        transport = GraphQLTransport(config, client=client)

        with pytest.raises(RemoteOperationError):
            await transport.authenticate(ClientCredentials("access-key-1", "wrong"))

        assert not transport.authenticated

    def test_close_closes_client(self, config: Config) -> None:
        client = FakePipelineClient()

        GraphQLTransport(config, client=client).close()

        assert client.closed


class TestQueries:
    """Every operation the resource types issue has a document."""

    @pytest.mark.parametrize(
        "operation",
        [
            "CreateService",
            "ResizeInstance",
            "AttachServiceToPrivateLink",
            "UpdateS3Connector",
            "ListPrivateLinkConnections",
            "DeleteVPC",
        ],
    )
    def test_operation_documents_name_themselves(self, operation: str) -> None:
        assert operation in get_query(operation)
