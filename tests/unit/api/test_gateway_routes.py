"""Tests for the gateway HTTP routes and discovery documents."""

from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from toolgate.api.app import create_app
from toolgate.api.dependencies import get_identity_verifier
from toolgate.api.middleware.auth import IdentityVerifier
from toolgate.config.models.auth import AuthConfig
from toolgate.gateway.errors import ErrorCode

SECRET = "route-test-secret"
PATH = "/mcp/platform"


def token(**claims: Any) -> str:
    payload = {"sub": "user-route", "email": "Route@Example.com", **claims}
    return jwt.encode(payload, SECRET, algorithm="HS256")


def envelope(method: str, request_id: int = 1, **params: Any) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}


@pytest.fixture
def client() -> Iterator[TestClient]:
    app = create_app()
    verifier = IdentityVerifier(AuthConfig(jwt_secret=SECRET))
    app.dependency_overrides[get_identity_verifier] = lambda: verifier
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {token()}"}


class TestAuthentication:
    def test_missing_token_challenges(self, client: TestClient) -> None:
        response = client.post(PATH, json=envelope("tools/list", 4))

        assert response.status_code == 401
        body = response.json()
        assert body["id"] == 4
        assert body["error"]["code"] == ErrorCode.AUTH_REQUIRED
        assert body["error"]["data"] == {"type": "AUTH_MISSING_TOKEN"}
        assert response.headers["WWW-Authenticate"] == (
            'Bearer resource_metadata="http://testserver/.well-known/oauth-protected-resource"'
        )

    def test_expired_token(self, client: TestClient) -> None:
        expired = token(exp=int((datetime.now(UTC) - timedelta(hours=1)).timestamp()))

        response = client.post(
            PATH, json=envelope("tools/list"), headers={"Authorization": f"Bearer {expired}"}
        )

        assert response.status_code == 401
        assert response.json()["error"]["data"] == {"type": "AUTH_TOKEN_EXPIRED"}

    def test_wrong_signature(self, client: TestClient) -> None:
        forged = jwt.encode({"sub": "x", "email": "x@example.com"}, "other", algorithm="HS256")

        response = client.post(
            PATH, json=envelope("tools/list"), headers={"Authorization": f"Bearer {forged}"}
        )

        assert response.json()["error"]["data"] == {"type": "AUTH_INVALID_TOKEN"}

    def test_parse_error_answered_before_auth(self, client: TestClient) -> None:
        response = client.post(PATH, content=b"{oops", headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == ErrorCode.PARSE_ERROR
        assert response.json()["id"] is None


class TestRPC:
    def test_initialize_sets_session_header(
        self, client: TestClient, auth_headers: dict[str, str]
    ) -> None:
        response = client.post(PATH, json=envelope("initialize"), headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["Mcp-Session-Id"]
        assert response.json()["result"]["serverInfo"]["version"] == "2.0.0"

    def test_list_capabilities(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        response = client.post(PATH, json=envelope("capabilities/list"), headers=auth_headers)

        assert len(response.json()["result"]["tools"]) == 29

    def test_notification_accepted(
        self, client: TestClient, auth_headers: dict[str, str]
    ) -> None:
        response = client.post(
            PATH,
            json={"jsonrpc": "2.0", "method": "notifications/initialized"},
            headers=auth_headers,
        )

        assert response.status_code == 202
        assert response.content == b""

    def test_memory_round_trip(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        write = envelope(
            "tools/call", 1, name="memory.write", arguments={"key": "city", "value": "Lyon"}
        )
        read = envelope("tools/call", 2, name="memory.read", arguments={"key": "city"})

        client.post(PATH, json=write, headers=auth_headers)
        response = client.post(PATH, json=read, headers=auth_headers)

        assert response.json()["result"]["structuredContent"]["value"] == "Lyon"

    def test_capability_error_status(
        self, client: TestClient, auth_headers: dict[str, str]
    ) -> None:
        response = client.post(
            PATH,
            json=envelope("capabilities/invoke", name="set.version", arguments={}),
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == ErrorCode.INVALID_PARAMS


class TestTransport:
    def test_get_not_supported(self, client: TestClient) -> None:
        response = client.get(PATH)

        assert response.status_code == 405
        assert response.headers["Allow"] == "POST, DELETE"

    def test_delete_ends_session(self, client: TestClient) -> None:
        assert client.delete(PATH).status_code == 200


class TestWellKnown:
    def test_discovery_document(self, client: TestClient) -> None:
        doc = client.get("/.well-known/mcp.json").json()

        assert doc["transport"] == {"type": "http-post", "url": PATH}
        assert doc["tools_count"] == 29
        assert doc["resources_count"] == 2

    def test_protected_resource_metadata(self, client: TestClient) -> None:
        doc = client.get("/.well-known/oauth-protected-resource").json()

        assert doc["resource"] == f"http://testserver{PATH}"
        assert doc["authorization_servers"] == ["http://testserver"]
        assert doc["bearer_methods_supported"] == ["header"]


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert {c["name"] for c in body["components"]} == {"postgres", "best_effort_sink"}
        assert body["capabilities"] == 29
        assert body["storage_backend"] == "memory"

    def test_ready(self, client: TestClient) -> None:
        assert client.get("/health/ready").json() == {"status": "ready"}

    def test_metrics(self, client: TestClient) -> None:
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "toolgate" in response.text
