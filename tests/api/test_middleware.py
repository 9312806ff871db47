"""Tests for API middleware."""

import pytest
from fastapi.testclient import TestClient

from tailorshop.infrastructure.config import settings
from tailorshop.main import app


@pytest.fixture
def client() -> TestClient:
    """Create test client."""
    return TestClient(app)


class TestRequestIdMiddleware:
    """Tests for request ID correlation middleware."""

    def test_generates_request_id_if_not_provided(self, client: TestClient) -> None:
        """Should generate request ID if not in request headers."""
        response = client.get("/health")
        assert response.status_code == 200
        assert "X-Request-ID" in response.headers
        # UUID format
        request_id = response.headers["X-Request-ID"]
        assert len(request_id) == 36

    def test_uses_provided_request_id(self, client: TestClient) -> None:
        """Should use request ID from request headers."""
        custom_id = "custom-request-id-12345"
        response = client.get(
            "/health",
            headers={"X-Request-ID": custom_id},
        )
        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == custom_id

    def test_error_body_carries_request_id(self, client: TestClient) -> None:
        response = client.get(
            "/appointments/not-a-uuid",
            headers={
                "Authorization": f"Bearer {settings.tailorshop_api_key}",
                "X-Actor-Role": "admin",
                "X-Request-ID": "trace-42",
            },
        )
        assert response.status_code == 422
        assert response.json()["request_id"] == "trace-42"


class TestApiKeyMiddleware:
    """Tests for API key authentication middleware."""

    def test_public_endpoints_dont_require_auth(self, client: TestClient) -> None:
        """Public endpoints should work without authentication."""
        response = client.get("/health")
        assert response.status_code == 200

        response = client.get("/ready")
        assert response.status_code == 200

        response = client.get("/openapi.json")
        assert response.status_code == 200

    def test_protected_endpoints_require_auth(self, client: TestClient) -> None:
        """Protected endpoints should require authentication."""
        response = client.get("/appointments")
        assert response.status_code == 401
        data = response.json()
        assert data["error_code"] == "UNAUTHORIZED"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_invalid_auth_format_rejected(self, client: TestClient) -> None:
        """Invalid authorization header format should be rejected."""
        response = client.get(
            "/orders",
            headers={"Authorization": "InvalidFormat"},
        )
        assert response.status_code == 401
        data = response.json()
        assert data["error_code"] == "UNAUTHORIZED"

    def test_invalid_api_key_rejected(self, client: TestClient) -> None:
        """Invalid API key should be rejected."""
        response = client.get(
            "/orders",
            headers={"Authorization": "Bearer invalid-key"},
        )
        assert response.status_code == 401
        data = response.json()
        assert data["error_code"] == "INVALID_API_KEY"

    def test_valid_api_key_accepted(self, client: TestClient) -> None:
        """Valid API key should be accepted."""
        response = client.get(
            "/orders",
            headers={
                "Authorization": f"Bearer {settings.tailorshop_api_key}",
                "X-Actor-Role": "admin",
            },
        )
        assert response.status_code == 200
        assert response.json() == {"items": [], "total": 0}


class TestActorHeaders:
    """Tests for actor resolution."""

    def test_system_role_rejected(self, auth_client: TestClient) -> None:
        response = auth_client.get("/orders", headers={"X-Actor-Role": "system"})
        assert response.status_code == 422
        assert response.json()["error_code"] == "INVALID_ACTOR"

    def test_customer_without_id_rejected(self, auth_client: TestClient) -> None:
        response = auth_client.get("/orders", headers={"X-Actor-Role": "customer"})
        assert response.status_code == 422
        assert response.json()["error_code"] == "INVALID_ACTOR"

    def test_unknown_role_rejected(self, auth_client: TestClient) -> None:
        response = auth_client.get("/orders", headers={"X-Actor-Role": "tailor"})
        assert response.status_code == 422
