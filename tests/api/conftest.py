"""Shared fixtures for API tests."""

import pytest
from fastapi.testclient import TestClient

from tailorshop.infrastructure.config import settings
from tailorshop.main import app


@pytest.fixture
def client() -> TestClient:
    """Create test client without authentication."""
    return TestClient(app)


@pytest.fixture
def auth_client() -> TestClient:
    """Create test client with valid API key authentication."""
    return TestClient(
        app,
        headers={"Authorization": f"Bearer {settings.tailorshop_api_key}"},
    )


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Get authentication headers."""
    return {"Authorization": f"Bearer {settings.tailorshop_api_key}"}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Actor-Role": "admin"}


@pytest.fixture
def customer_headers() -> dict[str, str]:
    return {"X-Actor-Role": "customer", "X-Customer-Id": "cust-001"}


@pytest.fixture
def other_customer_headers() -> dict[str, str]:
    return {"X-Actor-Role": "customer", "X-Customer-Id": "cust-002"}
