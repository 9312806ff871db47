"""Tests for health check endpoints."""

import pytest
from fastapi.testclient import TestClient

from tailorshop.main import app


@pytest.fixture
def client() -> TestClient:
    """Create test client."""
    return TestClient(app)


def test_health_check(client: TestClient) -> None:
    """Test health endpoint returns healthy status."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "tailorshop-api"
    assert "version" in data


def test_readiness_check(client: TestClient) -> None:
    """In-memory storage is always ready."""
    response = client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["storage"] == "memory"
