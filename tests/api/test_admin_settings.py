"""Tests for admin settings endpoints."""

from datetime import date, timedelta

from fastapi.testclient import TestClient


def test_get_defaults(auth_client: TestClient, admin_headers: dict) -> None:
    response = auth_client.get("/admin/settings", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["max_appointments_per_day"] == 5
    assert data["auto_approve_enabled"] is False
    assert data["business_start"] == "10:00:00"


def test_customers_forbidden(auth_client: TestClient, customer_headers: dict) -> None:
    response = auth_client.get("/admin/settings", headers=customer_headers)
    assert response.status_code == 403
    assert response.json()["error_code"] == "FORBIDDEN"


def test_partial_update(auth_client: TestClient, admin_headers: dict) -> None:
    response = auth_client.put(
        "/admin/settings", json={"max_appointments_per_day": 8}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["max_appointments_per_day"] == 8
    assert response.json()["business_end"] == "19:00:00"


def test_ceiling_out_of_range(auth_client: TestClient, admin_headers: dict) -> None:
    response = auth_client.put(
        "/admin/settings", json={"max_appointments_per_day": 21}, headers=admin_headers
    )
    assert response.status_code == 422


def test_end_before_start(auth_client: TestClient, admin_headers: dict) -> None:
    response = auth_client.put(
        "/admin/settings", json={"business_end": "08:00"}, headers=admin_headers
    )
    assert response.status_code == 422
    assert response.json()["error_code"] == "VALIDATION_ERROR"


def test_toggle_auto_approval(auth_client: TestClient, admin_headers: dict) -> None:
    response = auth_client.post(
        "/admin/settings/auto-approval", json={"enabled": True}, headers=admin_headers
    )
    assert response.json()["auto_approve_enabled"] is True
    assert auth_client.get("/admin/settings", headers=admin_headers).json()[
        "auto_approve_enabled"
    ] is True


def test_lower_ceiling_applies_to_next_booking(
    auth_client: TestClient, admin_headers: dict
) -> None:
    day = (date.today() + timedelta(days=5)).isoformat()
    auth_client.put("/admin/settings", json={"max_appointments_per_day": 1}, headers=admin_headers)
    first = auth_client.post(
        "/appointments",
        json={"appointment_date": day, "appointment_time": "10:00", "service_type": "fitting"},
        headers={"X-Actor-Role": "customer", "X-Customer-Id": "cust-001"},
    )
    second = auth_client.post(
        "/appointments",
        json={"appointment_date": day, "appointment_time": "12:00", "service_type": "fitting"},
        headers={"X-Actor-Role": "customer", "X-Customer-Id": "cust-002"},
    )
    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["error_code"] == "CAPACITY_EXCEEDED"
