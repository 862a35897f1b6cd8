"""
Health endpoints and app wiring.
"""

from fastapi.testclient import TestClient

from carematch.main import app


def test_health_endpoint():
    client = TestClient(app)
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_ready_endpoint():
    client = TestClient(app)
    response = client.get("/readyz")

    assert response.status_code == 200
    assert response.json()["db"] == "ok"


def test_routes_are_published():
    paths = set(app.openapi()["paths"])
    assert {
        "/specialist/availability",
        "/specialist/availability/{slot_id}",
        "/specialists/{specialist_id}/availability",
        "/specialist/schedule-template",
        "/specialist/schedule-template/presets",
        "/specialist/schedule-template/from-preset",
        "/specialist/schedule-template/materialize",
        "/specialist/bookings",
        "/specialist/bookings/{booking_id}/close",
        "/parent/bookings",
        "/parent/bookings/{booking_id}/acknowledge",
    } <= paths
