"""
HTTP surface: caller identity headers, error mapping and the booking flow end to end.
"""

import uuid
from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from carematch.db.session import get_session
from carematch.main import app

from conftest import PARENT, SPECIALIST, future_at, next_weekday

AS_SPECIALIST = {"X-User-Id": SPECIALIST, "X-User-Role": "specialist"}
AS_PARENT = {"X-User-Id": PARENT, "X-User-Role": "parent"}


@pytest_asyncio.fixture
async def client(session_factory):
    async def _session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = _session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def slot_body(*hours):
    return {
        "slots": [
            {
                "starts_at": future_at(h).isoformat(),
                "ends_at": (future_at(h) + timedelta(minutes=30)).isoformat(),
            }
            for h in hours
        ]
    }


class TestIdentity:

    async def test_missing_caller_is_401(self, client):
        r = await client.get("/specialist/schedule-template")
        assert r.status_code == 401
        assert r.json() == {"detail": "Missing caller identity"}

    async def test_wrong_role_is_403(self, client):
        r = await client.get("/specialist/schedule-template", headers=AS_PARENT)
        assert r.status_code == 403
        r = await client.get("/parent/bookings", headers=AS_SPECIALIST)
        assert r.status_code == 403

    async def test_correlation_id_header(self, client):
        r = await client.get("/specialist/schedule-template", headers=AS_SPECIALIST)
        assert r.status_code == 200
        assert r.headers.get("X-Correlation-ID")


class TestAvailabilityRoutes:

    async def test_create_list_delete(self, client):
        r = await client.post("/specialist/availability", json=slot_body(11, 9), headers=AS_SPECIALIST)
        assert r.status_code == 201
        created = r.json()
        assert [s["is_booked"] for s in created] == [False, False]

        params = {"from_utc": future_at(0).isoformat(), "to_utc": future_at(23).isoformat()}
        r = await client.get("/specialist/availability", params=params, headers=AS_SPECIALIST)
        assert [s["id"] for s in r.json()] == [created[0]["id"], created[1]["id"]]

        r = await client.delete(f"/specialist/availability/{created[0]['id']}", headers=AS_SPECIALIST)
        assert r.status_code == 204
        r = await client.get("/specialist/availability", params=params, headers=AS_SPECIALIST)
        assert len(r.json()) == 1

    async def test_overlap_is_409_and_misaligned_is_400(self, client):
        await client.post("/specialist/availability", json=slot_body(10), headers=AS_SPECIALIST)
        r = await client.post("/specialist/availability", json=slot_body(10), headers=AS_SPECIALIST)
        assert r.status_code == 409

        bad = {"slots": [{"starts_at": future_at(12, 15).isoformat(), "ends_at": future_at(12, 45).isoformat()}]}
        r = await client.post("/specialist/availability", json=bad, headers=AS_SPECIALIST)
        assert r.status_code == 400
        assert "aligned" in r.json()["detail"]

    async def test_unknown_slot_is_404(self, client):
        r = await client.delete(f"/specialist/availability/{uuid.uuid4()}", headers=AS_SPECIALIST)
        assert r.status_code == 404


@pytest.mark.usefixtures("approved_specialist")
async def test_public_free_slots(client):
    await client.post("/specialist/availability", json=slot_body(9, 10), headers=AS_SPECIALIST)
    params = {"from_utc": future_at(0).isoformat(), "to_utc": future_at(23).isoformat()}

    r = await client.get(f"/specialists/{SPECIALIST}/availability", params=params)
    assert r.status_code == 200
    assert len(r.json()) == 2

    r = await client.get("/specialists/nobody/availability", params=params)
    assert r.status_code == 404


async def test_templates_and_materialize(client):
    r = await client.get("/specialist/schedule-template/presets", headers=AS_SPECIALIST)
    assert "weekdays_10_18" in [p["code"] for p in r.json()]

    body = {"slots": [{"day_of_week": 1, "start_time": "09:00", "end_time": "09:30"}]}
    r = await client.put("/specialist/schedule-template", json=body, headers=AS_SPECIALIST)
    assert r.status_code == 200
    assert r.json()["slots"][0]["start_time"] == "09:00:00"

    monday = next_weekday(1)
    r = await client.post(
        "/specialist/schedule-template/materialize",
        json={"from_date_utc": f"{monday.isoformat()}T00:00:00Z", "to_date_utc": f"{(monday + timedelta(days=14)).isoformat()}T00:00:00Z"},
        headers=AS_SPECIALIST,
    )
    assert r.status_code == 200
    assert r.json()["created"] == 2

    r = await client.post(
        "/specialist/schedule-template/from-preset",
        json={"preset_code": "nope"},
        headers=AS_SPECIALIST,
    )
    assert r.status_code == 400


@pytest.mark.usefixtures("approved_specialist")
async def test_booking_flow(client, child_id):
    r = await client.post("/specialist/availability", json=slot_body(10), headers=AS_SPECIALIST)
    slot_id = r.json()[0]["id"]

    r = await client.post(
        "/parent/bookings",
        json={"availability_slot_id": slot_id, "child_id": str(child_id), "message_from_parent": "Hi"},
        headers=AS_PARENT,
    )
    assert r.status_code == 201
    booking = r.json()
    assert booking["status"] == "pending"

    r = await client.post(
        "/parent/bookings",
        json={"availability_slot_id": slot_id, "child_id": str(child_id)},
        headers=AS_PARENT,
    )
    assert r.status_code == 409

    r = await client.get("/specialist/bookings", params={"status": "pending"}, headers=AS_SPECIALIST)
    assert [b["id"] for b in r.json()] == [booking["id"]]

    r = await client.post(f"/specialist/bookings/{booking['id']}/confirm", headers=AS_SPECIALIST)
    assert r.json()["status"] == "confirmed"
    r = await client.post(f"/specialist/bookings/{booking['id']}/decline", headers=AS_SPECIALIST)
    assert r.status_code == 409

    r = await client.post(
        f"/specialist/bookings/{booking['id']}/close",
        json={"summary": "Went well", "private_notes": "internal"},
        headers=AS_SPECIALIST,
    )
    assert r.status_code == 200
    assert r.json()["status"] == "completed"
    assert r.json()["outcome"]["private_notes"] == "internal"

    r = await client.get(f"/parent/bookings/{booking['id']}", headers=AS_PARENT)
    assert r.json()["outcome"]["summary"] == "Went well"
    assert "private_notes" not in r.json()["outcome"]

    r = await client.post(f"/parent/bookings/{booking['id']}/acknowledge", headers=AS_PARENT)
    assert r.status_code == 200
    assert r.json()["parent_acknowledged_at"] is not None

    r = await client.post(f"/parent/bookings/{booking['id']}/cancel", headers=AS_PARENT)
    assert r.status_code == 409


@pytest.mark.usefixtures("approved_specialist")
async def test_parent_cancel_frees_slot(client, child_id):
    r = await client.post("/specialist/availability", json=slot_body(15), headers=AS_SPECIALIST)
    slot_id = r.json()[0]["id"]
    r = await client.post(
        "/parent/bookings",
        json={"availability_slot_id": slot_id, "child_id": str(child_id)},
        headers=AS_PARENT,
    )
    booking_id = r.json()["id"]

    r = await client.post(f"/parent/bookings/{booking_id}/cancel", headers=AS_PARENT)
    assert r.json()["status"] == "cancelled_by_parent"
    r = await client.post(f"/parent/bookings/{booking_id}/cancel", headers=AS_PARENT)
    assert r.json()["status"] == "cancelled_by_parent"

    params = {"from_utc": future_at(0).isoformat(), "to_utc": future_at(23).isoformat()}
    r = await client.get(f"/specialists/{SPECIALIST}/availability", params=params)
    assert [s["id"] for s in r.json()] == [slot_id]

    other = {"X-User-Id": "parent-9", "X-User-Role": "parent"}
    r = await client.get(f"/parent/bookings/{booking_id}", headers=other)
    assert r.status_code == 403
