"""
Integration tests for the REST API endpoints.

The app is built with the test session factory and a fake routing client;
``ASGITransport`` does not run the lifespan, so the retry worker stays off
and every background dispatch is awaited explicitly via ``intake.drain()``.
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from ambulance_dispatch.api.app import create_app
from ambulance_dispatch.domain.enums import VehicleStatus
from tests.support import (
    PICKUP,
    SPOTS,
    CountingSessionFactory,
    FakeRoutingClient,
    RecordingRouter,
    add_ambulance,
    add_booking,
    fetch_ambulance,
)

BOOKING = {
    "patient_name": "Ishaan Mehta",
    "patient_contact": "+91-98200-55555",
    "patient_age": 54,
    "emergency_type": "cardiac",
    "pickup_location": "Kurla West",
    "pickup_lat": PICKUP.latitude,
    "pickup_lng": PICKUP.longitude,
}


@pytest.fixture
def router():
    return FakeRoutingClient({SPOTS[1]: 420.0, SPOTS[2]: 300.0})


@pytest.fixture
def app(session_factory, router):
    return create_app(session_factory=session_factory, routing_client=router)


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await app.state.intake.drain()


async def seed_two(factory):
    return (
        await add_ambulance(factory, "AMB-1", at=SPOTS[1]),
        await add_ambulance(factory, "AMB-2", at=SPOTS[2]),
    )


# ── Health ────────────────────────────────────────────────────────────


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/api/v1/admin/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "pending_bookings": 0}

    @pytest.mark.asyncio
    async def test_health_counts_pending(self, client, session_factory):
        await add_booking(session_factory)
        resp = await client.get("/api/v1/admin/health")
        assert resp.json()["pending_bookings"] == 1


# ── Bookings ──────────────────────────────────────────────────────────


class TestBookings:
    @pytest.mark.asyncio
    async def test_create_then_assigned(self, client, app, session_factory):
        _, v2 = await seed_two(session_factory)

        resp = await client.post("/api/v1/bookings", json=BOOKING)
        assert resp.status_code == 202
        data = resp.json()
        assert data["status"] == "pending"
        assert data["dispatch_state"] == "searching"
        assert data["ambulance_id"] is None

        await app.state.intake.drain()

        resp = await client.get(f"/api/v1/bookings/{data['id']}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "assigned"
        assert data["dispatch_state"] == "assigned"
        assert data["ambulance_id"] == v2
        assert data["route_duration_s"] == 300.0
        assert data["estimated_arrival"] is not None

    @pytest.mark.asyncio
    async def test_create_without_fleet_stays_pending(self, client, app):
        resp = await client.post("/api/v1/bookings", json=BOOKING)
        assert resp.status_code == 202
        await app.state.intake.drain()

        data = (await client.get(f"/api/v1/bookings/{resp.json()['id']}")).json()
        assert data["status"] == "pending"
        assert data["dispatch_state"] == "retry_pending"
        assert data["last_dispatch_error"] == "no_candidates"
        assert data["dispatch_attempts"] == 1

    @pytest.mark.asyncio
    async def test_idempotent_create(self, client, app):
        body = {**BOOKING, "idempotency_key": "dispatch-call-0042"}

        first = await client.post("/api/v1/bookings", json=body)
        await app.state.intake.drain()
        second = await client.post("/api/v1/bookings", json=body)

        assert first.status_code == 202
        assert second.status_code == 202
        assert first.json()["id"] == second.json()["id"]

    @pytest.mark.asyncio
    async def test_create_rejects_bad_coordinates(self, client):
        resp = await client.post("/api/v1/bookings", json={**BOOKING, "pickup_lat": 95.0})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_get_missing_booking(self, client):
        resp = await client.get("/api/v1/bookings/99999")
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_cancel_pending(self, client, session_factory):
        booking_id = await add_booking(session_factory)

        resp = await client.patch(f"/api/v1/bookings/{booking_id}/cancel")
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"
        assert resp.json()["dispatch_state"] == "closed"

        resp = await client.patch(f"/api/v1/bookings/{booking_id}/cancel")
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_cancel_assigned_is_refused(self, client, app, session_factory):
        await seed_two(session_factory)
        created = (await client.post("/api/v1/bookings", json=BOOKING)).json()
        await app.state.intake.drain()

        resp = await client.patch(f"/api/v1/bookings/{created['id']}/cancel")
        assert resp.status_code == 409
        assert "assigned" in resp.json()["detail"]

    @pytest.mark.asyncio
    async def test_cancel_missing_booking(self, client):
        resp = await client.patch("/api/v1/bookings/99999/cancel")
        assert resp.status_code == 404


# ── Operator dispatch ─────────────────────────────────────────────────


class TestManualDispatch:
    @pytest.mark.asyncio
    async def test_dispatch_pending_booking(self, client, session_factory):
        _, v2 = await seed_two(session_factory)
        booking_id = await add_booking(session_factory)

        resp = await client.post(f"/api/v1/bookings/{booking_id}/dispatch")
        assert resp.status_code == 200
        data = resp.json()
        assert data["ok"] is True
        assert data["outcome"] == "committed"
        assert data["ambulance_id"] == v2
        assert data["eta_seconds"] == 300.0

    @pytest.mark.asyncio
    async def test_dispatch_reports_failure(self, client, session_factory):
        await add_ambulance(session_factory, "AMB-1")  # no position yet
        booking_id = await add_booking(session_factory)

        resp = await client.post(f"/api/v1/bookings/{booking_id}/dispatch")
        assert resp.status_code == 200
        assert resp.json() == {
            "booking_id": booking_id,
            "ok": False,
            "outcome": "no_located_candidates",
            "ambulance_id": None,
            "eta_seconds": None,
            "distance_meters": None,
        }

    @pytest.mark.asyncio
    async def test_dispatch_non_pending_conflicts(self, client, session_factory):
        await seed_two(session_factory)
        booking_id = await add_booking(session_factory)
        await client.post(f"/api/v1/bookings/{booking_id}/dispatch")

        resp = await client.post(f"/api/v1/bookings/{booking_id}/dispatch")
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_dispatch_missing_booking(self, client):
        resp = await client.post("/api/v1/bookings/99999/dispatch")
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_dispatch_holds_no_session_while_routing(self, session_factory):
        sessions = CountingSessionFactory(session_factory)
        router = RecordingRouter(sessions, durations={SPOTS[1]: 420.0, SPOTS[2]: 300.0})
        app = create_app(session_factory=sessions, routing_client=router)
        _, v2 = await seed_two(session_factory)
        booking_id = await add_booking(session_factory)

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.post(f"/api/v1/bookings/{booking_id}/dispatch")

        assert resp.status_code == 200
        assert resp.json()["ambulance_id"] == v2
        assert router.open_during_route == [0, 0]
        assert sessions.open == 0


# ── Ambulance positions ───────────────────────────────────────────────


class TestPositions:
    @pytest.mark.asyncio
    async def test_record_position(self, client, session_factory):
        amb = await add_ambulance(session_factory, "AMB-1")

        resp = await client.post(
            f"/api/v1/ambulances/{amb}/positions",
            json={"latitude": 19.08, "longitude": 72.88},
        )
        assert resp.status_code == 201
        assert resp.json()["ambulance_id"] == amb

        fleet = (await client.get("/api/v1/admin/fleet")).json()
        assert fleet[0]["latitude"] == 19.08
        assert fleet[0]["longitude"] == 72.88

    @pytest.mark.asyncio
    async def test_record_position_unknown_ambulance(self, client):
        resp = await client.post(
            "/api/v1/ambulances/99999/positions",
            json={"latitude": 19.08, "longitude": 72.88},
        )
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_record_position_validates_range(self, client, session_factory):
        amb = await add_ambulance(session_factory, "AMB-1")
        resp = await client.post(
            f"/api/v1/ambulances/{amb}/positions",
            json={"latitude": 19.08, "longitude": 200.0},
        )
        assert resp.status_code == 422


# ── Admin ─────────────────────────────────────────────────────────────


class TestAdmin:
    @pytest.mark.asyncio
    async def test_pending_bookings(self, client, session_factory):
        first = await add_booking(session_factory)
        second = await add_booking(session_factory)

        resp = await client.get("/api/v1/admin/pending-bookings")
        assert resp.status_code == 200
        assert [b["id"] for b in resp.json()] == [first, second]

    @pytest.mark.asyncio
    async def test_fleet_sorted_by_distance(self, client, session_factory):
        far = await add_ambulance(session_factory, "AMB-FAR", at=SPOTS[3])
        dark = await add_ambulance(session_factory, "AMB-DARK")
        near = await add_ambulance(session_factory, "AMB-NEAR", at=SPOTS[2])

        resp = await client.get(
            "/api/v1/admin/fleet",
            params={"lat": PICKUP.latitude, "lng": PICKUP.longitude},
        )
        assert resp.status_code == 200
        entries = resp.json()
        assert [e["id"] for e in entries] == [near, far, dark]
        assert entries[0]["straight_line_km"] < entries[1]["straight_line_km"]
        assert entries[2]["straight_line_km"] is None
        assert entries[2]["latitude"] is None

    @pytest.mark.asyncio
    async def test_requeue_assigned_booking(self, client, session_factory):
        _, v2 = await seed_two(session_factory)
        booking_id = await add_booking(session_factory)
        await client.post(f"/api/v1/bookings/{booking_id}/dispatch")

        resp = await client.post(f"/api/v1/admin/bookings/{booking_id}/requeue")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "pending"
        assert data["ambulance_id"] is None
        ambulance = await fetch_ambulance(session_factory, v2)
        assert ambulance.status == VehicleStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_requeue_pending_booking_conflicts(self, client, session_factory):
        booking_id = await add_booking(session_factory)
        resp = await client.post(f"/api/v1/admin/bookings/{booking_id}/requeue")
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_requeue_missing_booking(self, client):
        resp = await client.post("/api/v1/admin/bookings/99999/requeue")
        assert resp.status_code == 404
