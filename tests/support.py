"""
Test doubles and seeding helpers shared across the test modules.

``FakeRoutingClient`` answers from a table keyed by origin coordinates, so
each ambulance (placed at its own coordinates) gets a deterministic
duration without any network access.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Iterable, Optional, Union

from ambulance_dispatch.domain.entities import Coordinates, Position, RouteEstimate
from ambulance_dispatch.domain.enums import VehicleStatus
from ambulance_dispatch.domain.outcomes import RouteUnavailable
from ambulance_dispatch.domain.ports import PositionLookup, RoutingClient
from ambulance_dispatch.infrastructure.database import SessionFactory
from ambulance_dispatch.infrastructure.models import AmbulanceModel, BookingModel
from ambulance_dispatch.infrastructure.repositories import (
    BookingRepository,
    LocationRepository,
)

PICKUP = Coordinates(19.0760, 72.8777)

# One distinct spot per ambulance in the tests
SPOTS = {
    1: Coordinates(19.0896, 72.8656),
    2: Coordinates(19.0600, 72.8500),
    3: Coordinates(19.1176, 72.9060),
    4: Coordinates(19.0540, 72.8400),
}

Answer = Union[float, None, Exception]


class FakeRoutingClient(RoutingClient):
    """
    ``durations`` maps origin -> seconds (``None`` = unavailable, an
    exception instance = raise it).  ``hang`` origins never answer.
    """

    def __init__(
        self,
        durations: Optional[dict[Coordinates, Answer]] = None,
        default: Answer = None,
        hang: Iterable[Coordinates] = (),
        delays: Optional[dict[Coordinates, float]] = None,
    ):
        self.durations = durations or {}
        self.default = default
        self.hang = set(hang)
        self.delays = delays or {}
        self.calls: list[tuple[Coordinates, Coordinates]] = []
        self.cancelled = 0

    async def route(self, origin, destination):
        self.calls.append((origin, destination))
        if origin in self.hang:
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                self.cancelled += 1
                raise
        if origin in self.delays:
            await asyncio.sleep(self.delays[origin])
        answer = self.durations.get(origin, self.default)
        if isinstance(answer, Exception):
            raise answer
        if answer is None:
            return RouteUnavailable(reason="NoRoute")
        return RouteEstimate(distance_meters=answer * 12.5, duration_seconds=answer)


class CountingSessionFactory:
    """Wraps a session factory and tracks how many sessions are open."""

    def __init__(self, factory: SessionFactory):
        self.factory = factory
        self.open = 0

    @asynccontextmanager
    async def __call__(self):
        async with self.factory() as session:
            self.open += 1
            try:
                yield session
            finally:
                self.open -= 1


class RecordingRouter(FakeRoutingClient):
    """Notes how many sessions were open whenever a route is requested."""

    def __init__(self, sessions: CountingSessionFactory, **kwargs):
        super().__init__(**kwargs)
        self.sessions = sessions
        self.open_during_route: list[int] = []

    async def route(self, origin, destination):
        self.open_during_route.append(self.sessions.open)
        return await super().route(origin, destination)


class FakeLocator(PositionLookup):
    def __init__(self, positions: dict[int, Coordinates]):
        self.positions = positions
        self.calls = 0

    async def locate(self, vehicle_ids):
        self.calls += 1
        return {
            vid: Position(vid, self.positions[vid]) if vid in self.positions else None
            for vid in vehicle_ids
        }


# ── Seeding helpers ───────────────────────────────────────────────────


async def add_ambulance(
    factory: SessionFactory,
    number: str,
    status: VehicleStatus = VehicleStatus.AVAILABLE,
    at: Optional[Coordinates] = None,
    recorded_at: Optional[datetime] = None,
) -> int:
    async with factory() as session:
        ambulance = AmbulanceModel(vehicle_number=number, status=status)
        session.add(ambulance)
        await session.flush()
        if at is not None:
            await LocationRepository(session).record(
                ambulance.id, at.latitude, at.longitude, recorded_at
            )
        await session.commit()
        return ambulance.id


async def add_booking(
    factory: SessionFactory, pickup: Coordinates = PICKUP, **extra
) -> int:
    async with factory() as session:
        booking = await BookingRepository(session).create_booking(
            patient_name=extra.pop("patient_name", "Test Patient"),
            patient_contact=extra.pop("patient_contact", "+91-90000-00000"),
            emergency_type=extra.pop("emergency_type", "cardiac"),
            pickup_lat=pickup.latitude,
            pickup_lng=pickup.longitude,
            **extra,
        )
        await session.commit()
        return booking.id


async def fetch_ambulance(factory: SessionFactory, ambulance_id: int) -> AmbulanceModel:
    async with factory() as session:
        return await session.get(AmbulanceModel, ambulance_id)


async def fetch_booking(factory: SessionFactory, booking_id: int) -> BookingModel:
    async with factory() as session:
        return await session.get(BookingModel, booking_id)
