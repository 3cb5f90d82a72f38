"""
Fleet locator: latest known position for a set of ambulances.

A missing fix is reported per ambulance (``None``), never as a failure of
the whole lookup.
"""

from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .database import SessionFactory
from .repositories import LocationRepository
from ambulance_dispatch.domain.entities import Coordinates, Position
from ambulance_dispatch.domain.ports import PositionLookup


class FleetLocator(PositionLookup):
    def __init__(self, session: AsyncSession):
        self.locations = LocationRepository(session)

    async def locate(
        self, vehicle_ids: Iterable[int]
    ) -> dict[int, Optional[Position]]:
        ids = sorted(set(vehicle_ids))
        latest = await self.locations.latest_for(ids)
        positions: dict[int, Optional[Position]] = {}
        for vehicle_id in ids:
            sample = latest.get(vehicle_id)
            positions[vehicle_id] = (
                Position(
                    vehicle_id=vehicle_id,
                    coordinates=Coordinates(sample.latitude, sample.longitude),
                    recorded_at=sample.recorded_at,
                )
                if sample is not None
                else None
            )
        return positions


class ScopedFleetLocator(PositionLookup):
    """Opens a short-lived session per lookup so none is held while routing."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    async def locate(
        self, vehicle_ids: Iterable[int]
    ) -> dict[int, Optional[Position]]:
        async with self.session_factory() as session:
            return await FleetLocator(session).locate(vehicle_ids)
