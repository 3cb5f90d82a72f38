"""
Interfaces the dispatch domain depends on  (Strategy Pattern).

Concrete implementations live in ``ambulance_dispatch.infrastructure``;
tests substitute deterministic fakes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Optional, Union

from .entities import Coordinates, Position, RouteEstimate
from .outcomes import RouteUnavailable


class RoutingClient(ABC):
    @abstractmethod
    async def route(
        self, origin: Coordinates, destination: Coordinates
    ) -> Union[RouteEstimate, RouteUnavailable]:
        """
        Road travel estimate from *origin* to *destination*.

        Must not raise for provider failures (non-OK responses, network
        errors, timeouts); those come back as ``RouteUnavailable``.
        """


class PositionLookup(ABC):
    @abstractmethod
    async def locate(
        self, vehicle_ids: Iterable[int]
    ) -> dict[int, Optional[Position]]:
        """Latest position per vehicle, ``None`` where no sample exists."""
