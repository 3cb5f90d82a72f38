"""
Nearest-ETA Dispatch Selection
==============================

1. **Filter**   -- keep only ``available`` ambulances.
2. **Locate**   -- resolve each candidate's latest position; drop the ones
   without a fix.
3. **Route**    -- request ``route(position, pickup)`` for every located
   candidate concurrently and wait for all of them to settle.
4. **Select**   -- discard unavailable routes, pick the minimum travel
   duration; ties go to the lowest ambulance id.

Each routing call is timeout-bounded by the routing client.  The whole
fan-out is additionally bounded by an optional deadline; when it expires
the outstanding calls are cancelled and the attempt reports
``NoRouteFound(timed_out=True)``.

Complexity
----------
Let N = candidates.  One locator query, N concurrent routing calls,
O(N) selection.  Wall time ~ slowest routing call (bounded by timeout).

**Note:** this is a greedy, one-booking-at-a-time assignment.  Two
simultaneous dispatches may pick the same ambulance; the compare-and-swap
commit decides the winner and the loser re-selects.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional

from .distance import distance_km
from .entities import Coordinates, Position, RouteEstimate, Vehicle
from .outcomes import (
    NoCandidates,
    NoLocatedCandidates,
    NoRouteFound,
    RouteUnavailable,
    Selected,
    SelectionResult,
)
from .ports import PositionLookup, RoutingClient

logger = logging.getLogger(__name__)


class DispatchSelector:
    def __init__(
        self,
        locator: PositionLookup,
        router: RoutingClient,
        deadline_seconds: Optional[float] = None,
    ):
        self.locator = locator
        self.router = router
        self.deadline_seconds = deadline_seconds

    async def select_vehicle(
        self, pickup: Coordinates, candidates: Iterable[Vehicle]
    ) -> SelectionResult:
        available = sorted(
            (v for v in candidates if v.is_available), key=lambda v: v.id
        )
        if not available:
            return NoCandidates()

        positions = await self.locator.locate(v.id for v in available)
        located = [
            (v, positions[v.id]) for v in available if positions.get(v.id)
        ]
        if not located:
            logger.info("None of %d available ambulances has a position", len(available))
            return NoLocatedCandidates(candidates=len(available))

        estimates = await self._route_all(pickup, located)
        if estimates is None:
            logger.warning(
                "Routing fan-out exceeded %.1fs deadline for %d candidates",
                self.deadline_seconds, len(located),
            )
            return NoRouteFound(candidates=len(located), timed_out=True)

        routed = [
            (vehicle, estimate)
            for (vehicle, _), estimate in zip(located, estimates)
            if isinstance(estimate, RouteEstimate)
        ]
        if not routed:
            return NoRouteFound(candidates=len(located))

        vehicle, estimate = min(
            routed, key=lambda item: (item[1].duration_seconds, item[0].id)
        )
        position = positions[vehicle.id]
        logger.info(
            "Selected ambulance %d: ETA %.0fs, %.0fm by road (%.2f km straight-line), "
            "%d/%d candidates routed",
            vehicle.id,
            estimate.duration_seconds,
            estimate.distance_meters,
            distance_km(position.coordinates, pickup),
            len(routed),
            len(located),
        )
        return Selected(vehicle=vehicle, estimate=estimate)

    async def _route_all(
        self, pickup: Coordinates, located: list[tuple[Vehicle, Position]]
    ) -> Optional[list[RouteEstimate | RouteUnavailable]]:
        """
        Route every candidate concurrently.

        Returns one result per candidate, in input order, or ``None`` if
        the deadline expired before all calls settled.
        """
        tasks = [
            asyncio.create_task(self.router.route(position.coordinates, pickup))
            for _, position in located
        ]
        try:
            _, pending = await asyncio.wait(tasks, timeout=self.deadline_seconds)
        except BaseException:
            # Cancelled from outside (caller timeout, worker shutdown)
            await _abandon(tasks)
            raise
        if pending:
            await _abandon(pending)
            return None

        results: list[RouteEstimate | RouteUnavailable] = []
        for (vehicle, _), task in zip(located, tasks):
            exc = task.exception()
            if exc is not None:
                logger.warning(
                    "Routing for ambulance %d raised %r; treating as unavailable",
                    vehicle.id, exc,
                )
                results.append(RouteUnavailable(reason=repr(exc)))
            else:
                results.append(task.result())
        return results


async def _abandon(tasks) -> None:
    """Cancel unfinished routing calls and wait until they have unwound."""
    for task in tasks:
        if not task.done():
            task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
