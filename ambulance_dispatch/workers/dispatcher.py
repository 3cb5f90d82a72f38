"""
Dispatch Worker
===============

``Dispatcher.dispatch`` runs one dispatch attempt for one booking:

1. Load the booking; skip it unless it is still PENDING.
2. Read the ``available`` ambulances and run the selector
   (locate -> route concurrently -> minimum ETA).
3. Hand the winner to the committer (compare-and-swap).
4. On a vehicle conflict, exclude that ambulance and select again over the
   remaining pool, up to ``dispatch_max_attempts`` commits.
5. Record any failure on the booking so it stays visibly retriable.
6. On success, notify assignment listeners (post-commit hook).

Retry sweeper
-------------
Runs every ``RETRY_INTERVAL_SECONDS`` (default 30 s) and re-dispatches
PENDING bookings whose last attempt is older than the interval.  A
**Redis distributed lock** keeps it to one sweeper across API processes.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from ambulance_dispatch.config import settings
from ambulance_dispatch.domain.entities import Coordinates, Vehicle
from ambulance_dispatch.domain.enums import BookingStatus
from ambulance_dispatch.domain.outcomes import (
    AssignmentConflict,
    Committed,
    DispatchOutcome,
    SelectionFailure,
    Skipped,
)
from ambulance_dispatch.domain.ports import RoutingClient
from ambulance_dispatch.domain.selector import DispatchSelector
from ambulance_dispatch.infrastructure.committer import AssignmentCommitter
from ambulance_dispatch.infrastructure.database import SessionFactory
from ambulance_dispatch.infrastructure.fleet import ScopedFleetLocator
from ambulance_dispatch.infrastructure.locks import DistributedLock, LockNotAcquired
from ambulance_dispatch.infrastructure.redis_client import get_redis
from ambulance_dispatch.infrastructure.repositories import (
    AmbulanceRepository,
    BookingRepository,
)

logger = logging.getLogger(__name__)

AssignmentListener = Callable[[Committed], Awaitable[None]]


async def log_assignment(committed: Committed) -> None:
    logger.info(
        "Assignment committed: booking=%d ambulance=%d eta=%s",
        committed.booking_id,
        committed.vehicle_id,
        committed.estimated_arrival.isoformat(),
    )


class Dispatcher:
    def __init__(
        self,
        session_factory: SessionFactory,
        router: RoutingClient,
        *,
        deadline_seconds: Optional[float] = settings.dispatch_deadline_seconds,
        max_attempts: int = settings.dispatch_max_attempts,
        listeners: Iterable[AssignmentListener] = (log_assignment,),
    ):
        self.session_factory = session_factory
        self.router = router
        self.committer = AssignmentCommitter(session_factory)
        self.deadline_seconds = deadline_seconds
        self.max_attempts = max(1, max_attempts)
        self.listeners = list(listeners)

    async def dispatch(self, booking_id: int) -> DispatchOutcome:
        async with self.session_factory() as session:
            booking = await BookingRepository(session).get_by_id(booking_id)
            if booking is None:
                return Skipped(booking_id, detail="booking not found", found=False)
            if booking.status != BookingStatus.PENDING:
                return Skipped(
                    booking_id, detail=f"booking is {booking.status.value}"
                )
            pickup = Coordinates(booking.pickup_lat, booking.pickup_lng)

        excluded: set[int] = set()
        outcome: DispatchOutcome = Skipped(booking_id, detail="no attempt made")
        for attempt in range(1, self.max_attempts + 1):
            selection = await self._select(pickup, excluded)
            if isinstance(selection, SelectionFailure):
                logger.info(
                    "Booking %d: dispatch attempt %d failed (%s)",
                    booking_id, attempt, selection.reason,
                )
                outcome = selection
                break

            outcome = await self.committer.commit(
                booking_id, selection.vehicle.id, selection.estimate
            )
            if isinstance(outcome, Committed):
                await self._notify(outcome)
                return outcome
            if isinstance(outcome, AssignmentConflict) and outcome.stale == "vehicle":
                logger.info(
                    "Booking %d: lost ambulance %d to another dispatch, re-selecting",
                    booking_id, selection.vehicle.id,
                )
                excluded.add(selection.vehicle.id)
                continue
            # Booking no longer pending, or the store failed
            break

        if isinstance(outcome, AssignmentConflict) and outcome.stale == "booking":
            return outcome
        try:
            await self.committer.record_failure(booking_id, outcome.reason)
        except SQLAlchemyError:
            logger.exception(
                "Booking %d: could not record dispatch failure (%s)",
                booking_id, outcome.reason,
            )
        return outcome

    async def _select(self, pickup: Coordinates, excluded: set[int]):
        async with self.session_factory() as session:
            available = await AmbulanceRepository(session).get_available()
            candidates = [
                Vehicle(
                    id=a.id,
                    status=a.status,
                    vehicle_number=a.vehicle_number,
                    driver_id=a.driver_id,
                )
                for a in available
                if a.id not in excluded
            ]
        selector = DispatchSelector(
            ScopedFleetLocator(self.session_factory),
            self.router,
            self.deadline_seconds,
        )
        return await selector.select_vehicle(pickup, candidates)

    async def _notify(self, committed: Committed) -> None:
        for listener in self.listeners:
            try:
                await listener(committed)
            except Exception:
                logger.exception(
                    "Assignment listener %r failed for booking %d",
                    listener, committed.booking_id,
                )


# ── Retry sweeper ─────────────────────────────────────────────────────

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


async def start_retry_loop(dispatcher: Dispatcher) -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop(dispatcher))
    logger.info(
        "Dispatch retry worker started (interval=%ds)", settings.retry_interval_seconds
    )


async def stop_retry_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Dispatch retry worker stopped")


async def _loop(dispatcher: Dispatcher) -> None:
    """Periodic loop: run a retry cycle then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_retry_cycle(dispatcher)
        except Exception:
            logger.exception("Unhandled error in dispatch retry cycle")
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.retry_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next cycle


async def run_retry_cycle(
    dispatcher: Dispatcher, now: datetime | None = None
) -> int:
    """Re-dispatch stale PENDING bookings.  Returns the number assigned."""
    redis = await get_redis()
    lock = DistributedLock(redis, "dispatch_retry", ttl_seconds=60)

    assigned = 0
    try:
        async with lock:
            cutoff = (now or datetime.now(timezone.utc)) - timedelta(
                seconds=settings.retry_interval_seconds
            )
            async with dispatcher.session_factory() as session:
                stale = await BookingRepository(session).get_retriable(
                    cutoff, limit=settings.retry_batch_size
                )
                booking_ids = [b.id for b in stale]

            for booking_id in booking_ids:
                outcome = await dispatcher.dispatch(booking_id)
                if isinstance(outcome, Committed):
                    assigned += 1
                await lock.refresh()
    except LockNotAcquired:
        logger.debug("Lock held by another worker – skipping cycle")
        return 0

    if booking_ids:
        logger.info(
            "Retry cycle: %d/%d pending bookings assigned",
            assigned, len(booking_ids),
        )
    return assigned
