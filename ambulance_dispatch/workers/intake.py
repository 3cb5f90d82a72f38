"""
Booking Intake
==============

Persists a booking as PENDING, commits it, and only then schedules the
dispatch as an independent background task.  The caller gets the booking
back immediately; dispatch success or failure shows up later on the
booking row itself (``status`` / ``last_dispatch_error``).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError

from ambulance_dispatch.api.schemas import BookingCreateRequest
from ambulance_dispatch.infrastructure.database import SessionFactory
from ambulance_dispatch.infrastructure.models import BookingModel
from ambulance_dispatch.infrastructure.repositories import BookingRepository
from ambulance_dispatch.workers.dispatcher import Dispatcher

logger = logging.getLogger(__name__)


@dataclass
class BookingCreated:
    booking: BookingModel
    dispatch_task: Optional[asyncio.Task] = None

    @property
    def is_replay(self) -> bool:
        """True when an idempotency key matched an existing booking."""
        return self.dispatch_task is None


class BookingIntake:
    def __init__(self, session_factory: SessionFactory, dispatcher: Dispatcher):
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self._in_flight: set[asyncio.Task] = set()

    async def create_and_dispatch(self, body: BookingCreateRequest) -> BookingCreated:
        async with self.session_factory() as session:
            repo = BookingRepository(session)

            # ── Idempotency guard ─────────────────────────────────────
            if body.idempotency_key:
                existing = await repo.get_by_idempotency_key(body.idempotency_key)
                if existing:
                    return BookingCreated(existing)

            try:
                booking = await repo.create_booking(**body.model_dump())
                await session.commit()
            except IntegrityError:
                # A concurrent request with the same key inserted first
                await session.rollback()
                if not body.idempotency_key:
                    raise
                existing = await repo.get_by_idempotency_key(body.idempotency_key)
                if existing is None:
                    raise
                logger.info(
                    "Booking %d replayed for racing idempotency key", existing.id
                )
                return BookingCreated(existing)

        logger.info("Booking %d created (%s)", booking.id, booking.emergency_type)
        task = asyncio.create_task(self._dispatch_in_background(booking.id))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return BookingCreated(booking, task)

    async def _dispatch_in_background(self, booking_id: int) -> None:
        try:
            outcome = await self.dispatcher.dispatch(booking_id)
        except Exception:
            # Booking stays PENDING; the retry sweeper picks it up.
            logger.exception("Background dispatch crashed for booking %d", booking_id)
            return
        if not outcome.ok:
            logger.warning(
                "Booking %d still pending after dispatch (%s)",
                booking_id, outcome.reason,
            )

    async def drain(self) -> None:
        """Wait for every in-flight dispatch task (shutdown / tests)."""
        while True:
            pending = [t for t in self._in_flight if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)
