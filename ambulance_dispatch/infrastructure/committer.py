"""
Assignment Committer
====================

The only code path that writes booking / ambulance status during dispatch.

Concurrency safety
------------------
Both rows are changed inside one transaction with **conditional UPDATEs**
(compare-and-swap):

* ``ambulances``: ``available -> en_route`` only ``WHERE status = 'available'``
* ``bookings``:   ``pending -> assigned`` only ``WHERE status = 'pending'``

A precondition that matches zero rows means another dispatch (or a
cancellation) got there first: the transaction is rolled back and an
``AssignmentConflict`` is returned.  Storage errors roll back as well and
come back as ``PersistenceError``.  Either way nothing is half-applied.

The writes are plain UPDATEs through the regular data-store path, so
change-notification consumers (fleet map, tracking page) see them.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from .database import SessionFactory
from .models import AmbulanceModel, BookingModel
from ambulance_dispatch.domain.entities import RouteEstimate
from ambulance_dispatch.domain.enums import BookingStatus, VehicleStatus
from ambulance_dispatch.domain.outcomes import (
    AssignmentConflict,
    CommitResult,
    Committed,
    PersistenceError,
    RequeueResult,
    Requeued,
)

logger = logging.getLogger(__name__)


class AssignmentCommitter:
    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    async def commit(
        self, booking_id: int, vehicle_id: int, estimate: RouteEstimate
    ) -> CommitResult:
        """Atomically reserve *vehicle_id* for *booking_id*."""
        now = datetime.now(timezone.utc)
        eta = now + timedelta(seconds=estimate.duration_seconds)

        async with self.session_factory() as session:
            try:
                claimed = await session.execute(
                    update(AmbulanceModel)
                    .where(AmbulanceModel.id == vehicle_id)
                    .where(AmbulanceModel.status == VehicleStatus.AVAILABLE)
                    .values(status=VehicleStatus.EN_ROUTE)
                    .execution_options(synchronize_session=False)
                )
                if claimed.rowcount != 1:
                    await session.rollback()
                    logger.info(
                        "Ambulance %d no longer available for booking %d",
                        vehicle_id, booking_id,
                    )
                    return AssignmentConflict(booking_id, vehicle_id, stale="vehicle")

                assigned = await session.execute(
                    update(BookingModel)
                    .where(BookingModel.id == booking_id)
                    .where(BookingModel.status == BookingStatus.PENDING)
                    .values(
                        status=BookingStatus.ASSIGNED,
                        ambulance_id=vehicle_id,
                        estimated_arrival=eta,
                        route_distance_m=estimate.distance_meters,
                        route_duration_s=estimate.duration_seconds,
                        dispatch_attempts=BookingModel.dispatch_attempts + 1,
                        last_dispatch_at=now,
                        last_dispatch_error=None,
                    )
                    .execution_options(synchronize_session=False)
                )
                if assigned.rowcount != 1:
                    await session.rollback()
                    logger.info(
                        "Booking %d no longer pending; released ambulance %d",
                        booking_id, vehicle_id,
                    )
                    return AssignmentConflict(booking_id, vehicle_id, stale="booking")

                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.exception(
                    "Commit failed for booking %d / ambulance %d",
                    booking_id, vehicle_id,
                )
                return PersistenceError(booking_id, vehicle_id, detail=str(exc))

        logger.info(
            "Booking %d assigned ambulance %d (ETA %d min)",
            booking_id, vehicle_id, round(estimate.duration_seconds / 60),
        )
        return Committed(booking_id, vehicle_id, estimate, estimated_arrival=eta)

    async def requeue(self, booking_id: int) -> RequeueResult:
        """
        ``assigned -> pending`` recovery, releasing the ambulance.

        The booking update is compare-and-swapped on ``assigned``.  The
        ambulance goes back to ``available`` only if it is still
        ``en_route``; an ambulance that moved on (e.g. went offline) is
        left as it is.
        """
        async with self.session_factory() as session:
            try:
                booking = await session.get(BookingModel, booking_id)
                if booking is None or booking.status != BookingStatus.ASSIGNED:
                    await session.rollback()
                    return AssignmentConflict(booking_id, None, stale="booking")
                vehicle_id = booking.ambulance_id

                released = await session.execute(
                    update(BookingModel)
                    .where(BookingModel.id == booking_id)
                    .where(BookingModel.status == BookingStatus.ASSIGNED)
                    .where(BookingModel.ambulance_id == vehicle_id)
                    .values(
                        status=BookingStatus.PENDING,
                        ambulance_id=None,
                        estimated_arrival=None,
                        route_distance_m=None,
                        route_duration_s=None,
                    )
                    .execution_options(synchronize_session=False)
                )
                if released.rowcount != 1:
                    await session.rollback()
                    return AssignmentConflict(booking_id, vehicle_id, stale="booking")

                if vehicle_id is not None:
                    await session.execute(
                        update(AmbulanceModel)
                        .where(AmbulanceModel.id == vehicle_id)
                        .where(AmbulanceModel.status == VehicleStatus.EN_ROUTE)
                        .values(status=VehicleStatus.AVAILABLE)
                        .execution_options(synchronize_session=False)
                    )
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.exception("Requeue failed for booking %d", booking_id)
                return PersistenceError(booking_id, None, detail=str(exc))

        logger.info("Booking %d requeued, ambulance %s released", booking_id, vehicle_id)
        return Requeued(booking_id, vehicle_id)

    async def cancel(self, booking_id: int) -> bool:
        """Manual ``pending -> cancelled``; ``False`` if it was no longer pending."""
        async with self.session_factory() as session:
            result = await session.execute(
                update(BookingModel)
                .where(BookingModel.id == booking_id)
                .where(BookingModel.status == BookingStatus.PENDING)
                .values(status=BookingStatus.CANCELLED)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        return result.rowcount == 1

    async def record_failure(self, booking_id: int, reason: str) -> bool:
        """
        Stamp a failed dispatch attempt on a still-pending booking.

        Returns ``False`` if the booking is no longer pending.  Storage
        errors propagate to the caller.
        """
        async with self.session_factory() as session:
            result = await session.execute(
                update(BookingModel)
                .where(BookingModel.id == booking_id)
                .where(BookingModel.status == BookingStatus.PENDING)
                .values(
                    dispatch_attempts=BookingModel.dispatch_attempts + 1,
                    last_dispatch_error=reason,
                    last_dispatch_at=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        return result.rowcount == 1
