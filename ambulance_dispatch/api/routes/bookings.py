"""
Booking endpoints
=================

POST  /api/v1/bookings                     -- create a booking (202; dispatch runs async)
GET   /api/v1/bookings/{booking_id}        -- status, assigned ambulance, ETA
PATCH /api/v1/bookings/{booking_id}/cancel -- cancel a pending booking
POST  /api/v1/bookings/{booking_id}/dispatch -- operator-triggered dispatch retry
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_dispatch.api.dependencies import (
    get_committer,
    get_db,
    get_dispatcher,
    get_intake,
)
from ambulance_dispatch.api.middleware import limiter
from ambulance_dispatch.api.schemas import (
    BookingCreateRequest,
    BookingResponse,
    DispatchResponse,
    ErrorResponse,
)
from ambulance_dispatch.domain.entities import (
    Booking,
    Coordinates,
    InvalidStateTransition,
)
from ambulance_dispatch.domain.enums import BookingStatus
from ambulance_dispatch.domain.outcomes import Committed, Skipped
from ambulance_dispatch.infrastructure.committer import AssignmentCommitter
from ambulance_dispatch.infrastructure.repositories import BookingRepository
from ambulance_dispatch.workers.dispatcher import Dispatcher
from ambulance_dispatch.workers.intake import BookingIntake

router = APIRouter(prefix="/bookings", tags=["bookings"])

NOT_FOUND = {404: {"model": ErrorResponse}}
CONFLICT = {404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}


@router.post(
    "",
    status_code=202,
    response_model=BookingResponse,
    summary="Create an emergency booking",
    responses={202: {"description": "Booking accepted; ambulance assignment is async."}},
)
@limiter.limit("100/minute")
async def create_booking(
    request: Request,
    body: BookingCreateRequest,
    intake: BookingIntake = Depends(get_intake),
):
    created = await intake.create_and_dispatch(body)
    return created.booking


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get booking status and assigned ambulance",
    responses=NOT_FOUND,
)
@limiter.limit("100/minute")
async def get_booking(
    request: Request,
    booking_id: int,
    db: AsyncSession = Depends(get_db),
):
    booking = await BookingRepository(db).get_by_id(booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


@router.patch(
    "/{booking_id}/cancel",
    response_model=BookingResponse,
    summary="Cancel a booking",
    description="Transitions a PENDING booking to CANCELLED.",
    responses=CONFLICT,
)
@limiter.limit("100/minute")
async def cancel_booking(
    request: Request,
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    committer: AssignmentCommitter = Depends(get_committer),
):
    repo = BookingRepository(db)
    booking = await repo.get_by_id(booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")

    try:
        Booking(
            id=booking.id,
            pickup=Coordinates(booking.pickup_lat, booking.pickup_lng),
            status=BookingStatus(booking.status),
            ambulance_id=booking.ambulance_id,
        ).transition_to(BookingStatus.CANCELLED)
    except InvalidStateTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    if not await committer.cancel(booking_id):
        raise HTTPException(
            status_code=409, detail="Booking changed state; it is no longer pending"
        )
    await db.refresh(booking)
    return booking


@router.post(
    "/{booking_id}/dispatch",
    response_model=DispatchResponse,
    summary="Re-attempt ambulance assignment for a pending booking",
    responses=CONFLICT,
)
@limiter.limit("100/minute")
async def dispatch_booking(
    request: Request,
    booking_id: int,
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    outcome = await dispatcher.dispatch(booking_id)
    if isinstance(outcome, Skipped):
        if not outcome.found:
            raise HTTPException(status_code=404, detail="Booking not found")
        raise HTTPException(
            status_code=409, detail=f"Cannot dispatch: {outcome.detail}"
        )
    if isinstance(outcome, Committed):
        return DispatchResponse(
            booking_id=booking_id,
            ok=True,
            outcome="committed",
            ambulance_id=outcome.vehicle_id,
            eta_seconds=outcome.estimate.duration_seconds,
            distance_meters=outcome.estimate.distance_meters,
        )
    return DispatchResponse(booking_id=booking_id, ok=False, outcome=outcome.reason)
