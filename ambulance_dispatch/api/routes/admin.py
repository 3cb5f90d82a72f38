"""
Admin / observability endpoints
===============================

GET  /api/v1/admin/pending-bookings            -- bookings still waiting for an ambulance
GET  /api/v1/admin/fleet                       -- ambulances with latest position
POST /api/v1/admin/bookings/{booking_id}/requeue -- assigned -> pending, release ambulance
GET  /api/v1/admin/health                      -- simple health check
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_dispatch.api.dependencies import get_committer, get_db
from ambulance_dispatch.api.middleware import limiter
from ambulance_dispatch.api.schemas import (
    BookingResponse,
    FleetEntryResponse,
    HealthResponse,
)
from ambulance_dispatch.domain.distance import distance_km
from ambulance_dispatch.domain.entities import Coordinates
from ambulance_dispatch.domain.outcomes import AssignmentConflict, Requeued
from ambulance_dispatch.infrastructure.committer import AssignmentCommitter
from ambulance_dispatch.infrastructure.fleet import FleetLocator
from ambulance_dispatch.infrastructure.repositories import (
    AmbulanceRepository,
    BookingRepository,
)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/pending-bookings",
    response_model=list[BookingResponse],
    summary="List bookings still waiting for an ambulance",
)
@limiter.limit("100/minute")
async def get_pending_bookings(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    return await BookingRepository(db).get_pending()


@router.get(
    "/fleet",
    response_model=list[FleetEntryResponse],
    summary="List ambulances with their latest known position",
    description=(
        "With ``lat``/``lng`` given, located ambulances are annotated with "
        "their straight-line distance and sorted nearest first.  This is a "
        "map heuristic only; dispatch ranks by routed travel time."
    ),
)
@limiter.limit("100/minute")
async def get_fleet(
    request: Request,
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    db: AsyncSession = Depends(get_db),
):
    ambulances = await AmbulanceRepository(db).get_all()
    positions = await FleetLocator(db).locate(a.id for a in ambulances)
    reference = Coordinates(lat, lng) if lat is not None and lng is not None else None

    entries: list[FleetEntryResponse] = []
    for a in ambulances:
        position = positions.get(a.id)
        entries.append(
            FleetEntryResponse(
                id=a.id,
                vehicle_number=a.vehicle_number,
                status=a.status.value if hasattr(a.status, "value") else a.status,
                latitude=position.coordinates.latitude if position else None,
                longitude=position.coordinates.longitude if position else None,
                last_seen=position.recorded_at if position else None,
                straight_line_km=(
                    round(distance_km(position.coordinates, reference), 3)
                    if position and reference
                    else None
                ),
            )
        )
    if reference:
        entries.sort(
            key=lambda e: (e.straight_line_km is None, e.straight_line_km or 0.0, e.id)
        )
    return entries


@router.post(
    "/bookings/{booking_id}/requeue",
    response_model=BookingResponse,
    summary="Return an assigned booking to the pending queue",
    description=(
        "Recovery transition ASSIGNED -> PENDING (e.g. the crew never "
        "acknowledged).  The ambulance is released back to AVAILABLE if it "
        "is still EN_ROUTE."
    ),
)
@limiter.limit("100/minute")
async def requeue_booking(
    request: Request,
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    committer: AssignmentCommitter = Depends(get_committer),
):
    repo = BookingRepository(db)
    if not await repo.get_by_id(booking_id):
        raise HTTPException(status_code=404, detail="Booking not found")

    result = await committer.requeue(booking_id)
    if isinstance(result, AssignmentConflict):
        raise HTTPException(status_code=409, detail="Booking is not assigned")
    if not isinstance(result, Requeued):
        raise HTTPException(status_code=503, detail=result.detail)

    booking = await repo.get_by_id(booking_id)
    await db.refresh(booking)
    return booking


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(db: AsyncSession = Depends(get_db)):
    return HealthResponse(pending_bookings=await BookingRepository(db).count_pending())
