"""
Ambulance endpoints
===================

POST /api/v1/ambulances/{ambulance_id}/positions -- append a GPS sample from the driver app
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_dispatch.api.dependencies import get_db
from ambulance_dispatch.api.middleware import limiter
from ambulance_dispatch.api.schemas import PositionCreateRequest, PositionResponse
from ambulance_dispatch.infrastructure.repositories import (
    AmbulanceRepository,
    LocationRepository,
)

router = APIRouter(prefix="/ambulances", tags=["ambulances"])


@router.post(
    "/{ambulance_id}/positions",
    status_code=201,
    response_model=PositionResponse,
    summary="Record an ambulance position sample",
)
@limiter.limit("600/minute")
async def record_position(
    request: Request,
    ambulance_id: int,
    body: PositionCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    if not await AmbulanceRepository(db).get_by_id(ambulance_id):
        raise HTTPException(status_code=404, detail="Ambulance not found")
    return await LocationRepository(db).record(
        ambulance_id, body.latitude, body.longitude, body.recorded_at
    )
