"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, computed_field, field_validator


# ── Requests ──────────────────────────────────────────────────────────


class BookingCreateRequest(BaseModel):
    patient_name: str = Field(..., min_length=1, max_length=120)
    patient_contact: str = Field(..., min_length=3, max_length=32)
    patient_age: Optional[int] = Field(None, ge=0, le=130)
    emergency_type: str = Field(..., min_length=1, max_length=40)
    medical_notes: Optional[str] = None
    pickup_location: Optional[str] = Field(None, max_length=255)
    pickup_lat: float = Field(..., ge=-90, le=90)
    pickup_lng: float = Field(..., ge=-180, le=180)
    dropoff_location: Optional[str] = Field(None, max_length=255)
    dropoff_lat: Optional[float] = Field(None, ge=-90, le=90)
    dropoff_lng: Optional[float] = Field(None, ge=-180, le=180)
    idempotency_key: Optional[str] = Field(
        None,
        max_length=64,
        description="Client-generated UUID to prevent duplicate bookings on retries.",
    )


class PositionCreateRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    recorded_at: Optional[datetime] = None


# ── Responses ─────────────────────────────────────────────────────────


DispatchState = Literal["searching", "retry_pending", "assigned", "closed"]


class BookingResponse(BaseModel):
    id: int
    patient_name: str
    emergency_type: str
    pickup_location: Optional[str] = None
    pickup_lat: float
    pickup_lng: float
    status: str
    ambulance_id: Optional[int] = None
    estimated_arrival: Optional[datetime] = None
    route_distance_m: Optional[float] = None
    route_duration_s: Optional[float] = None
    dispatch_attempts: int = 0
    last_dispatch_error: Optional[str] = None
    last_dispatch_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_validator("status", mode="before")
    @classmethod
    def _status_value(cls, value):
        return getattr(value, "value", value)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def dispatch_state(self) -> DispatchState:
        """Lets the client show "still finding you an ambulance"."""
        if self.status == "pending":
            return "retry_pending" if self.last_dispatch_error else "searching"
        if self.status == "assigned":
            return "assigned"
        return "closed"


class DispatchResponse(BaseModel):
    booking_id: int
    ok: bool
    outcome: str
    ambulance_id: Optional[int] = None
    eta_seconds: Optional[float] = None
    distance_meters: Optional[float] = None


class PositionResponse(BaseModel):
    id: int
    ambulance_id: int
    latitude: float
    longitude: float
    recorded_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class FleetEntryResponse(BaseModel):
    id: int
    vehicle_number: str
    status: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    last_seen: Optional[datetime] = None
    straight_line_km: Optional[float] = None


class HealthResponse(BaseModel):
    status: str = "ok"
    pending_bookings: int = 0


class ErrorResponse(BaseModel):
    detail: str
