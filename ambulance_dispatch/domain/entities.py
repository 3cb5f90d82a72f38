"""
Domain entities with business logic.

Patterns used
-------------
- **Value Objects**: ``Coordinates`` validates its range on construction,
  ``Position`` and ``RouteEstimate`` are immutable samples.
- **State Pattern** on ``Booking``: enforces valid lifecycle transitions
  (PENDING -> ASSIGNED -> EN_ROUTE -> ARRIVED -> COMPLETED | CANCELLED).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .enums import BOOKING_TRANSITIONS, BookingStatus, VehicleStatus


class InvalidStateTransition(Exception):
    """Raised when a booking status change violates the state machine."""


class InvalidCoordinates(ValueError):
    """Raised for a latitude / longitude outside the valid range."""


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise InvalidCoordinates(f"Latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise InvalidCoordinates(f"Longitude out of range: {self.longitude}")


@dataclass(frozen=True)
class Position:
    """Most recent known location sample of one ambulance."""

    vehicle_id: int
    coordinates: Coordinates
    recorded_at: Optional[datetime] = None


@dataclass(frozen=True)
class RouteEstimate:
    distance_meters: float
    duration_seconds: float


# ── Entities ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Vehicle:
    id: int
    status: VehicleStatus = VehicleStatus.AVAILABLE
    vehicle_number: str = ""
    driver_id: Optional[str] = None

    @property
    def is_available(self) -> bool:
        return self.status == VehicleStatus.AVAILABLE


@dataclass
class Booking:
    id: Optional[int] = None
    pickup: Coordinates = Coordinates(0.0, 0.0)
    status: BookingStatus = BookingStatus.PENDING
    ambulance_id: Optional[int] = None

    def transition_to(self, new_status: BookingStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        allowed = BOOKING_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition from {self.status.value} to {new_status.value}"
            )
        self.status = new_status
