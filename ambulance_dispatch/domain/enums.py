"""Domain enumerations and state-transition rules."""

import enum


class VehicleStatus(str, enum.Enum):
    AVAILABLE = "available"
    EN_ROUTE = "en_route"
    ON_SCENE = "on_scene"
    RETURNING = "returning"
    OFFLINE = "offline"


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    EN_ROUTE = "en_route"
    ARRIVED = "arrived"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# State machine: maps current status -> set of valid next statuses.
# ASSIGNED -> PENDING is the requeue path after a conflict or timeout.
BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {BookingStatus.ASSIGNED, BookingStatus.CANCELLED},
    BookingStatus.ASSIGNED: {BookingStatus.EN_ROUTE, BookingStatus.PENDING},
    BookingStatus.EN_ROUTE: {BookingStatus.ARRIVED},
    BookingStatus.ARRIVED: {BookingStatus.COMPLETED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Persist enum *values* (lower-case) rather than member names."""
    return [member.value for member in enum_cls]
