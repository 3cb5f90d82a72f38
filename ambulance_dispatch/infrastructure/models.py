"""
SQLAlchemy ORM models.

Tables
------
* ``ambulances``         -- the fleet; ``status`` is the only field dispatch mutates
* ``location_tracking``  -- append-only position samples per ambulance
* ``bookings``           -- emergency requests and their dispatch state

Indexes
-------
* **B-Tree** on ``ambulances.status`` and ``bookings.status`` for the
  available-fleet and pending-queue queries.
* **B-Tree** on ``(ambulance_id, recorded_at)`` which backs the ranked
  latest-sample-per-ambulance query.
* The PostgreSQL migration additionally adds computed PostGIS points with
  **GIST** indexes for map-side spatial queries; the ORM does not map them.
"""

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)

from .database import Base
from ambulance_dispatch.domain.enums import BookingStatus, VehicleStatus, enum_values


class AmbulanceModel(Base):
    __tablename__ = "ambulances"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_number = Column(String(32), unique=True, nullable=False)
    driver_id = Column(String(64), nullable=True)
    status = Column(
        Enum(VehicleStatus, name="vehiclestatus", values_callable=enum_values),
        default=VehicleStatus.AVAILABLE,
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("idx_ambulances_status", "status"),)


class LocationSampleModel(Base):
    __tablename__ = "location_tracking"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ambulance_id = Column(Integer, ForeignKey("ambulances.id"), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    recorded_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_location_ambulance_time", "ambulance_id", "recorded_at"),
    )


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)

    patient_name = Column(String(120), nullable=False)
    patient_contact = Column(String(32), nullable=False)
    patient_age = Column(Integer, nullable=True)
    emergency_type = Column(String(40), nullable=False)
    medical_notes = Column(Text, nullable=True)

    pickup_location = Column(String(255), nullable=True)
    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    dropoff_location = Column(String(255), nullable=True)
    dropoff_lat = Column(Float, nullable=True)
    dropoff_lng = Column(Float, nullable=True)

    status = Column(
        Enum(BookingStatus, name="bookingstatus", values_callable=enum_values),
        default=BookingStatus.PENDING,
        nullable=False,
    )
    ambulance_id = Column(Integer, ForeignKey("ambulances.id"), nullable=True)
    estimated_arrival = Column(DateTime(timezone=True), nullable=True)
    route_distance_m = Column(Float, nullable=True)
    route_duration_s = Column(Float, nullable=True)

    # Dispatch bookkeeping: makes a failed assignment observable & retriable
    dispatch_attempts = Column(Integer, default=0, nullable=False)
    last_dispatch_error = Column(String(40), nullable=True)
    last_dispatch_at = Column(DateTime(timezone=True), nullable=True)

    idempotency_key = Column(String(64), unique=True, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_bookings_status", "status"),
        Index("idx_bookings_ambulance", "ambulance_id"),
        Index("idx_bookings_idempotency", "idempotency_key"),
    )
