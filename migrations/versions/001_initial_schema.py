"""Initial schema: ambulances, location tracking, bookings (+ PostGIS points).

Revision ID: 001
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa
from geoalchemy2 import Geometry


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

VEHICLE_STATUSES = ("available", "en_route", "on_scene", "returning", "offline")
BOOKING_STATUSES = (
    "pending",
    "assigned",
    "en_route",
    "arrived",
    "completed",
    "cancelled",
)


def _point(lat_col: str, lng_col: str) -> sa.Computed:
    """Generated PostGIS point kept in sync with the plain float columns."""
    return sa.Computed(
        f"ST_SetSRID(ST_MakePoint({lng_col}, {lat_col}), 4326)", persisted=True
    )


def upgrade() -> None:
    # Enable PostGIS extension
    op.execute("CREATE EXTENSION IF NOT EXISTS postgis")

    # ── ambulances ────────────────────────────────────────────────────
    op.create_table(
        "ambulances",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("vehicle_number", sa.String(32), unique=True, nullable=False),
        sa.Column("driver_id", sa.String(64), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*VEHICLE_STATUSES, name="vehiclestatus"),
            default="available",
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_ambulances_status", "ambulances", ["status"])

    # ── location_tracking ─────────────────────────────────────────────
    op.create_table(
        "location_tracking",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "ambulance_id",
            sa.Integer,
            sa.ForeignKey("ambulances.id"),
            nullable=False,
        ),
        sa.Column("latitude", sa.Float, nullable=False),
        sa.Column("longitude", sa.Float, nullable=False),
        sa.Column(
            "point",
            Geometry("POINT", srid=4326, spatial_index=False),
            _point("latitude", "longitude"),
        ),
        sa.Column(
            "recorded_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(
        "idx_location_ambulance_time",
        "location_tracking",
        ["ambulance_id", "recorded_at"],
    )
    op.create_index(
        "idx_location_point",
        "location_tracking",
        ["point"],
        postgresql_using="gist",
    )

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("patient_name", sa.String(120), nullable=False),
        sa.Column("patient_contact", sa.String(32), nullable=False),
        sa.Column("patient_age", sa.Integer, nullable=True),
        sa.Column("emergency_type", sa.String(40), nullable=False),
        sa.Column("medical_notes", sa.Text, nullable=True),
        sa.Column("pickup_location", sa.String(255), nullable=True),
        sa.Column("pickup_lat", sa.Float, nullable=False),
        sa.Column("pickup_lng", sa.Float, nullable=False),
        sa.Column(
            "pickup_point",
            Geometry("POINT", srid=4326, spatial_index=False),
            _point("pickup_lat", "pickup_lng"),
        ),
        sa.Column("dropoff_location", sa.String(255), nullable=True),
        sa.Column("dropoff_lat", sa.Float, nullable=True),
        sa.Column("dropoff_lng", sa.Float, nullable=True),
        sa.Column(
            "status",
            sa.Enum(*BOOKING_STATUSES, name="bookingstatus"),
            default="pending",
            nullable=False,
        ),
        sa.Column(
            "ambulance_id",
            sa.Integer,
            sa.ForeignKey("ambulances.id"),
            nullable=True,
        ),
        sa.Column("estimated_arrival", sa.DateTime(timezone=True), nullable=True),
        sa.Column("route_distance_m", sa.Float, nullable=True),
        sa.Column("route_duration_s", sa.Float, nullable=True),
        sa.Column("dispatch_attempts", sa.Integer, server_default="0", nullable=False),
        sa.Column("last_dispatch_error", sa.String(40), nullable=True),
        sa.Column("last_dispatch_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("idempotency_key", sa.String(64), unique=True, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_bookings_pickup", "bookings", ["pickup_point"], postgresql_using="gist"
    )
    op.create_index("idx_bookings_status", "bookings", ["status"])
    op.create_index("idx_bookings_ambulance", "bookings", ["ambulance_id"])
    op.create_index("idx_bookings_idempotency", "bookings", ["idempotency_key"])


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("location_tracking")
    op.drop_table("ambulances")
    op.execute("DROP TYPE IF EXISTS bookingstatus")
    op.execute("DROP TYPE IF EXISTS vehiclestatus")
