"""
Seed script -- populates the database with a sample fleet for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 10 ambulances around central Mumbai (mix of statuses)
  - a short GPS trail per ambulance (last sample is the current position);
    two ambulances have no fix yet, so dispatch has to skip them
  - 2 sample bookings (one pending, one completed)
"""

import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import text

from ambulance_dispatch.domain.enums import BookingStatus, VehicleStatus
from ambulance_dispatch.infrastructure.database import async_session_factory, engine
from ambulance_dispatch.infrastructure.models import (
    AmbulanceModel,
    BookingModel,
    LocationSampleModel,
)


AMBULANCES = [
    {"vehicle_number": "MH-01-AMB-101", "driver_id": "drv-aarav", "status": VehicleStatus.AVAILABLE, "pos": (19.0896, 72.8656)},
    {"vehicle_number": "MH-01-AMB-102", "driver_id": "drv-priya", "status": VehicleStatus.AVAILABLE, "pos": (19.0600, 72.8500)},
    {"vehicle_number": "MH-01-AMB-103", "driver_id": "drv-rohan", "status": VehicleStatus.AVAILABLE, "pos": (19.1176, 72.9060)},
    {"vehicle_number": "MH-01-AMB-104", "driver_id": "drv-sneha", "status": VehicleStatus.AVAILABLE, "pos": (19.0540, 72.8400)},
    {"vehicle_number": "MH-01-AMB-105", "driver_id": "drv-vikram", "status": VehicleStatus.AVAILABLE, "pos": None},
    {"vehicle_number": "MH-01-AMB-106", "driver_id": "drv-ananya", "status": VehicleStatus.ON_SCENE, "pos": (19.0200, 72.8500)},
    {"vehicle_number": "MH-01-AMB-107", "driver_id": "drv-karan", "status": VehicleStatus.RETURNING, "pos": (19.1000, 72.8800)},
    {"vehicle_number": "MH-01-AMB-108", "driver_id": "drv-meera", "status": VehicleStatus.OFFLINE, "pos": None},
    {"vehicle_number": "MH-01-AMB-109", "driver_id": "drv-arjun", "status": VehicleStatus.AVAILABLE, "pos": (19.0730, 72.8800)},
    {"vehicle_number": "MH-01-AMB-110", "driver_id": None, "status": VehicleStatus.AVAILABLE, "pos": (19.1136, 72.9000)},
]

# Offsets (deg) of the older samples in each trail, oldest first
TRAIL = [(-0.004, -0.003), (-0.002, -0.0015)]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM ambulances"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        now = datetime.now(timezone.utc)

        # ── Ambulances ────────────────────────────────────────────────
        ambulance_models = []
        for a in AMBULANCES:
            m = AmbulanceModel(
                vehicle_number=a["vehicle_number"],
                driver_id=a["driver_id"],
                status=a["status"],
            )
            session.add(m)
            ambulance_models.append(m)
        await session.flush()
        print(f"  Created {len(ambulance_models)} ambulances")

        # ── Location trails ───────────────────────────────────────────
        samples = 0
        for a, m in zip(AMBULANCES, ambulance_models):
            if a["pos"] is None:
                continue
            lat, lng = a["pos"]
            for i, (dlat, dlng) in enumerate(TRAIL):
                session.add(
                    LocationSampleModel(
                        ambulance_id=m.id,
                        latitude=lat + dlat,
                        longitude=lng + dlng,
                        recorded_at=now - timedelta(minutes=2 * (len(TRAIL) - i)),
                    )
                )
                samples += 1
            session.add(
                LocationSampleModel(
                    ambulance_id=m.id, latitude=lat, longitude=lng, recorded_at=now
                )
            )
            samples += 1
        await session.flush()
        print(f"  Created {samples} location samples")

        # ── Bookings ──────────────────────────────────────────────────
        session.add_all(
            [
                BookingModel(
                    patient_name="Diya Iyer",
                    patient_contact="+91-98200-00001",
                    patient_age=67,
                    emergency_type="cardiac",
                    pickup_location="Andheri East",
                    pickup_lat=19.1136,
                    pickup_lng=72.8697,
                    status=BookingStatus.PENDING,
                    dispatch_attempts=1,
                    last_dispatch_error="no_route_found",
                    last_dispatch_at=now - timedelta(minutes=5),
                ),
                BookingModel(
                    patient_name="Rahul Desai",
                    patient_contact="+91-98200-00002",
                    emergency_type="accident",
                    pickup_location="Dadar",
                    pickup_lat=19.0200,
                    pickup_lng=72.8430,
                    dropoff_location="KEM Hospital",
                    dropoff_lat=19.0025,
                    dropoff_lng=72.8420,
                    status=BookingStatus.COMPLETED,
                    ambulance_id=ambulance_models[5].id,
                    dispatch_attempts=1,
                    last_dispatch_at=now - timedelta(hours=2),
                ),
            ]
        )
        await session.flush()
        print("  Created 2 bookings")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
