"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Status transitions of bookings and
ambulances are *not* written here; they go through the compare-and-swap
updates in ``committer.py``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import AmbulanceModel, BookingModel, LocationSampleModel
from ambulance_dispatch.domain.enums import BookingStatus, VehicleStatus


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_booking(
        self,
        *,
        patient_name: str,
        patient_contact: str,
        emergency_type: str,
        pickup_lat: float,
        pickup_lng: float,
        pickup_location: str | None = None,
        dropoff_location: str | None = None,
        dropoff_lat: float | None = None,
        dropoff_lng: float | None = None,
        patient_age: int | None = None,
        medical_notes: str | None = None,
        idempotency_key: str | None = None,
    ) -> BookingModel:
        booking = BookingModel(
            patient_name=patient_name,
            patient_contact=patient_contact,
            patient_age=patient_age,
            emergency_type=emergency_type,
            medical_notes=medical_notes,
            pickup_location=pickup_location,
            pickup_lat=pickup_lat,
            pickup_lng=pickup_lng,
            dropoff_location=dropoff_location,
            dropoff_lat=dropoff_lat,
            dropoff_lng=dropoff_lng,
            idempotency_key=idempotency_key,
            status=BookingStatus.PENDING,
            dispatch_attempts=0,
        )
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_by_id(self, booking_id: int) -> Optional[BookingModel]:
        return await self.session.get(BookingModel, booking_id)

    async def get_by_idempotency_key(self, key: str) -> Optional[BookingModel]:
        result = await self.session.execute(
            select(BookingModel).where(BookingModel.idempotency_key == key)
        )
        return result.scalar_one_or_none()

    async def get_pending(self) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.status == BookingStatus.PENDING)
            .order_by(BookingModel.created_at, BookingModel.id)
        )
        return list(result.scalars().all())

    async def get_retriable(
        self, older_than: datetime, limit: int = 20
    ) -> list[BookingModel]:
        """
        Pending bookings whose last dispatch attempt (or creation, if never
        attempted) happened before *older_than*, oldest first.
        """
        last_touch = func.coalesce(
            BookingModel.last_dispatch_at, BookingModel.created_at
        )
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.status == BookingStatus.PENDING)
            .where(last_touch < older_than)
            .order_by(last_touch, BookingModel.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_pending(self) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(BookingModel)
            .where(BookingModel.status == BookingStatus.PENDING)
        )
        return result.scalar() or 0


class AmbulanceRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, ambulance_id: int) -> Optional[AmbulanceModel]:
        return await self.session.get(AmbulanceModel, ambulance_id)

    async def get_by_status(self, status: VehicleStatus) -> list[AmbulanceModel]:
        result = await self.session.execute(
            select(AmbulanceModel)
            .where(AmbulanceModel.status == status)
            .order_by(AmbulanceModel.id)
        )
        return list(result.scalars().all())

    async def get_available(self) -> list[AmbulanceModel]:
        return await self.get_by_status(VehicleStatus.AVAILABLE)

    async def get_all(self) -> list[AmbulanceModel]:
        result = await self.session.execute(
            select(AmbulanceModel).order_by(AmbulanceModel.id)
        )
        return list(result.scalars().all())


class LocationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(
        self,
        ambulance_id: int,
        latitude: float,
        longitude: float,
        recorded_at: datetime | None = None,
    ) -> LocationSampleModel:
        sample = LocationSampleModel(
            ambulance_id=ambulance_id,
            latitude=latitude,
            longitude=longitude,
            recorded_at=recorded_at or datetime.now(timezone.utc),
        )
        self.session.add(sample)
        await self.session.flush()
        return sample

    async def latest_for(
        self, ambulance_ids: Iterable[int]
    ) -> dict[int, LocationSampleModel]:
        """
        Most recent sample per ambulance, keyed by ambulance id.

        The database ranks samples per ambulance and returns only the top
        one, so the history is never loaded.  Equal timestamps fall back
        to the higher row id so the answer is stable across calls.
        """
        ids = list(ambulance_ids)
        if not ids:
            return {}
        ranked = (
            select(
                LocationSampleModel.id,
                func.row_number()
                .over(
                    partition_by=LocationSampleModel.ambulance_id,
                    order_by=(
                        LocationSampleModel.recorded_at.desc(),
                        LocationSampleModel.id.desc(),
                    ),
                )
                .label("recency"),
            )
            .where(LocationSampleModel.ambulance_id.in_(ids))
            .subquery()
        )
        result = await self.session.execute(
            select(LocationSampleModel)
            .join(ranked, LocationSampleModel.id == ranked.c.id)
            .where(ranked.c.recency == 1)
        )
        return {sample.ambulance_id: sample for sample in result.scalars()}
