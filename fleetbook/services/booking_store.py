"""Booking persistence: keyed lookups, insert, update and delete."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fleetbook.domain.booking_state import LIVE_STATUSES, UPCOMING_STATUSES, BookingStatus
from fleetbook.models.booking import Booking


class BookingStore:
    """Query and write access to the ``bookings`` table."""

    async def get(self, db: AsyncSession, booking_id: UUID) -> Booking | None:
        result = await db.execute(select(Booking).where(Booking.id == booking_id))
        return result.scalar_one_or_none()

    async def get_for_update(self, db: AsyncSession, booking_id: UUID) -> Booking | None:
        """Re-read a booking from the database, row-locked where the backend supports it.

        Overwrites any copy already in the session's identity map.
        """
        result = await db.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_all(self, db: AsyncSession) -> list[Booking]:
        return await self._list(db, select(Booking))

    async def list_by_user(self, db: AsyncSession, user_id: str) -> list[Booking]:
        return await self._list(db, select(Booking).where(Booking.user_id == user_id))

    async def list_by_vehicle(self, db: AsyncSession, vehicle_id: str) -> list[Booking]:
        return await self._list(db, select(Booking).where(Booking.vehicle_id == vehicle_id))

    async def list_by_status(self, db: AsyncSession, status: BookingStatus) -> list[Booking]:
        return await self._list(db, select(Booking).where(Booking.status == status))

    async def list_by_driver(self, db: AsyncSession, driver_id: str) -> list[Booking]:
        return await self._list(
            db, select(Booking).where(Booking.assigned_driver_id == driver_id)
        )

    async def list_live_by_vehicle(
        self,
        db: AsyncSession,
        vehicle_id: str,
        ending_after: datetime | None = None,
    ) -> list[Booking]:
        """Live bookings for a vehicle, optionally only those ending after a moment."""
        query = select(Booking).where(
            Booking.vehicle_id == vehicle_id,
            Booking.status.in_(LIVE_STATUSES),
        )
        if ending_after is not None:
            query = query.where(Booking.end_date > ending_after)
        return await self._list(db, query)

    async def find_overlapping(
        self,
        db: AsyncSession,
        vehicle_id: str,
        start: datetime,
        end: datetime,
    ) -> list[Booking]:
        """Live bookings for a vehicle whose interval intersects ``[start, end)``."""
        query = (
            select(Booking)
            .where(
                Booking.vehicle_id == vehicle_id,
                Booking.status.in_(LIVE_STATUSES),
                Booking.start_date < end,
                Booking.end_date > start,
            )
            .execution_options(populate_existing=True)
        )
        return await self._list(db, query)

    async def list_upcoming_by_user(
        self, db: AsyncSession, user_id: str, now: datetime
    ) -> list[Booking]:
        return await self._list(
            db,
            select(Booking).where(
                Booking.user_id == user_id,
                Booking.start_date >= now,
                Booking.status.in_(UPCOMING_STATUSES),
            ),
        )

    async def add(self, db: AsyncSession, booking: Booking) -> Booking:
        db.add(booking)
        await db.flush()
        await db.refresh(booking)
        return booking

    async def save(self, db: AsyncSession, booking: Booking) -> Booking:
        """Flush in-place changes and reload server-maintained columns."""
        await db.flush()
        await db.refresh(booking)
        return booking

    async def delete(self, db: AsyncSession, booking: Booking) -> None:
        await db.delete(booking)
        await db.flush()

    async def _list(self, db: AsyncSession, query) -> list[Booking]:
        result = await db.execute(query.order_by(Booking.start_date, Booking.created_at))
        return list(result.scalars().all())


booking_store = BookingStore()
