"""Booking lifecycle service: availability, creation, transitions and assignment."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fleetbook.core.exceptions import (
    BookingConflict,
    InvalidTransition,
    NotFoundError,
    ValidationError,
)
from fleetbook.core.locking import vehicle_lock, vehicle_locks
from fleetbook.domain.availability import select_conflicts
from fleetbook.domain.booking_state import (
    TERMINAL_STATUSES,
    BookingStatus,
    assert_booking_transition,
)
from fleetbook.models.booking import Booking
from fleetbook.schemas.booking import BookingCreate, BookingUpdate
from fleetbook.services.booking_store import BookingStore, booking_store
from fleetbook.utils.validators import normalize_timestamp, now_local

logger = logging.getLogger(__name__)

# Changing any of these moves the booking's claim on a vehicle
SCHEDULE_FIELDS = ("vehicle_id", "start_date", "end_date")
REQUIRED_FIELDS = ("user_id", "vehicle_id", "start_date", "end_date")


@dataclass
class AvailabilityResult:
    """Outcome of an availability check for one vehicle and window."""

    conflicts: list[Booking] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return not self.conflicts

    @property
    def conflict_count(self) -> int:
        return len(self.conflicts)

    @property
    def conflicting_ids(self) -> list[UUID]:
        return [booking.id for booking in self.conflicts]

    @property
    def message(self) -> str:
        if self.available:
            return "Vehicle is available for the selected dates"
        return "Vehicle is not available for the selected dates"


@dataclass
class BookingListing:
    """Listing result with an optional informational note."""

    bookings: list[Booking]
    message: str | None = None


class BookingService:
    """Service enforcing the booking state machine and the no-overlap rule.

    Holds no per-request state; every read and write goes through the store.
    Writes that claim a vehicle interval run their conflict check and commit
    inside ``vehicle_lock`` so concurrent callers cannot both pass the check.
    """

    def __init__(self, store: BookingStore | None = None) -> None:
        self.store = store or booking_store

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    async def find_conflicts(
        self,
        db: AsyncSession,
        vehicle_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: UUID | None = None,
    ) -> list[Booking]:
        """Live bookings of ``vehicle_id`` overlapping ``[start, end)``."""
        candidates = await self.store.find_overlapping(db, vehicle_id, start, end)
        return select_conflicts(candidates, start, end, exclude_booking_id)

    async def is_available(
        self, db: AsyncSession, vehicle_id: str, start: datetime, end: datetime
    ) -> bool:
        return not await self.find_conflicts(db, vehicle_id, start, end)

    async def check_availability(
        self, db: AsyncSession, vehicle_id: str, start: datetime, end: datetime
    ) -> AvailabilityResult:
        """Validate a requested window and report conflicts for it."""
        start, end = normalize_timestamp(start), normalize_timestamp(end)
        self._validate_window(vehicle_id, start, end)
        conflicts = await self.find_conflicts(db, vehicle_id, start, end)
        return AvailabilityResult(conflicts=conflicts)

    # ------------------------------------------------------------------
    # Create / update / delete
    # ------------------------------------------------------------------

    async def create_booking(self, db: AsyncSession, booking_data: BookingCreate) -> Booking:
        """Create a pending booking if the vehicle is free for the window."""
        values = booking_data.model_dump()
        values["start_date"] = normalize_timestamp(values["start_date"])
        values["end_date"] = normalize_timestamp(values["end_date"])

        if not values["user_id"].strip():
            raise ValidationError("User ID is required")
        self._validate_window(values["vehicle_id"], values["start_date"], values["end_date"])

        async with vehicle_lock(values["vehicle_id"]):
            await self._ensure_no_conflicts(
                db, values["vehicle_id"], values["start_date"], values["end_date"]
            )
            booking = Booking(**values, status=BookingStatus.PENDING)
            await self.store.add(db, booking)
            await db.commit()

        logger.info(
            f"Booking {booking.id} created for vehicle {booking.vehicle_id} "
            f"({booking.start_date.isoformat()} → {booking.end_date.isoformat()})"
        )
        return booking

    async def update_booking(
        self, db: AsyncSession, booking_id: UUID, changes: BookingUpdate
    ) -> Booking:
        """Merge ``changes`` into a booking.

        The vehicle and window are re-validated only when one of them actually
        changes; the booking never conflicts with its own prior interval.
        Schedule changes are worked out from a fresh read taken while holding
        the locks of both the booking's current vehicle and the target vehicle.
        """
        booking = await self._get_booking(db, booking_id)
        updates = changes.model_dump(exclude_unset=True)

        for key in REQUIRED_FIELDS:
            if key in updates and updates[key] is None:
                raise ValidationError(f"{key} cannot be null")
        if "user_id" in updates and not updates["user_id"].strip():
            raise ValidationError("User ID is required")
        for key in ("start_date", "end_date"):
            if key in updates:
                updates[key] = normalize_timestamp(updates[key])

        if not any(key in updates for key in SCHEDULE_FIELDS):
            self._apply(booking, updates)
            await self.store.save(db, booking)
            await db.commit()
            logger.info(f"Booking {booking.id} details updated")
            return booking

        current_vehicle = booking.vehicle_id
        while True:
            held = {current_vehicle, updates.get("vehicle_id", current_vehicle)}
            async with vehicle_locks(*held):
                booking = await self._get_booking(db, booking_id, for_update=True)
                if booking.vehicle_id in held:
                    return await self._reschedule(db, booking, updates)
                # Moved by another writer while we waited; release the row and retry
                current_vehicle = booking.vehicle_id
                await db.rollback()
            logger.debug(f"Booking {booking_id} moved to {current_vehicle}, retrying update")

    async def delete_booking(self, db: AsyncSession, booking_id: UUID) -> None:
        """Administrative removal, outside the state machine."""
        booking = await self._get_booking(db, booking_id)
        await self.store.delete(db, booking)
        await db.commit()
        logger.info(f"Booking {booking_id} deleted")

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    async def confirm_booking(self, db: AsyncSession, booking_id: UUID) -> Booking:
        return await self._transition(db, booking_id, BookingStatus.CONFIRMED)

    async def start_booking(self, db: AsyncSession, booking_id: UUID) -> Booking:
        return await self._transition(db, booking_id, BookingStatus.ACTIVE)

    async def complete_booking(self, db: AsyncSession, booking_id: UUID) -> Booking:
        return await self._transition(db, booking_id, BookingStatus.COMPLETED)

    async def cancel_booking(self, db: AsyncSession, booking_id: UUID) -> Booking:
        return await self._transition(db, booking_id, BookingStatus.CANCELLED)

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    async def assign_driver(
        self,
        db: AsyncSession,
        booking_id: UUID,
        driver_id: str | None,
        driver_name: str | None,
        route_id: str | None,
    ) -> Booking:
        """Set or overwrite the driver and route on a booking, in any status."""
        booking = await self._get_booking(db, booking_id)
        booking.assigned_driver_id = driver_id
        booking.assigned_driver_name = driver_name
        booking.assigned_route_id = route_id
        await self.store.save(db, booking)
        await db.commit()

        logger.info(f"Booking {booking_id} assigned to driver {driver_id} on route {route_id}")
        return booking

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_booking(self, db: AsyncSession, booking_id: UUID) -> Booking:
        return await self._get_booking(db, booking_id)

    async def list_all(self, db: AsyncSession) -> list[Booking]:
        return await self.store.list_all(db)

    async def list_by_user(self, db: AsyncSession, user_id: str) -> list[Booking]:
        return await self.store.list_by_user(db, user_id)

    async def list_by_vehicle(self, db: AsyncSession, vehicle_id: str) -> list[Booking]:
        return await self.store.list_by_vehicle(db, vehicle_id)

    async def list_by_status(self, db: AsyncSession, status: BookingStatus) -> list[Booking]:
        return await self.store.list_by_status(db, status)

    async def list_active_by_vehicle(self, db: AsyncSession, vehicle_id: str) -> list[Booking]:
        """Live bookings for a vehicle that have not ended yet."""
        return await self.store.list_live_by_vehicle(db, vehicle_id, ending_after=now_local())

    async def list_upcoming_by_user(self, db: AsyncSession, user_id: str) -> list[Booking]:
        """Pending or confirmed bookings of a user starting now or later."""
        return await self.store.list_upcoming_by_user(db, user_id, now_local())

    async def list_by_driver(
        self, db: AsyncSession, driver_id: str, *, empty_on_error: bool = False
    ) -> BookingListing:
        """Bookings assigned to a driver.

        With ``empty_on_error`` a store failure yields an empty listing and an
        informational message instead of an exception. Read path only.
        """
        try:
            bookings = await self.store.list_by_driver(db, driver_id)
        except SQLAlchemyError:
            if not empty_on_error:
                raise
            logger.exception(f"Failed to load bookings for driver {driver_id}")
            await db.rollback()
            return BookingListing(bookings=[], message="No bookings found")
        return BookingListing(bookings=bookings)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate_window(self, vehicle_id: str | None, start: datetime | None, end: datetime | None) -> None:
        if not vehicle_id or not vehicle_id.strip():
            raise ValidationError("Vehicle ID is required")
        if start is None or end is None:
            raise ValidationError("Start date and end date are required")
        if start >= end:
            raise ValidationError("Start date must be before end date")
        if start < now_local():
            raise ValidationError("Start date cannot be in the past")

    async def _ensure_no_conflicts(
        self,
        db: AsyncSession,
        vehicle_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: UUID | None = None,
    ) -> None:
        conflicts = await self.find_conflicts(db, vehicle_id, start, end, exclude_booking_id)
        if conflicts:
            logger.warning(
                f"Rejected booking for vehicle {vehicle_id}: "
                f"{len(conflicts)} conflicting booking(s)"
            )
            raise BookingConflict([str(booking.id) for booking in conflicts])

    async def _transition(
        self, db: AsyncSession, booking_id: UUID, target: BookingStatus
    ) -> Booking:
        booking = await self._get_booking(db, booking_id)
        try:
            assert_booking_transition(booking.status, target)
        except InvalidTransition:
            logger.warning(
                f"Booking {booking_id}: transition {booking.status.value} → {target.value} refused"
            )
            raise

        booking.status = target
        await self.store.save(db, booking)
        await db.commit()

        logger.info(f"Booking {booking_id} is now {target.value}")
        return booking

    async def _reschedule(self, db: AsyncSession, booking: Booking, updates: dict) -> Booking:
        """Apply schedule changes to a freshly read booking. Caller holds the vehicle locks."""
        reschedule = any(
            key in updates and updates[key] != getattr(booking, key) for key in SCHEDULE_FIELDS
        )
        vehicle_id = updates.get("vehicle_id", booking.vehicle_id)
        start = updates.get("start_date", booking.start_date)
        end = updates.get("end_date", booking.end_date)

        if reschedule:
            self._validate_window(vehicle_id, start, end)
            # Terminal bookings hold no claim on the vehicle
            if booking.status not in TERMINAL_STATUSES:
                await self._ensure_no_conflicts(
                    db, vehicle_id, start, end, exclude_booking_id=booking.id
                )

        self._apply(booking, updates)
        await self.store.save(db, booking)
        await db.commit()

        if reschedule:
            logger.info(
                f"Booking {booking.id} rescheduled to vehicle {vehicle_id} "
                f"({start.isoformat()} → {end.isoformat()})"
            )
        else:
            logger.info(f"Booking {booking.id} details updated")
        return booking

    async def _get_booking(
        self, db: AsyncSession, booking_id: UUID, for_update: bool = False
    ) -> Booking:
        """Get booking by ID or raise NotFoundError."""
        if for_update:
            booking = await self.store.get_for_update(db, booking_id)
        else:
            booking = await self.store.get(db, booking_id)
        if not booking:
            raise NotFoundError("Booking", str(booking_id))
        return booking

    @staticmethod
    def _apply(booking: Booking, updates: dict) -> None:
        for key, value in updates.items():
            setattr(booking, key, value)


booking_service = BookingService()
