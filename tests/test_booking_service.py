"""Booking lifecycle service against a real SQLite store."""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from fleetbook.core.exceptions import (
    BookingConflict,
    InvalidTransition,
    NotFoundError,
    ValidationError,
)
from fleetbook.domain.booking_state import BookingStatus
from fleetbook.models.booking import Booking
from fleetbook.schemas.booking import BookingUpdate
from fleetbook.services.booking_service import BookingService
from fleetbook.services.booking_store import booking_store


async def seed(db, vehicle_id, start, end, status=BookingStatus.PENDING, **fields):
    """Insert a booking directly, bypassing validation."""
    booking = Booking(
        user_id=fields.pop("user_id", "user-1"),
        vehicle_id=vehicle_id,
        start_date=start,
        end_date=end,
        status=status,
        **fields,
    )
    await booking_store.add(db, booking)
    await db.commit()
    return booking


class TestCreate:
    async def test_creates_pending_booking(self, db, service, draft, at):
        booking = await service.create_booking(
            db, draft(at(10), at(12), purpose="Site visit", pickup_location="Depot A")
        )

        assert booking.id is not None
        assert booking.status == BookingStatus.PENDING
        assert booking.purpose == "Site visit"
        assert booking.assigned_driver_id is None
        assert booking.created_at is not None

        stored = await service.get_booking(db, booking.id)
        assert stored.vehicle_id == "veh-1"

    async def test_touching_intervals_do_not_conflict(self, db, service, draft, at):
        first = await service.create_booking(db, draft(at(10), at(11)))
        second = await service.create_booking(db, draft(at(11), at(12)))
        earlier = await service.create_booking(db, draft(at(9), at(10)))

        assert {first.status, second.status, earlier.status} == {BookingStatus.PENDING}

    async def test_overlap_is_rejected_with_conflict_details(self, db, service, draft, at):
        first = await service.create_booking(db, draft(at(10), at(12)))

        with pytest.raises(BookingConflict) as exc_info:
            await service.create_booking(db, draft(at(11), at(13)))

        assert exc_info.value.conflict_count == 1
        assert exc_info.value.conflicting_ids == [str(first.id)]
        assert exc_info.value.status_code == 409
        assert len(await service.list_by_vehicle(db, "veh-1")) == 1

    async def test_conflict_counts_every_overlapping_booking(self, db, service, draft, at):
        await service.create_booking(db, draft(at(8), at(10)))
        await service.create_booking(db, draft(at(10), at(12)))
        await service.create_booking(db, draft(at(12), at(14)))

        with pytest.raises(BookingConflict) as exc_info:
            await service.create_booking(db, draft(at(9), at(13)))
        assert exc_info.value.conflict_count == 3

    async def test_other_vehicle_is_independent(self, db, service, draft, at):
        await service.create_booking(db, draft(at(10), at(12), vehicle_id="veh-1"))
        booking = await service.create_booking(db, draft(at(10), at(12), vehicle_id="veh-2"))
        assert booking.vehicle_id == "veh-2"

    @pytest.mark.parametrize("hours", [0, -1])
    async def test_start_must_precede_end(self, db, service, draft, at, hours):
        start = at(10)
        with pytest.raises(ValidationError, match="before end"):
            await service.create_booking(db, draft(start, start + timedelta(hours=hours)))

    async def test_past_start_is_rejected(self, db, service, draft, at):
        with pytest.raises(ValidationError, match="past"):
            await service.create_booking(db, draft(at(10, days=-1), at(12)))

    async def test_blank_identifiers_are_rejected(self, db, service, draft, at):
        with pytest.raises(ValidationError, match="Vehicle ID"):
            await service.create_booking(db, draft(at(10), at(12), vehicle_id="   "))
        with pytest.raises(ValidationError, match="User ID"):
            await service.create_booking(db, draft(at(10), at(12), user_id="  "))

    async def test_terminal_bookings_do_not_block(self, db, service, draft, at):
        await seed(db, "veh-1", at(10), at(12), status=BookingStatus.CANCELLED)
        await seed(db, "veh-1", at(10), at(12), status=BookingStatus.COMPLETED)

        booking = await service.create_booking(db, draft(at(10), at(12)))
        assert booking.status == BookingStatus.PENDING


class TestAvailability:
    async def test_available_window(self, db, service, at):
        result = await service.check_availability(db, "veh-1", at(10), at(12))

        assert result.available is True
        assert result.conflict_count == 0
        assert result.message == "Vehicle is available for the selected dates"
        assert await service.is_available(db, "veh-1", at(10), at(12))

    async def test_unavailable_window(self, db, service, draft, at):
        booking = await service.create_booking(db, draft(at(10), at(12)))

        result = await service.check_availability(db, "veh-1", at(11), at(15))

        assert result.available is False
        assert result.conflict_count == 1
        assert result.conflicting_ids == [booking.id]
        assert "not available" in result.message

    async def test_check_is_read_only(self, db, service, draft, at):
        await service.create_booking(db, draft(at(10), at(12)))
        for _ in range(3):
            await service.check_availability(db, "veh-1", at(9), at(13))
        assert len(await service.list_all(db)) == 1

    async def test_validates_window(self, db, service, at):
        with pytest.raises(ValidationError):
            await service.check_availability(db, "veh-1", at(12), at(10))
        with pytest.raises(ValidationError):
            await service.check_availability(db, "veh-1", at(10, days=-2), at(10))
        with pytest.raises(ValidationError):
            await service.check_availability(db, "", at(10), at(12))

    async def test_find_conflicts_can_exclude_a_booking(self, db, service, draft, at):
        booking = await service.create_booking(db, draft(at(10), at(12)))

        assert await service.find_conflicts(db, "veh-1", at(11), at(13)) == [booking]
        assert await service.find_conflicts(
            db, "veh-1", at(11), at(13), exclude_booking_id=booking.id
        ) == []


class TestLifecycle:
    async def test_full_lifecycle(self, db, service, draft, at):
        booking = await service.create_booking(db, draft(at(10), at(12)))

        booking = await service.confirm_booking(db, booking.id)
        assert booking.status == BookingStatus.CONFIRMED
        booking = await service.start_booking(db, booking.id)
        assert booking.status == BookingStatus.ACTIVE
        booking = await service.complete_booking(db, booking.id)
        assert booking.status == BookingStatus.COMPLETED

        with pytest.raises(InvalidTransition) as exc_info:
            await service.cancel_booking(db, booking.id)
        assert exc_info.value.current_status == "completed"
        assert exc_info.value.attempted_status == "cancelled"

    async def test_confirm_twice_is_rejected(self, db, service, draft, at):
        booking = await service.create_booking(db, draft(at(10), at(12)))
        await service.confirm_booking(db, booking.id)

        with pytest.raises(InvalidTransition) as exc_info:
            await service.confirm_booking(db, booking.id)
        assert exc_info.value.current_status == "confirmed"

        assert (await service.get_booking(db, booking.id)).status == BookingStatus.CONFIRMED

    async def test_start_requires_confirmation(self, db, service, draft, at):
        booking = await service.create_booking(db, draft(at(10), at(12)))
        with pytest.raises(InvalidTransition):
            await service.start_booking(db, booking.id)
        with pytest.raises(InvalidTransition):
            await service.complete_booking(db, booking.id)

    @pytest.mark.parametrize(
        "steps",
        [
            [],
            ["confirm_booking"],
            ["confirm_booking", "start_booking"],
        ],
        ids=["pending", "confirmed", "active"],
    )
    async def test_cancel_from_live_states_frees_the_slot(self, db, service, draft, at, steps):
        booking = await service.create_booking(db, draft(at(10), at(12)))
        for step in steps:
            await getattr(service, step)(db, booking.id)

        cancelled = await service.cancel_booking(db, booking.id)
        assert cancelled.status == BookingStatus.CANCELLED

        assert await service.is_available(db, "veh-1", at(10), at(12))
        replacement = await service.create_booking(db, draft(at(10), at(12)))
        assert replacement.id != booking.id

        with pytest.raises(InvalidTransition):
            await service.cancel_booking(db, booking.id)

    @pytest.mark.parametrize(
        "operation", ["confirm_booking", "start_booking", "complete_booking", "cancel_booking"]
    )
    async def test_transition_on_missing_booking(self, db, service, operation):
        with pytest.raises(NotFoundError):
            await getattr(service, operation)(db, uuid4())

    async def test_transitions_do_not_recheck_conflicts(self, db, service, at):
        # Two overlapping rows that predate the rule; transitions still apply
        first = await seed(db, "veh-1", at(10), at(12))
        await seed(db, "veh-1", at(11), at(13))

        confirmed = await service.confirm_booking(db, first.id)
        assert confirmed.status == BookingStatus.CONFIRMED


class TestUpdate:
    async def test_detail_change_skips_conflict_check(self, db, service, at):
        first = await seed(db, "veh-1", at(10), at(12))
        await seed(db, "veh-1", at(11), at(13))

        updated = await service.update_booking(
            db, first.id, BookingUpdate(notes="Bring charging cable", purpose="Delivery")
        )
        assert updated.notes == "Bring charging cable"
        assert updated.purpose == "Delivery"

    async def test_unchanged_schedule_fields_are_not_a_reschedule(self, db, service, at):
        first = await seed(db, "veh-1", at(10), at(12))
        await seed(db, "veh-1", at(11), at(13))

        updated = await service.update_booking(
            db, first.id, BookingUpdate(vehicle_id="veh-1", start_date=at(10), notes="same")
        )
        assert updated.notes == "same"

    async def test_reschedule_does_not_conflict_with_itself(self, db, service, draft, at):
        booking = await service.create_booking(db, draft(at(10), at(12)))

        updated = await service.update_booking(
            db, booking.id, BookingUpdate(start_date=at(11), end_date=at(14))
        )
        assert updated.start_date == at(11)
        assert updated.end_date == at(14)

    async def test_reschedule_onto_another_booking_conflicts(self, db, service, draft, at):
        other = await service.create_booking(db, draft(at(14), at(16)))
        booking = await service.create_booking(db, draft(at(10), at(12)))

        with pytest.raises(BookingConflict) as exc_info:
            await service.update_booking(db, booking.id, BookingUpdate(end_date=at(15)))
        assert exc_info.value.conflicting_ids == [str(other.id)]

        await db.refresh(booking)
        assert booking.end_date == at(12)

    async def test_moving_to_busy_vehicle_conflicts(self, db, service, draft, at):
        await service.create_booking(db, draft(at(10), at(12), vehicle_id="veh-2"))
        booking = await service.create_booking(db, draft(at(10), at(12), vehicle_id="veh-1"))

        with pytest.raises(BookingConflict):
            await service.update_booking(db, booking.id, BookingUpdate(vehicle_id="veh-2"))

        moved = await service.update_booking(db, booking.id, BookingUpdate(vehicle_id="veh-3"))
        assert moved.vehicle_id == "veh-3"

    @pytest.mark.parametrize("status", [BookingStatus.CANCELLED, BookingStatus.COMPLETED])
    async def test_terminal_booking_reschedule_skips_conflict_check(self, db, service, at, status):
        await seed(db, "veh-1", at(14), at(16))
        closed = await seed(db, "veh-2", at(10), at(12), status=status)

        moved = await service.update_booking(
            db, closed.id, BookingUpdate(vehicle_id="veh-1", start_date=at(15), end_date=at(17))
        )
        assert moved.vehicle_id == "veh-1"
        assert moved.status == status

        with pytest.raises(ValidationError, match="before end"):
            await service.update_booking(db, closed.id, BookingUpdate(end_date=at(14)))

    async def test_reschedule_is_validated_like_create(self, db, service, draft, at):
        booking = await service.create_booking(db, draft(at(10), at(12)))

        with pytest.raises(ValidationError, match="before end"):
            await service.update_booking(db, booking.id, BookingUpdate(end_date=at(9)))
        with pytest.raises(ValidationError, match="past"):
            await service.update_booking(
                db, booking.id, BookingUpdate(start_date=at(10, days=-1))
            )
        with pytest.raises(ValidationError, match="cannot be null"):
            await service.update_booking(db, booking.id, BookingUpdate(vehicle_id=None))

    async def test_update_missing_booking(self, db, service):
        with pytest.raises(NotFoundError):
            await service.update_booking(db, uuid4(), BookingUpdate(notes="x"))


class TestAssignment:
    async def test_assign_and_reassign(self, db, service, draft, at):
        booking = await service.create_booking(db, draft(at(10), at(12)))

        assigned = await service.assign_driver(db, booking.id, "drv-1", "Ayesha", "route-7")
        assert assigned.assigned_driver_id == "drv-1"
        assert assigned.assigned_driver_name == "Ayesha"
        assert assigned.assigned_route_id == "route-7"

        reassigned = await service.assign_driver(db, booking.id, "drv-2", "Bilal", "route-9")
        assert reassigned.assigned_driver_id == "drv-2"
        assert reassigned.assigned_route_id == "route-9"

        listing = await service.list_by_driver(db, "drv-2")
        assert [b.id for b in listing.bookings] == [booking.id]
        assert (await service.list_by_driver(db, "drv-1")).bookings == []

    async def test_assignment_ignores_status(self, db, service, at):
        booking = await seed(db, "veh-1", at(10), at(12), status=BookingStatus.COMPLETED)
        assigned = await service.assign_driver(db, booking.id, "drv-1", "Ayesha", "route-7")
        assert assigned.assigned_driver_id == "drv-1"

    async def test_assign_missing_booking(self, db, service):
        with pytest.raises(NotFoundError):
            await service.assign_driver(db, uuid4(), "drv-1", "Ayesha", "route-7")


class TestDelete:
    async def test_delete(self, db, service, draft, at):
        booking = await service.create_booking(db, draft(at(10), at(12)))
        await service.delete_booking(db, booking.id)

        with pytest.raises(NotFoundError):
            await service.get_booking(db, booking.id)
        with pytest.raises(NotFoundError):
            await service.delete_booking(db, booking.id)


class TestListings:
    async def test_lookups(self, db, service, draft, at):
        a = await service.create_booking(db, draft(at(10), at(12), user_id="u-a"))
        b = await service.create_booking(db, draft(at(8), at(9), user_id="u-b", vehicle_id="veh-2"))
        await service.confirm_booking(db, b.id)

        assert [x.id for x in await service.list_all(db)] == [b.id, a.id]
        assert [x.id for x in await service.list_by_user(db, "u-a")] == [a.id]
        assert [x.id for x in await service.list_by_vehicle(db, "veh-2")] == [b.id]
        assert [x.id for x in await service.list_by_status(db, BookingStatus.CONFIRMED)] == [b.id]
        assert await service.list_by_status(db, BookingStatus.ACTIVE) == []

    async def test_active_by_vehicle(self, db, service, at):
        ongoing = await seed(db, "veh-1", at(0, days=-1), at(23), status=BookingStatus.ACTIVE)
        future = await seed(db, "veh-1", at(10, days=2), at(12, days=2))
        await seed(db, "veh-1", at(8, days=-3), at(9, days=-3), status=BookingStatus.CONFIRMED)
        await seed(db, "veh-1", at(10, days=3), at(12, days=3), status=BookingStatus.CANCELLED)
        await seed(db, "veh-2", at(10, days=2), at(12, days=2))

        active = await service.list_active_by_vehicle(db, "veh-1")
        assert [b.id for b in active] == [ongoing.id, future.id]

    async def test_upcoming_by_user(self, db, service, at):
        pending = await seed(db, "veh-1", at(10), at(12), user_id="u-a")
        confirmed = await seed(
            db, "veh-2", at(10, days=2), at(12, days=2), user_id="u-a",
            status=BookingStatus.CONFIRMED,
        )
        await seed(db, "veh-3", at(10), at(12), user_id="u-a", status=BookingStatus.ACTIVE)
        await seed(db, "veh-4", at(10, days=-1), at(12), user_id="u-a")
        await seed(db, "veh-5", at(10), at(12), user_id="u-b")

        upcoming = await service.list_upcoming_by_user(db, "u-a")
        assert [b.id for b in upcoming] == [pending.id, confirmed.id]


class TestDriverListingLeniency:
    async def test_store_failure_degrades_to_empty_when_allowed(self, db, failing_store):
        service = BookingService(store=failing_store)

        listing = await service.list_by_driver(db, "drv-1", empty_on_error=True)

        assert listing.bookings == []
        assert listing.message == "No bookings found"

    async def test_store_failure_propagates_by_default(self, db, failing_store):
        service = BookingService(store=failing_store)

        with pytest.raises(OperationalError):
            await service.list_by_driver(db, "drv-1")
