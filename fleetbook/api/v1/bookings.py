"""Booking endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from fleetbook.api.deps import BookingServiceDep, DbSession
from fleetbook.domain.booking_state import BookingStatus
from fleetbook.models.booking import Booking
from fleetbook.schemas.booking import (
    AvailabilityRequest,
    AvailabilityResponse,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingUpdate,
    DriverAssignmentRequest,
    MessageResponse,
)

router = APIRouter()


def _listing(bookings: list[Booking], message: str | None = None) -> BookingListResponse:
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        total=len(bookings),
        message=message,
    )


@router.get("/", response_model=BookingListResponse)
async def list_bookings(db: DbSession, service: BookingServiceDep) -> BookingListResponse:
    """List every booking."""
    return _listing(await service.list_all(db))


@router.post("/check-availability", response_model=AvailabilityResponse)
async def check_availability(
    request: AvailabilityRequest,
    db: DbSession,
    service: BookingServiceDep,
) -> AvailabilityResponse:
    """Check whether a vehicle is free for a window."""
    result = await service.check_availability(
        db, request.vehicle_id, request.start_date, request.end_date
    )
    return AvailabilityResponse(
        available=result.available,
        conflict_count=result.conflict_count,
        conflicting_ids=result.conflicting_ids,
        message=result.message,
    )


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    db: DbSession,
    service: BookingServiceDep,
) -> Booking:
    """Create a new pending booking."""
    return await service.create_booking(db, booking_data)


@router.get("/user/{user_id}", response_model=BookingListResponse)
async def list_user_bookings(
    user_id: str, db: DbSession, service: BookingServiceDep
) -> BookingListResponse:
    return _listing(await service.list_by_user(db, user_id))


@router.get("/user/{user_id}/upcoming", response_model=BookingListResponse)
async def list_upcoming_bookings(
    user_id: str, db: DbSession, service: BookingServiceDep
) -> BookingListResponse:
    """Pending or confirmed bookings of a user that have not started."""
    return _listing(await service.list_upcoming_by_user(db, user_id))


@router.get("/vehicle/{vehicle_id}", response_model=BookingListResponse)
async def list_vehicle_bookings(
    vehicle_id: str, db: DbSession, service: BookingServiceDep
) -> BookingListResponse:
    return _listing(await service.list_by_vehicle(db, vehicle_id))


@router.get("/vehicle/{vehicle_id}/active", response_model=BookingListResponse)
async def list_active_vehicle_bookings(
    vehicle_id: str, db: DbSession, service: BookingServiceDep
) -> BookingListResponse:
    """Live bookings of a vehicle that have not ended yet."""
    return _listing(await service.list_active_by_vehicle(db, vehicle_id))


@router.get("/status/{booking_status}", response_model=BookingListResponse)
async def list_bookings_by_status(
    booking_status: BookingStatus, db: DbSession, service: BookingServiceDep
) -> BookingListResponse:
    return _listing(await service.list_by_status(db, booking_status))


@router.get("/driver/{driver_id}", response_model=BookingListResponse)
async def list_driver_bookings(
    driver_id: str, db: DbSession, service: BookingServiceDep
) -> BookingListResponse:
    """Bookings assigned to a driver. Degrades to an empty list on store errors."""
    listing = await service.list_by_driver(db, driver_id, empty_on_error=True)
    return _listing(listing.bookings, listing.message)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: UUID, db: DbSession, service: BookingServiceDep) -> Booking:
    """Get a booking by ID."""
    return await service.get_booking(db, booking_id)


@router.put("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: UUID,
    changes: BookingUpdate,
    db: DbSession,
    service: BookingServiceDep,
) -> Booking:
    """Update booking details, re-checking availability if the schedule moves."""
    return await service.update_booking(db, booking_id, changes)


@router.put("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking(booking_id: UUID, db: DbSession, service: BookingServiceDep) -> Booking:
    """Confirm a pending booking."""
    return await service.confirm_booking(db, booking_id)


@router.put("/{booking_id}/start", response_model=BookingResponse)
async def start_booking(booking_id: UUID, db: DbSession, service: BookingServiceDep) -> Booking:
    """Hand the vehicle over for a confirmed booking."""
    return await service.start_booking(db, booking_id)


@router.put("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(booking_id: UUID, db: DbSession, service: BookingServiceDep) -> Booking:
    """Mark an active booking as completed."""
    return await service.complete_booking(db, booking_id)


@router.put("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(booking_id: UUID, db: DbSession, service: BookingServiceDep) -> Booking:
    """Cancel a booking that has not reached a terminal state."""
    return await service.cancel_booking(db, booking_id)


@router.put("/{booking_id}/assign-driver", response_model=BookingResponse)
async def assign_driver(
    booking_id: UUID,
    assignment: DriverAssignmentRequest,
    db: DbSession,
    service: BookingServiceDep,
) -> Booking:
    """Assign (or reassign) a driver and route."""
    return await service.assign_driver(
        db,
        booking_id,
        driver_id=assignment.driver_id,
        driver_name=assignment.driver_name,
        route_id=assignment.route_id,
    )


@router.delete("/{booking_id}", response_model=MessageResponse)
async def delete_booking(
    booking_id: UUID, db: DbSession, service: BookingServiceDep
) -> MessageResponse:
    await service.delete_booking(db, booking_id)
    return MessageResponse(message="Booking deleted successfully")
