"""Pydantic schemas for API validation."""

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

__all__ = [
    "AvailabilityRequest",
    "AvailabilityResponse",
    "BookingCreate",
    "BookingListResponse",
    "BookingResponse",
    "BookingUpdate",
    "DriverAssignmentRequest",
    "MessageResponse",
]
