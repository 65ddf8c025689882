"""Booking-related Pydantic schemas."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

from fleetbook.domain.booking_state import BookingStatus
from fleetbook.utils.validators import parse_timestamp

# Accepts zoned or naive ISO-8601 and yields a naive local datetime
LocalDateTime = Annotated[datetime, BeforeValidator(parse_timestamp)]


class BookingDetails(BaseModel):
    """Free-text details captured by the booking form."""

    user_name: str | None = Field(None, max_length=200)
    vehicle_name: str | None = Field(None, max_length=200)
    vehicle_registration: str | None = Field(None, max_length=50)
    purpose: str | None = Field(None, max_length=1000)
    pickup_location: str | None = Field(None, max_length=500)
    dropoff_location: str | None = Field(None, max_length=500)
    contact_number: str | None = Field(None, max_length=30)
    notes: str | None = Field(None, max_length=2000)


class BookingCreate(BookingDetails):
    """Schema for creating a booking.

    Ordering and past-date rules are checked by the booking service so that
    API and programmatic callers get the same errors.
    """

    user_id: str = Field(..., min_length=1, max_length=64)
    vehicle_id: str = Field(..., min_length=1, max_length=64)
    start_date: LocalDateTime
    end_date: LocalDateTime


class BookingUpdate(BookingDetails):
    """Schema for updating a booking. Only supplied fields are applied."""

    user_id: str | None = Field(None, min_length=1, max_length=64)
    vehicle_id: str | None = Field(None, min_length=1, max_length=64)
    start_date: LocalDateTime | None = None
    end_date: LocalDateTime | None = None


class DriverAssignmentRequest(BaseModel):
    """Schema for assigning a driver and route to a booking."""

    driver_id: str | None = Field(None, max_length=64)
    driver_name: str | None = Field(None, max_length=200)
    route_id: str | None = Field(None, max_length=64)


class AvailabilityRequest(BaseModel):
    """Schema for checking vehicle availability."""

    vehicle_id: str = Field(..., max_length=64)
    start_date: LocalDateTime
    end_date: LocalDateTime

    @field_validator("vehicle_id")
    @classmethod
    def validate_vehicle_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("vehicle_id is required")
        return v


class AvailabilityResponse(BaseModel):
    """Schema for availability check result."""

    available: bool
    conflict_count: int
    conflicting_ids: list[UUID] = []
    message: str


class BookingResponse(BaseModel):
    """Schema for booking response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    vehicle_id: str

    # Dates
    start_date: datetime
    end_date: datetime

    # Status
    status: BookingStatus

    # Assignment
    assigned_driver_id: str | None
    assigned_driver_name: str | None
    assigned_route_id: str | None

    # Details
    user_name: str | None
    vehicle_name: str | None
    vehicle_registration: str | None
    purpose: str | None
    pickup_location: str | None
    dropoff_location: str | None
    contact_number: str | None
    notes: str | None

    # Timestamps
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BookingListResponse(BaseModel):
    """Schema for booking list."""

    bookings: list[BookingResponse]
    total: int
    message: str | None = None


class MessageResponse(BaseModel):
    """Schema for plain acknowledgements."""

    message: str
