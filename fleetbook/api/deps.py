"""API dependencies."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fleetbook.database import get_db
from fleetbook.services.booking_service import BookingService, booking_service


def get_booking_service() -> BookingService:
    """Booking service used by the routes; overridable in tests."""
    return booking_service


DbSession = Annotated[AsyncSession, Depends(get_db)]
BookingServiceDep = Annotated[BookingService, Depends(get_booking_service)]
