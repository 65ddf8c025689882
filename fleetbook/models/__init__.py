"""Database models."""

from fleetbook.models.booking import Booking

__all__ = [
    "Booking",
]
