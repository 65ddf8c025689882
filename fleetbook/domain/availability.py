"""Interval overlap rules for vehicle availability.

A booking occupies its vehicle over the half-open interval
``[start_date, end_date)``, so two bookings where one ends exactly when the
other starts do not conflict.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Protocol
from uuid import UUID

from fleetbook.domain.booking_state import LIVE_STATUSES, BookingStatus


class Reservation(Protocol):
    id: UUID
    status: BookingStatus
    start_date: datetime
    end_date: datetime


def intervals_overlap(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> bool:
    """Return True if ``[start_a, end_a)`` and ``[start_b, end_b)`` intersect."""
    return start_a < end_b and end_a > start_b


def is_live(booking: Reservation) -> bool:
    return booking.status in LIVE_STATUSES


def select_conflicts(
    candidates: Iterable[Reservation],
    start: datetime,
    end: datetime,
    exclude_booking_id: UUID | None = None,
) -> list[Reservation]:
    """Filter ``candidates`` down to live bookings overlapping ``[start, end)``."""
    return [
        booking
        for booking in candidates
        if booking.id != exclude_booking_id
        and is_live(booking)
        and intervals_overlap(booking.start_date, booking.end_date, start, end)
    ]
