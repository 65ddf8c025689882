"""Booking database model."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from fleetbook.database import Base
from fleetbook.domain.booking_state import BookingStatus


class Booking(Base):
    """Vehicle reservation over ``[start_date, end_date)``."""

    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_vehicle_status", "vehicle_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Opaque references to entities owned by other services
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    vehicle_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Naive local timestamps
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    status: Mapped[BookingStatus] = mapped_column(
        Enum(
            BookingStatus,
            name="booking_status",
            native_enum=False,
            length=20,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        default=BookingStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Assignment
    assigned_driver_id: Mapped[str | None] = mapped_column(String(64), index=True)
    assigned_driver_name: Mapped[str | None] = mapped_column(String(200))
    assigned_route_id: Mapped[str | None] = mapped_column(String(64))

    # Descriptive details captured by the booking form
    user_name: Mapped[str | None] = mapped_column(String(200))
    vehicle_name: Mapped[str | None] = mapped_column(String(200))
    vehicle_registration: Mapped[str | None] = mapped_column(String(50))
    purpose: Mapped[str | None] = mapped_column(Text)
    pickup_location: Mapped[str | None] = mapped_column(String(500))
    dropoff_location: Mapped[str | None] = mapped_column(String(500))
    contact_number: Mapped[str | None] = mapped_column(String(30))
    notes: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, vehicle={self.vehicle_id}, "
            f"{self.start_date:%Y-%m-%d %H:%M} to {self.end_date:%Y-%m-%d %H:%M}, "
            f"status={self.status})>"
        )
