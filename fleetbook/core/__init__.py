"""Core utilities: exceptions, middleware and vehicle locks."""

from fleetbook.core.exceptions import (
    AppException,
    BookingConflict,
    InvalidTransition,
    NotFoundError,
    ServiceUnavailable,
    ValidationError,
)

__all__ = [
    "AppException",
    "BookingConflict",
    "InvalidTransition",
    "NotFoundError",
    "ServiceUnavailable",
    "ValidationError",
]
