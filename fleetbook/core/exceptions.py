"""Custom application exceptions."""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception.

    ``context`` carries machine-readable fields that the exception handler
    merges into the JSON body next to ``detail``.
    """

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.context = context or {}
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(AppException):
    """Validation error exception."""

    def __init__(self, detail: str = "Validation failed", errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors
        context = {"errors": errors} if errors else None
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail, context=context
        )


class NotFoundError(AppException):
    """Resource not found exception."""

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        self.resource = resource
        self.identifier = identifier
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} with ID '{identifier}' not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class BookingConflict(AppException):
    """Requested interval overlaps live bookings of the same vehicle."""

    def __init__(self, conflicting_ids: list[str]) -> None:
        self.conflicting_ids = conflicting_ids
        self.conflict_count = len(conflicting_ids)
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                "Vehicle is not available for the selected dates "
                f"({self.conflict_count} conflicting booking(s))"
            ),
            context={
                "conflict_count": self.conflict_count,
                "conflicting_ids": conflicting_ids,
            },
        )


class InvalidTransition(AppException):
    """Status-gated operation attempted from a disallowed state."""

    def __init__(self, current_status: str, attempted_status: str) -> None:
        self.current_status = current_status
        self.attempted_status = attempted_status
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Invalid booking transition: {current_status} → {attempted_status}",
            context={
                "current_status": current_status,
                "attempted_status": attempted_status,
            },
        )


class ServiceUnavailable(AppException):
    """External service error."""

    def __init__(self, service: str, detail: str | None = None) -> None:
        message = f"External service '{service}' is unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message)
