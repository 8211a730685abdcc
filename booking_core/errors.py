"""Typed errors surfaced synchronously to callers of the booking core."""

from typing import Optional


class BookingError(Exception):
    """Base class for every error the booking core raises on purpose."""

    default_message = "Booking operation failed"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationError(BookingError):
    """Malformed or missing input. Recoverable by correcting the input."""

    default_message = "Invalid input"

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Optional[list[str]] = None,
        field: Optional[str] = None,
    ) -> None:
        self.errors = list(errors or [])
        if message is None and self.errors:
            message = "; ".join(self.errors)
        super().__init__(message)
        if not self.errors:
            self.errors = [self.message]
        self.field = field


class InvalidTransitionError(ValidationError):
    """Raised when a status change is not allowed from the current status."""


class ConflictError(BookingError):
    """The requested slot, slug or resource is already taken."""

    default_message = "This time slot is already booked. Please choose another time."


class NotFoundError(BookingError):
    """A referenced booking, service or review does not exist."""

    default_message = "Not found"


class AuthorizationError(BookingError):
    """The caller lacks the capability required for the operation."""

    default_message = "Access denied"


class RateLimitError(BookingError):
    """Too many requests for the same key inside the current window."""

    default_message = "Too many requests"
