"""
Domain-specific exception hierarchy for the room calendar application.
"""


class RoomCalendarError(Exception):
    """Base class for all application-level errors."""


class BookingValidationError(RoomCalendarError):
    """Raised when a request is rejected locally, before any network call."""


class BookingAPIError(RoomCalendarError):
    """Raised when booking data cannot be fetched, created or deleted."""


class BookingConflictError(BookingAPIError):
    """Raised when the backend rejects a booking that overlaps another one."""


class BookingNotFoundError(RoomCalendarError):
    """Raised when no booking matches a cancellation code."""


class AuthenticationError(RoomCalendarError):
    """Raised when login, registration or session handling fails."""
