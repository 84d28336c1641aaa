"""Domain errors raised by the booking core.

Every error is reported synchronously to the caller. None of them is retried
inside the core.
"""

from __future__ import annotations

from hallbook.domain.models import Booking


class BookingError(Exception):
    """Base class for all booking-domain failures."""


class ConflictError(BookingError):
    """The requested range overlaps an active booking for the same hall/date."""

    def __init__(self, conflicting_booking: Booking) -> None:
        self.conflicting_booking = conflicting_booking
        super().__init__(
            f"Time slot conflicts with an existing {conflicting_booking.status} "
            f"booking ({conflicting_booking.time_range()})"
        )


class ValidationError(BookingError):
    """Structurally invalid input: bad range, missing remarks, inactive hall."""


class StateError(BookingError):
    """The transition is not legal from the booking's current status."""

    def __init__(self, booking_id: str, current: str, attempted: str) -> None:
        self.booking_id = booking_id
        self.current = current
        self.attempted = attempted
        super().__init__(f"Cannot {attempted} booking {booking_id}: it is already {current}")


class AuthorizationError(BookingError):
    """The actor may not perform the requested operation."""


class NotFoundError(BookingError):
    """A referenced booking or hall does not exist."""


class DataAccessError(BookingError):
    """The underlying store failed; callers may retry the whole operation."""
