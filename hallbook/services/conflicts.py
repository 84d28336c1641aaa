"""Service for detecting booking conflicts within a hall on a given date."""

from __future__ import annotations

from datetime import date, time
from typing import Iterable, Protocol

from hallbook.domain.models import Booking, ConflictResult


class ActiveBookingSource(Protocol):
    def list_active(
        self, hall_id: str, on_date: date, exclude_id: str | None = None
    ) -> list[Booking]: ...


def overlaps(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    """Half-open interval test: ``[start_a, end_a)`` intersects ``[start_b, end_b)``.

    Ranges that only touch (one ends exactly when the other starts) do not
    overlap, so back-to-back bookings are allowed.
    """
    return start_a < end_b and end_a > start_b


def find_conflicts(
    new_start: time,
    new_end: time,
    existing_bookings: Iterable[Booking],
) -> list[Booking]:
    """Return the bookings in *existing_bookings* that overlap the new range."""
    return [
        booking
        for booking in existing_bookings
        if overlaps(new_start, new_end, booking.start_time, booking.end_time)
    ]


def check_conflict(
    source: ActiveBookingSource,
    hall_id: str,
    on_date: date,
    start_time: time,
    end_time: time,
    exclude_booking_id: str | None = None,
) -> ConflictResult:
    """Report the first active booking that collides with the candidate range.

    Only pending and approved bookings are considered; ``exclude_booking_id``
    keeps a booking being edited from conflicting with itself. The range is
    assumed valid (``start_time < end_time``). Store failures propagate.
    """
    existing = source.list_active(hall_id, on_date, exclude_id=exclude_booking_id)
    conflicting = next(
        (
            b
            for b in existing
            if overlaps(start_time, end_time, b.start_time, b.end_time)
        ),
        None,
    )
    return ConflictResult(
        has_conflict=conflicting is not None, conflicting_booking=conflicting
    )
