"""Aggregate views over bookings for the admin dashboard."""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime
from typing import Iterable

from pydantic import BaseModel

from hallbook.domain.models import Booking, BookingStatus, Hall, Section, UserProfile


class BookingSummary(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    # None until at least one booking has been approved or rejected.
    approval_rate: float | None


class HallUtilization(BaseModel):
    hall_id: str
    hall_name: str
    approved_bookings: int
    booked_hours: float


class SectionUsage(BaseModel):
    section_id: str | None
    section_name: str
    bookings: int


def booking_summary(bookings: Iterable[Booking]) -> BookingSummary:
    counts = Counter(b.status for b in bookings)
    approved = counts[BookingStatus.APPROVED]
    rejected = counts[BookingStatus.REJECTED]
    processed = approved + rejected
    return BookingSummary(
        total=sum(counts.values()),
        pending=counts[BookingStatus.PENDING],
        approved=approved,
        rejected=rejected,
        approval_rate=round(approved / processed, 4) if processed else None,
    )


def _duration_hours(booking: Booking) -> float:
    anchor = date(2000, 1, 1)
    delta = datetime.combine(anchor, booking.end_time) - datetime.combine(
        anchor, booking.start_time
    )
    return delta.total_seconds() / 3600


def hall_utilization(
    bookings: Iterable[Booking], halls: Iterable[Hall]
) -> list[HallUtilization]:
    """Approved bookings and booked hours per hall, busiest first."""
    approved = [b for b in bookings if b.status == BookingStatus.APPROVED]
    rows = []
    for hall in halls:
        mine = [b for b in approved if b.hall_id == hall.id]
        rows.append(
            HallUtilization(
                hall_id=hall.id,
                hall_name=hall.name,
                approved_bookings=len(mine),
                booked_hours=sum(_duration_hours(b) for b in mine),
            )
        )
    return sorted(rows, key=lambda r: (-r.booked_hours, r.hall_name))


def section_summary(
    bookings: Iterable[Booking],
    users: Iterable[UserProfile],
    sections: Iterable[Section],
) -> list[SectionUsage]:
    """Booking counts per owner section; unknown owners land in "Unassigned"."""
    names = {s.id: s.name for s in sections}
    section_of = {u.id: u.section_id for u in users if u.section_id in names}
    counts = Counter(section_of.get(b.user_id) for b in bookings)
    rows = [
        SectionUsage(
            section_id=section_id,
            section_name=names.get(section_id, "Unassigned"),
            bookings=count,
        )
        for section_id, count in counts.items()
    ]
    return sorted(rows, key=lambda r: (-r.bookings, r.section_name))
