"""Domain events emitted during the booking lifecycle."""

from __future__ import annotations

from pydantic import BaseModel


class BookingCreated(BaseModel):
    """Fired when a new pending booking is persisted."""

    booking_id: str
    actor_id: str


class BookingEdited(BaseModel):
    """Fired when the owner changes hall, date, time or purpose."""

    booking_id: str
    actor_id: str
    changes: dict[str, str]


class BookingApproved(BaseModel):
    booking_id: str
    actor_id: str | None = None


class BookingRejected(BaseModel):
    booking_id: str
    remarks: str
    actor_id: str | None = None


class BookingCancelled(BaseModel):
    """Fired after a booking is removed, by its owner or by an administrator.

    ``forced`` marks an administrator override on a non-pending booking.
    """

    booking_id: str
    actor_id: str
    previous_status: str
    forced: bool = False
