"""Domain models for the hall booking system."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from enum import StrEnum

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator


class BookingStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# Bookings in these states hold their slot; rejected ones are inert history.
ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.APPROVED})


class HallType(StrEnum):
    CONFERENCE = "conference"
    MINI = "mini"


class UserRole(StrEnum):
    ADMIN = "admin"
    USER = "user"


class AuditAction(StrEnum):
    CREATED = "created"
    EDITED = "edited"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    FORCE_DELETED = "force_deleted"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def parse_hhmm(raw: str) -> time:
    """Parse a 24-hour ``HH:MM`` string. Seconds and zone offsets are refused."""
    try:
        return datetime.strptime(raw.strip(), "%H:%M").time()
    except ValueError as exc:
        raise ValueError(f"Invalid time {raw!r}, expected HH:MM") from exc


def parse_local_date(raw: str) -> date:
    """Parse ``YYYY-MM-DD`` as a civil calendar date.

    No time zone is involved, so the day can never shift.
    """
    try:
        return datetime.strptime(raw.strip(), "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValueError(f"Invalid date {raw!r}, expected YYYY-MM-DD") from exc


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class Hall(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str = Field(min_length=1)
    type: HallType = HallType.CONFERENCE
    capacity: int = Field(gt=0)
    description: str = ""
    facilities: list[str] = Field(default_factory=list)
    is_active: bool = True


class Section(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str = Field(min_length=1)
    code: str = Field(min_length=1, max_length=16)

    @field_validator("code")
    @classmethod
    def _upper_code(cls, value: str) -> str:
        return value.strip().upper()


class UserProfile(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    email: str
    role: UserRole = UserRole.USER
    section_id: str | None = None


class Booking(BaseModel):
    id: str = Field(default_factory=_new_id)
    hall_id: str
    user_id: str
    date: date
    start_time: time
    end_time: time
    purpose: str
    meeting_link: str | None = None
    status: BookingStatus = BookingStatus.PENDING
    remarks: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _end_after_start(self) -> Booking:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    @field_serializer("start_time", "end_time")
    def _serialize_time(self, value: time) -> str:
        return format_hhmm(value)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def time_range(self) -> str:
        return f"{format_hhmm(self.start_time)} - {format_hhmm(self.end_time)}"


class AuditLogEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str | None = None
    booking_id: str
    action: AuditAction
    details: str = ""
    timestamp: datetime = Field(default_factory=_utcnow)


class ConflictResult(BaseModel):
    has_conflict: bool
    conflicting_booking: Booking | None = None


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class _SlotRequest(BaseModel):
    """Hall, calendar day and ``HH:MM`` range as they arrive on the wire."""

    hall_id: str
    date: date
    start_time: time
    end_time: time

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: object) -> date:
        if isinstance(value, str):
            return parse_local_date(value)
        if isinstance(value, date) and not isinstance(value, datetime):
            return value
        raise ValueError("expected a YYYY-MM-DD date")

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _parse_time(cls, value: object) -> time:
        if isinstance(value, str):
            return parse_hhmm(value)
        if isinstance(value, time) and value == time(value.hour, value.minute):
            return value
        raise ValueError("expected an HH:MM time")


class ConflictCheckRequest(_SlotRequest):
    exclude_booking_id: str | None = None


class CreateBookingRequest(_SlotRequest):
    purpose: str = Field(min_length=1)
    meeting_link: str | None = None


class EditBookingRequest(_SlotRequest):
    purpose: str = Field(min_length=1)
