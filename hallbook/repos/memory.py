"""In-memory repositories for halls, bookings, sections, users and audit entries."""

from __future__ import annotations

import threading
from datetime import date, datetime, timezone
from typing import Any

from hallbook.domain.errors import ConflictError, NotFoundError, StateError
from hallbook.domain.models import (
    ACTIVE_STATUSES,
    AuditLogEntry,
    Booking,
    BookingStatus,
    Hall,
    HallType,
    Section,
    UserProfile,
    UserRole,
)
from hallbook.services.conflicts import find_conflicts

# Only these booking fields may change through an owner edit.
EDITABLE_FIELDS = frozenset({"hall_id", "date", "start_time", "end_time", "purpose"})


class HallRepository:
    """Dict-backed store for Hall instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Hall] = {}

    def add(self, hall: Hall) -> None:
        self._store[hall.id] = hall

    def get(self, hall_id: str) -> Hall | None:
        return self._store.get(hall_id)

    def list_all(self) -> list[Hall]:
        return sorted(self._store.values(), key=lambda h: h.name)

    def list_active(self) -> list[Hall]:
        return [h for h in self.list_all() if h.is_active]

    def update(self, hall_id: str, fields: dict[str, Any]) -> Hall:
        hall = self._store.get(hall_id)
        if hall is None:
            raise NotFoundError(f"Hall {hall_id} not found")
        updated = hall.model_copy(update=fields)
        self._store[hall_id] = updated
        return updated


class BookingRepository:
    """Dict-backed store for Booking instances, keyed by id.

    Writes that can break the exclusion guarantee (insert, field update),
    status writes and deletes run under a single lock: the overlap and status
    checks made here are the authoritative ones, whatever the caller checked
    beforehand.
    """

    def __init__(self) -> None:
        self._store: dict[str, Booking] = {}
        self._lock = threading.Lock()

    def get(self, booking_id: str) -> Booking | None:
        return self._store.get(booking_id)

    def list_all(self) -> list[Booking]:
        """Return every booking, most recent date first."""
        return sorted(
            list(self._store.values()),
            key=lambda b: (b.date, b.start_time),
            reverse=True,
        )

    def list_for_user(self, user_id: str) -> list[Booking]:
        return [b for b in self.list_all() if b.user_id == user_id]

    def list_active(
        self, hall_id: str, on_date: date, exclude_id: str | None = None
    ) -> list[Booking]:
        """Return pending/approved bookings for a hall on a calendar date."""
        return self._active_rows(hall_id, on_date, exclude_id)

    def _active_rows(
        self, hall_id: str, on_date: date, exclude_id: str | None
    ) -> list[Booking]:
        return [
            b
            for b in list(self._store.values())
            if b.hall_id == hall_id
            and b.date == on_date
            and b.status in ACTIVE_STATUSES
            and b.id != exclude_id
        ]

    def insert(self, booking: Booking) -> Booking:
        with self._lock:
            self._ensure_slot_free(booking)
            self._store[booking.id] = booking
        return booking

    def update_fields(self, booking_id: str, fields: dict[str, Any]) -> Booking:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not editable: {', '.join(sorted(unknown))}")
        with self._lock:
            current = self._require(booking_id)
            if current.status != BookingStatus.PENDING:
                raise StateError(booking_id, current.status, "edit")
            # model_validate re-runs the start < end check on the merged record.
            updated = Booking.model_validate(
                {**current.model_dump(), **fields, "updated_at": _utcnow()}
            )
            self._ensure_slot_free(updated)
            self._store[booking_id] = updated
        return updated

    def update_status(
        self,
        booking_id: str,
        status: BookingStatus,
        remarks: str | None = None,
        expected: BookingStatus = BookingStatus.PENDING,
    ) -> Booking:
        """Compare-and-set the status; raise StateError if it moved underneath us."""
        with self._lock:
            current = self._require(booking_id)
            if current.status != expected:
                raise StateError(booking_id, current.status, _verb(status))
            update: dict[str, Any] = {"status": status, "updated_at": _utcnow()}
            if remarks:
                update["remarks"] = remarks
            updated = current.model_copy(update=update)
            self._store[booking_id] = updated
        return updated

    def delete(self, booking_id: str, expected: BookingStatus | None = None) -> Booking:
        """Remove a booking; with *expected*, only if it is still in that status."""
        with self._lock:
            current = self._require(booking_id)
            if expected is not None and current.status != expected:
                raise StateError(booking_id, current.status, "cancel")
            del self._store[booking_id]
        return current

    def _require(self, booking_id: str) -> Booking:
        booking = self._store.get(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    def _ensure_slot_free(self, booking: Booking) -> None:
        if not booking.is_active:
            return
        others = self._active_rows(booking.hall_id, booking.date, booking.id)
        conflicts = find_conflicts(booking.start_time, booking.end_time, others)
        if conflicts:
            raise ConflictError(conflicts[0])


class SectionRepository:
    """Dict-backed store for Section instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Section] = {}

    def add(self, section: Section) -> None:
        self._store[section.id] = section

    def get(self, section_id: str) -> Section | None:
        return self._store.get(section_id)

    def get_by_code(self, code: str) -> Section | None:
        code = code.strip().upper()
        return next((s for s in self._store.values() if s.code == code), None)

    def list_all(self) -> list[Section]:
        return sorted(self._store.values(), key=lambda s: s.name)


class UserRepository:
    """Dict-backed store for UserProfile instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, UserProfile] = {}

    def add(self, user: UserProfile) -> None:
        self._store[user.id] = user

    def get(self, user_id: str) -> UserProfile | None:
        return self._store.get(user_id)

    def list_all(self) -> list[UserProfile]:
        return list(self._store.values())


class AuditLogRepository:
    """List-backed store for AuditLogEntry instances."""

    def __init__(self) -> None:
        self._entries: list[AuditLogEntry] = []

    def add(self, entry: AuditLogEntry) -> None:
        self._entries.append(entry)

    def list_all(self) -> list[AuditLogEntry]:
        return sorted(self._entries, key=lambda e: e.timestamp)

    def list_for_booking(self, booking_id: str) -> list[AuditLogEntry]:
        return [e for e in self.list_all() if e.booking_id == booking_id]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _verb(status: BookingStatus) -> str:
    return {BookingStatus.APPROVED: "approve", BookingStatus.REJECTED: "reject"}.get(
        status, f"set {status} on"
    )


# ---------------------------------------------------------------------------
# Seed data – a few halls, sections and users for local runs
# ---------------------------------------------------------------------------


def seed_demo_data(
    hall_repo: HallRepository,
    section_repo: SectionRepository,
    user_repo: UserRepository,
) -> None:
    hall_repo.add(
        Hall(
            name="Main Conference",
            type=HallType.CONFERENCE,
            capacity=60,
            description="Ground floor hall with stage",
            facilities=["Projector", "Video conferencing", "Sound system"],
        )
    )
    hall_repo.add(
        Hall(
            name="Mini Hall A",
            type=HallType.MINI,
            capacity=12,
            description="Small meeting room, first floor",
            facilities=["Whiteboard", "TV screen"],
        )
    )
    hall_repo.add(
        Hall(
            name="Mini Hall B",
            type=HallType.MINI,
            capacity=10,
            facilities=["Whiteboard"],
            is_active=False,
        )
    )

    admin_section = Section(name="Administration", code="ADM")
    it_section = Section(name="Information Technology", code="IT")
    section_repo.add(admin_section)
    section_repo.add(it_section)

    user_repo.add(
        UserProfile(
            name="Facilities Admin",
            email="admin@example.com",
            role=UserRole.ADMIN,
            section_id=admin_section.id,
        )
    )
    user_repo.add(
        UserProfile(name="Demo User", email="user@example.com", section_id=it_section.id)
    )
