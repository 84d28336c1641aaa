"""Domain event handlers — wired up at application startup."""

from __future__ import annotations

from hallbook.domain.bus import EventBus
from hallbook.domain.events import (
    BookingApproved,
    BookingCancelled,
    BookingCreated,
    BookingEdited,
    BookingRejected,
)
from hallbook.domain.models import AuditAction, AuditLogEntry
from hallbook.repos.memory import AuditLogRepository, BookingRepository


class HandlerRegistry:
    """Wires audit-log handlers to the bus."""

    def __init__(
        self,
        bus: EventBus,
        booking_repo: BookingRepository,
        audit_repo: AuditLogRepository,
    ) -> None:
        self.bus = bus
        self.booking_repo = booking_repo
        self.audit_repo = audit_repo
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(BookingCreated, self.on_booking_created)
        self.bus.subscribe(BookingEdited, self.on_booking_edited)
        self.bus.subscribe(BookingApproved, self.on_booking_approved)
        self.bus.subscribe(BookingRejected, self.on_booking_rejected)
        self.bus.subscribe(BookingCancelled, self.on_booking_cancelled)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_booking_created(self, event: BookingCreated) -> None:
        stored = self.booking_repo.get(event.booking_id)
        if stored is None:
            return

        self.audit_repo.add(
            AuditLogEntry(
                user_id=event.actor_id,
                booking_id=event.booking_id,
                action=AuditAction.CREATED,
                details=(
                    f"Requested hall {stored.hall_id} on {stored.date.isoformat()} "
                    f"{stored.time_range()}: {stored.purpose}"
                ),
            )
        )

    def on_booking_edited(self, event: BookingEdited) -> None:
        details = ", ".join(f"{k}={v}" for k, v in sorted(event.changes.items()))
        self.audit_repo.add(
            AuditLogEntry(
                user_id=event.actor_id,
                booking_id=event.booking_id,
                action=AuditAction.EDITED,
                details=details or "No changes",
            )
        )

    def on_booking_approved(self, event: BookingApproved) -> None:
        self.audit_repo.add(
            AuditLogEntry(
                user_id=event.actor_id,
                booking_id=event.booking_id,
                action=AuditAction.APPROVED,
            )
        )

    def on_booking_rejected(self, event: BookingRejected) -> None:
        self.audit_repo.add(
            AuditLogEntry(
                user_id=event.actor_id,
                booking_id=event.booking_id,
                action=AuditAction.REJECTED,
                details=event.remarks,
            )
        )

    def on_booking_cancelled(self, event: BookingCancelled) -> None:
        # Forced deletes are the administrator override on decided bookings.
        action = AuditAction.FORCE_DELETED if event.forced else AuditAction.CANCELLED
        self.audit_repo.add(
            AuditLogEntry(
                user_id=event.actor_id,
                booking_id=event.booking_id,
                action=action,
                details=f"Previous status: {event.previous_status}",
            )
        )
