"""Booking lifecycle: creation, edits and the pending → approved/rejected machine."""

from __future__ import annotations

import logging
from datetime import date, time

from hallbook.domain.bus import EventBus
from hallbook.domain.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from hallbook.domain.events import (
    BookingApproved,
    BookingCancelled,
    BookingCreated,
    BookingEdited,
    BookingRejected,
)
from hallbook.domain.models import Booking, BookingStatus, ConflictResult, Hall, format_hhmm
from hallbook.repos.memory import BookingRepository, HallRepository
from hallbook.services.conflicts import check_conflict

logger = logging.getLogger(__name__)

# Approve and reject are only legal out of these states.
ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.APPROVED, BookingStatus.REJECTED}),
    BookingStatus.APPROVED: frozenset(),
    BookingStatus.REJECTED: frozenset(),
}


def validate_time_range(start_time: time, end_time: time) -> None:
    if start_time >= end_time:
        raise ValidationError(
            f"Start time {format_hhmm(start_time)} must be before end time "
            f"{format_hhmm(end_time)}"
        )


class BookingLifecycle:
    """Owns every state change a booking can go through.

    Conflict checks run here first for fast feedback; the repository repeats
    them atomically at write time, so a booking that loses a race is refused
    with the same ``ConflictError``.
    """

    def __init__(
        self,
        bus: EventBus,
        booking_repo: BookingRepository,
        hall_repo: HallRepository,
    ) -> None:
        self.bus = bus
        self.booking_repo = booking_repo
        self.hall_repo = hall_repo

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repo.get(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    def check_conflict(
        self,
        hall_id: str,
        on_date: date,
        start_time: time,
        end_time: time,
        exclude_booking_id: str | None = None,
    ) -> ConflictResult:
        """Validate the range, then run the same check submission uses."""
        validate_time_range(start_time, end_time)
        return check_conflict(
            self.booking_repo, hall_id, on_date, start_time, end_time, exclude_booking_id
        )

    # ------------------------------------------------------------------
    # Owner operations
    # ------------------------------------------------------------------

    def create_booking(
        self,
        owner_id: str,
        hall_id: str,
        on_date: date,
        start_time: time,
        end_time: time,
        purpose: str,
        meeting_link: str | None = None,
    ) -> Booking:
        self._require_bookable_hall(hall_id)
        validate_time_range(start_time, end_time)
        if not purpose.strip():
            raise ValidationError("Purpose is required")

        self._refuse_on_conflict(hall_id, on_date, start_time, end_time)

        booking = Booking(
            hall_id=hall_id,
            user_id=owner_id,
            date=on_date,
            start_time=start_time,
            end_time=end_time,
            purpose=purpose.strip(),
            meeting_link=meeting_link or None,
        )
        try:
            self.booking_repo.insert(booking)
        except ConflictError as exc:
            logger.warning(
                "Booking for hall %s on %s lost a race to %s",
                hall_id,
                on_date,
                exc.conflicting_booking.id,
            )
            raise

        logger.info(
            "Booking %s created by %s for hall %s on %s %s",
            booking.id,
            owner_id,
            hall_id,
            on_date,
            booking.time_range(),
        )
        self.bus.publish(BookingCreated(booking_id=booking.id, actor_id=owner_id))
        return booking

    def edit_booking(
        self,
        booking_id: str,
        requester_id: str,
        hall_id: str,
        on_date: date,
        start_time: time,
        end_time: time,
        purpose: str,
    ) -> Booking:
        booking = self.get_booking(booking_id)
        if booking.user_id != requester_id:
            logger.warning("User %s tried to edit booking %s", requester_id, booking_id)
            raise AuthorizationError("Only the booking owner may edit it")
        if booking.status != BookingStatus.PENDING:
            raise StateError(booking_id, booking.status, "edit")
        if hall_id != booking.hall_id:
            self._require_bookable_hall(hall_id)
        validate_time_range(start_time, end_time)
        if not purpose.strip():
            raise ValidationError("Purpose is required")

        self._refuse_on_conflict(hall_id, on_date, start_time, end_time, booking_id)

        fields = {
            "hall_id": hall_id,
            "date": on_date,
            "start_time": start_time,
            "end_time": end_time,
            "purpose": purpose.strip(),
        }
        changes = {
            name: str(value)
            for name, value in fields.items()
            if getattr(booking, name) != value
        }
        updated = self.booking_repo.update_fields(booking_id, fields)

        logger.info("Booking %s edited by %s: %s", booking_id, requester_id, changes)
        self.bus.publish(
            BookingEdited(booking_id=booking_id, actor_id=requester_id, changes=changes)
        )
        return updated

    def cancel_booking(
        self, booking_id: str, requester_id: str, requester_is_admin: bool
    ) -> None:
        if requester_is_admin:
            self.force_delete_booking(booking_id, requester_id)
            return

        booking = self.get_booking(booking_id)
        if booking.user_id != requester_id:
            logger.warning("User %s tried to cancel booking %s", requester_id, booking_id)
            raise AuthorizationError("Only the booking owner or an administrator may cancel it")
        if booking.status != BookingStatus.PENDING:
            raise StateError(booking_id, booking.status, "cancel")

        self.booking_repo.delete(booking_id, expected=BookingStatus.PENDING)
        logger.info("Booking %s cancelled by owner %s", booking_id, requester_id)
        self.bus.publish(
            BookingCancelled(
                booking_id=booking_id,
                actor_id=requester_id,
                previous_status=booking.status,
            )
        )

    # ------------------------------------------------------------------
    # Administrator operations
    # ------------------------------------------------------------------

    def approve_booking(self, booking_id: str, reviewer_id: str | None = None) -> Booking:
        booking = self._require_transition(booking_id, BookingStatus.APPROVED)
        updated = self.booking_repo.update_status(
            booking_id, BookingStatus.APPROVED, expected=booking.status
        )
        logger.info("Booking %s approved by %s", booking_id, reviewer_id)
        self.bus.publish(BookingApproved(booking_id=booking_id, actor_id=reviewer_id))
        return updated

    def reject_booking(
        self, booking_id: str, remarks: str | None, reviewer_id: str | None = None
    ) -> Booking:
        remarks = (remarks or "").strip()
        if not remarks:
            raise ValidationError("Remarks are required to reject a booking")
        booking = self._require_transition(booking_id, BookingStatus.REJECTED)
        updated = self.booking_repo.update_status(
            booking_id, BookingStatus.REJECTED, remarks=remarks, expected=booking.status
        )
        logger.info("Booking %s rejected by %s: %s", booking_id, reviewer_id, remarks)
        self.bus.publish(
            BookingRejected(booking_id=booking_id, remarks=remarks, actor_id=reviewer_id)
        )
        return updated

    def force_delete_booking(self, booking_id: str, admin_id: str) -> None:
        """Administrator override: remove a booking whatever its status."""
        booking = self.booking_repo.delete(booking_id)
        logger.info(
            "Booking %s (%s) deleted by administrator %s", booking_id, booking.status, admin_id
        )
        self.bus.publish(
            BookingCancelled(
                booking_id=booking_id,
                actor_id=admin_id,
                previous_status=booking.status,
                forced=booking.status != BookingStatus.PENDING,
            )
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_bookable_hall(self, hall_id: str) -> Hall:
        hall = self.hall_repo.get(hall_id)
        if hall is None:
            raise NotFoundError(f"Hall {hall_id} not found")
        if not hall.is_active:
            raise ValidationError(f"Hall {hall.name} is not accepting bookings")
        return hall

    def _require_transition(self, booking_id: str, target: BookingStatus) -> Booking:
        booking = self.get_booking(booking_id)
        if target not in ALLOWED_TRANSITIONS[booking.status]:
            verb = "approve" if target == BookingStatus.APPROVED else "reject"
            logger.warning(
                "Refused to %s booking %s in status %s", verb, booking_id, booking.status
            )
            raise StateError(booking_id, booking.status, verb)
        return booking

    def _refuse_on_conflict(
        self,
        hall_id: str,
        on_date: date,
        start_time: time,
        end_time: time,
        exclude_booking_id: str | None = None,
    ) -> None:
        result = check_conflict(
            self.booking_repo, hall_id, on_date, start_time, end_time, exclude_booking_id
        )
        if result.has_conflict:
            logger.warning(
                "Booking request for hall %s on %s conflicts with %s",
                hall_id,
                on_date,
                result.conflicting_booking.id,
            )
            raise ConflictError(result.conflicting_booking)
