"""FastAPI application — entry point for the hall booking service."""

from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from hallbook.config import get_settings
from hallbook.domain.bus import EventBus
from hallbook.domain.errors import (
    AuthorizationError,
    BookingError,
    ConflictError,
    DataAccessError,
    NotFoundError,
    StateError,
    ValidationError,
)
from hallbook.domain.handlers import HandlerRegistry
from hallbook.domain.models import (
    AuditLogEntry,
    Booking,
    BookingStatus,
    ConflictCheckRequest,
    ConflictResult,
    CreateBookingRequest,
    EditBookingRequest,
    Hall,
    HallCreateRequest,
    HallUpdateRequest,
    RejectBookingRequest,
    Section,
    SectionCreateRequest,
    TimeSlot,
    UserProfile,
    UserRole,
)
from hallbook.repos.memory import (
    AuditLogRepository,
    BookingRepository,
    HallRepository,
    SectionRepository,
    UserRepository,
    seed_demo_data,
)
from hallbook.services.lifecycle import BookingLifecycle
from hallbook.services.reports import (
    BookingSummary,
    HallUtilization,
    SectionUsage,
    booking_summary,
    hall_utilization,
    section_summary,
)
from hallbook.services.timeslots import time_slots

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_title)

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
hall_repo = HallRepository()
booking_repo = BookingRepository()
section_repo = SectionRepository()
user_repo = UserRepository()
audit_repo = AuditLogRepository()

handler_registry = HandlerRegistry(
    bus=event_bus,
    booking_repo=booking_repo,
    audit_repo=audit_repo,
)
lifecycle = BookingLifecycle(bus=event_bus, booking_repo=booking_repo, hall_repo=hall_repo)

if settings.seed_demo_data:
    seed_demo_data(hall_repo, section_repo, user_repo)
    logger.info("Loaded demo halls, sections and users")


# ── Actor resolution ──────────────────────────────────────────────────
# Authentication lives outside this service; the gateway in front of it
# forwards the caller's id and role as headers.


class Actor(BaseModel):
    user_id: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def current_actor(
    x_user_id: str = Header(min_length=1),
    x_user_role: UserRole = Header(UserRole.USER),
) -> Actor:
    return Actor(user_id=x_user_id, role=x_user_role)


def require_admin(actor: Actor = Depends(current_actor)) -> Actor:
    if not actor.is_admin:
        raise AuthorizationError("Administrator role required")
    return actor


# ── Error mapping ─────────────────────────────────────────────────────

_STATUS_CODES: dict[type[BookingError], int] = {
    ValidationError: 422,
    StateError: 400,
    AuthorizationError: 403,
    NotFoundError: 404,
    DataAccessError: 503,
}


@app.exception_handler(ConflictError)
async def _conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
    booking = exc.conflicting_booking
    return JSONResponse(
        status_code=409,
        content={
            "detail": str(exc),
            "conflicting_booking": {
                "id": booking.id,
                "status": booking.status.value,
                "start_time": booking.start_time.strftime("%H:%M"),
                "end_time": booking.end_time.strftime("%H:%M"),
            },
        },
    )


@app.exception_handler(BookingError)
async def _booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    status_code = next(
        (code for cls, code in _STATUS_CODES.items() if isinstance(exc, cls)), 400
    )
    if isinstance(exc, DataAccessError):
        logger.error("Data access failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# ── Routes: halls, sections, users, time slots ────────────────────────


@app.get("/halls", response_model=list[Hall])
def list_halls(active_only: bool = False) -> list[Hall]:
    """Return halls ordered by name, optionally only those taking bookings."""
    return hall_repo.list_active() if active_only else hall_repo.list_all()


@app.get("/halls/{hall_id}", response_model=Hall)
def get_hall(hall_id: str) -> Hall:
    hall = hall_repo.get(hall_id)
    if hall is None:
        raise HTTPException(status_code=404, detail="Hall not found")
    return hall


@app.post("/halls", response_model=Hall, status_code=201)
def create_hall(body: HallCreateRequest, admin: Actor = Depends(require_admin)) -> Hall:
    hall = Hall(**body.model_dump())
    hall_repo.add(hall)
    logger.info("Hall %s (%s) created by %s", hall.id, hall.name, admin.user_id)
    return hall


@app.patch("/halls/{hall_id}", response_model=Hall)
def update_hall(
    hall_id: str, body: HallUpdateRequest, admin: Actor = Depends(require_admin)
) -> Hall:
    """Edit a hall; send ``is_active: false`` to stop new bookings."""
    hall = hall_repo.update(hall_id, body.model_dump(exclude_unset=True, exclude_none=True))
    logger.info("Hall %s updated by %s", hall_id, admin.user_id)
    return hall


@app.get("/sections", response_model=list[Section])
def list_sections() -> list[Section]:
    return section_repo.list_all()


@app.post("/sections", response_model=Section, status_code=201)
def create_section(
    body: SectionCreateRequest, admin: Actor = Depends(require_admin)
) -> Section:
    section = Section(name=body.name, code=body.code)
    if section_repo.get_by_code(section.code) is not None:
        raise HTTPException(status_code=400, detail=f"Section code {section.code} already exists")
    section_repo.add(section)
    return section


@app.get("/users", response_model=list[UserProfile])
def list_users(admin: Actor = Depends(require_admin)) -> list[UserProfile]:
    return user_repo.list_all()


@app.post("/users", response_model=UserProfile, status_code=201)
def register_user(body: UserProfile, admin: Actor = Depends(require_admin)) -> UserProfile:
    """Register the profile behind an authenticated id (used for section reports)."""
    if body.section_id is not None and section_repo.get(body.section_id) is None:
        raise HTTPException(status_code=404, detail="Section not found")
    user_repo.add(body)
    return body


@app.get("/time-slots", response_model=list[TimeSlot])
def list_time_slots() -> list[TimeSlot]:
    return time_slots(settings.slot_start, settings.slot_end, settings.slot_minutes)


# ── Routes: bookings ──────────────────────────────────────────────────


@app.post("/bookings/check-conflict", response_model=ConflictResult)
def check_booking_conflict(
    body: ConflictCheckRequest, actor: Actor = Depends(current_actor)
) -> ConflictResult:
    """Advisory check for live form feedback; submission re-checks authoritatively."""
    return lifecycle.check_conflict(
        body.hall_id, body.date, body.start_time, body.end_time, body.exclude_booking_id
    )


@app.post("/bookings", response_model=Booking, status_code=201)
def create_booking(
    body: CreateBookingRequest, actor: Actor = Depends(current_actor)
) -> Booking:
    return lifecycle.create_booking(
        owner_id=actor.user_id,
        hall_id=body.hall_id,
        on_date=body.date,
        start_time=body.start_time,
        end_time=body.end_time,
        purpose=body.purpose,
        meeting_link=body.meeting_link,
    )


@app.get("/bookings", response_model=list[Booking])
def list_bookings(
    status: BookingStatus | None = None, actor: Actor = Depends(current_actor)
) -> list[Booking]:
    """Administrators see every booking; everyone else sees their own."""
    bookings = (
        booking_repo.list_all() if actor.is_admin else booking_repo.list_for_user(actor.user_id)
    )
    if status is not None:
        bookings = [b for b in bookings if b.status == status]
    return bookings


def _visible_booking(booking_id: str, actor: Actor) -> Booking:
    booking = lifecycle.get_booking(booking_id)
    if not actor.is_admin and booking.user_id != actor.user_id:
        raise AuthorizationError("Not allowed to view this booking")
    return booking


@app.get("/bookings/{booking_id}", response_model=Booking)
def get_booking(booking_id: str, actor: Actor = Depends(current_actor)) -> Booking:
    return _visible_booking(booking_id, actor)


@app.patch("/bookings/{booking_id}", response_model=Booking)
def edit_booking(
    booking_id: str, body: EditBookingRequest, actor: Actor = Depends(current_actor)
) -> Booking:
    return lifecycle.edit_booking(
        booking_id=booking_id,
        requester_id=actor.user_id,
        hall_id=body.hall_id,
        on_date=body.date,
        start_time=body.start_time,
        end_time=body.end_time,
        purpose=body.purpose,
    )


@app.post("/bookings/{booking_id}/approve", response_model=Booking)
def approve_booking(booking_id: str, admin: Actor = Depends(require_admin)) -> Booking:
    return lifecycle.approve_booking(booking_id, reviewer_id=admin.user_id)


@app.post("/bookings/{booking_id}/reject", response_model=Booking)
def reject_booking(
    booking_id: str, body: RejectBookingRequest, admin: Actor = Depends(require_admin)
) -> Booking:
    return lifecycle.reject_booking(booking_id, body.remarks, reviewer_id=admin.user_id)


@app.delete("/bookings/{booking_id}", status_code=204)
def cancel_booking(booking_id: str, actor: Actor = Depends(current_actor)) -> None:
    lifecycle.cancel_booking(booking_id, actor.user_id, actor.is_admin)


@app.delete("/admin/bookings/{booking_id}", status_code=204)
def force_delete_booking(booking_id: str, admin: Actor = Depends(require_admin)) -> None:
    """Remove a booking in any status (administrator override)."""
    lifecycle.force_delete_booking(booking_id, admin.user_id)


# ── Routes: audit log and reports ─────────────────────────────────────


@app.get("/bookings/{booking_id}/audit", response_model=list[AuditLogEntry])
def get_booking_audit(
    booking_id: str, actor: Actor = Depends(current_actor)
) -> list[AuditLogEntry]:
    if not actor.is_admin:
        _visible_booking(booking_id, actor)
    return audit_repo.list_for_booking(booking_id)


@app.get("/audit-log", response_model=list[AuditLogEntry])
def list_audit_log(admin: Actor = Depends(require_admin)) -> list[AuditLogEntry]:
    return audit_repo.list_all()


@app.get("/stats/summary", response_model=BookingSummary)
def stats_summary(admin: Actor = Depends(require_admin)) -> BookingSummary:
    return booking_summary(booking_repo.list_all())


@app.get("/stats/halls", response_model=list[HallUtilization])
def stats_halls(admin: Actor = Depends(require_admin)) -> list[HallUtilization]:
    return hall_utilization(booking_repo.list_all(), hall_repo.list_all())


@app.get("/stats/sections", response_model=list[SectionUsage])
def stats_sections(admin: Actor = Depends(require_admin)) -> list[SectionUsage]:
    return section_summary(booking_repo.list_all(), user_repo.list_all(), section_repo.list_all())
