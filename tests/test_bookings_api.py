"""End-to-end tests for the booking HTTP API."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from hallbook.domain.errors import DataAccessError
from hallbook.domain.models import Hall, HallType, Section, UserProfile
from hallbook.main import (
    app,
    audit_repo,
    booking_repo,
    hall_repo,
    section_repo,
    user_repo,
)

ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
U1 = {"X-User-Id": "u1"}
U2 = {"X-User-Id": "u2"}


@pytest.fixture(autouse=True)
def _clear_repos():
    """Reset in-memory repos before each test."""
    hall_repo._store.clear()
    booking_repo._store.clear()
    section_repo._store.clear()
    user_repo._store.clear()
    audit_repo._entries.clear()
    yield
    hall_repo._store.clear()
    booking_repo._store.clear()
    section_repo._store.clear()
    user_repo._store.clear()
    audit_repo._entries.clear()


@pytest.fixture()
def client():
    return TestClient(app)


# ---------------------------------------------------------------------------
# Stub data helpers
# ---------------------------------------------------------------------------


def _seed_hall(**overrides) -> Hall:
    fields = dict(
        name="Main Conference",
        type=HallType.CONFERENCE,
        capacity=60,
        facilities=["Projector"],
    )
    fields.update(overrides)
    hall = Hall(**fields)
    hall_repo.add(hall)
    return hall


def _booking_payload(hall: Hall, start: str = "09:00", end: str = "10:00", **extra) -> dict:
    payload = {
        "hall_id": hall.id,
        "date": "2026-03-10",
        "start_time": start,
        "end_time": end,
        "purpose": "Budget review",
    }
    payload.update(extra)
    return payload


def _create(client: TestClient, hall: Hall, headers=U1, **kwargs) -> dict:
    resp = client.post("/bookings", json=_booking_payload(hall, **kwargs), headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Tests: creation and wire format
# ---------------------------------------------------------------------------


def test_create_booking_wire_format(client: TestClient):
    hall = _seed_hall()

    body = _create(client, hall, meeting_link="https://meet.example.com/x")

    assert body["status"] == "pending"
    assert body["date"] == "2026-03-10"
    assert body["start_time"] == "09:00"
    assert body["end_time"] == "10:00"
    assert body["user_id"] == "u1"
    assert body["meeting_link"] == "https://meet.example.com/x"
    assert body["remarks"] is None


def test_create_requires_actor_header(client: TestClient):
    hall = _seed_hall()
    resp = client.post("/bookings", json=_booking_payload(hall))
    assert resp.status_code == 422


def test_create_inverted_range_is_validation_error(client: TestClient):
    hall = _seed_hall()
    resp = client.post(
        "/bookings", json=_booking_payload(hall, start="11:00", end="10:00"), headers=U1
    )
    assert resp.status_code == 422
    assert "must be before" in resp.json()["detail"]


def test_create_on_inactive_hall_refused(client: TestClient):
    hall = _seed_hall(is_active=False)
    resp = client.post("/bookings", json=_booking_payload(hall), headers=U1)
    assert resp.status_code == 422


def test_create_on_unknown_hall_is_404(client: TestClient):
    resp = client.post(
        "/bookings",
        json={**_booking_payload(_seed_hall()), "hall_id": "missing"},
        headers=U1,
    )
    assert resp.status_code == 404


def test_conflict_returns_409_with_details(client: TestClient):
    hall = _seed_hall()
    first = _create(client, hall)

    resp = client.post(
        "/bookings", json=_booking_payload(hall, start="09:30", end="10:30"), headers=U2
    )
    assert resp.status_code == 409
    body = resp.json()
    assert body["conflicting_booking"] == {
        "id": first["id"],
        "status": "pending",
        "start_time": "09:00",
        "end_time": "10:00",
    }
    assert "pending" in body["detail"]


@pytest.mark.parametrize(
    "start, end",
    [("09:30Z", "10:30Z"), ("11:00:45", "11:30"), ("11:00:45.5", "11:00:46"), ("9am", "10am")],
)
def test_create_refuses_times_outside_hhmm(client: TestClient, start, end):
    hall = _seed_hall()
    _create(client, hall)

    resp = client.post("/bookings", json=_booking_payload(hall, start=start, end=end), headers=U2)

    assert resp.status_code == 422
    assert len(booking_repo.list_all()) == 1


def test_create_refuses_timestamp_dates(client: TestClient):
    hall = _seed_hall()
    resp = client.post(
        "/bookings", json=_booking_payload(hall, date="2026-03-10T00:00:00Z"), headers=U1
    )
    assert resp.status_code == 422
    assert booking_repo.list_all() == []


def test_check_conflict_refuses_zoned_time(client: TestClient):
    hall = _seed_hall()
    _create(client, hall)

    resp = client.post(
        "/bookings/check-conflict",
        json={"hall_id": hall.id, "date": "2026-03-10", "start_time": "09:30Z", "end_time": "10:30"},
        headers=U2,
    )
    assert resp.status_code == 422


def test_edit_refuses_seconds(client: TestClient):
    hall = _seed_hall()
    booking = _create(client, hall)

    resp = client.patch(
        f"/bookings/{booking['id']}",
        json=_booking_payload(hall, start="09:00:30", end="10:00"),
        headers=U1,
    )
    assert resp.status_code == 422
    assert booking_repo.get(booking["id"]).start_time.strftime("%H:%M") == "09:00"


# ---------------------------------------------------------------------------
# Tests: advisory conflict check
# ---------------------------------------------------------------------------


def test_check_conflict_boundary_is_free(client: TestClient):
    hall = _seed_hall()
    _create(client, hall, start="10:00", end="11:00")

    resp = client.post(
        "/bookings/check-conflict",
        json={"hall_id": hall.id, "date": "2026-03-10", "start_time": "09:00", "end_time": "10:00"},
        headers=U2,
    )
    assert resp.status_code == 200
    assert resp.json() == {"has_conflict": False, "conflicting_booking": None}


def test_check_conflict_self_exclusion(client: TestClient):
    hall = _seed_hall()
    own = _create(client, hall)
    query = {"hall_id": hall.id, "date": "2026-03-10", "start_time": "09:00", "end_time": "10:00"}

    without = client.post("/bookings/check-conflict", json=query, headers=U1)
    assert without.json()["has_conflict"] is True
    assert without.json()["conflicting_booking"]["id"] == own["id"]

    excluded = client.post(
        "/bookings/check-conflict",
        json={**query, "exclude_booking_id": own["id"]},
        headers=U1,
    )
    assert excluded.json()["has_conflict"] is False


def test_check_conflict_rejects_inverted_range(client: TestClient):
    hall = _seed_hall()
    resp = client.post(
        "/bookings/check-conflict",
        json={"hall_id": hall.id, "date": "2026-03-10", "start_time": "10:00", "end_time": "10:00"},
        headers=U1,
    )
    assert resp.status_code == 422


def test_rejected_booking_does_not_block(client: TestClient):
    hall = _seed_hall()
    first = _create(client, hall)
    client.post(f"/bookings/{first['id']}/reject", json={"remarks": "Closed"}, headers=ADMIN)

    second = _create(client, hall, headers=U2)

    assert second["status"] == "pending"


# ---------------------------------------------------------------------------
# Tests: approve / reject
# ---------------------------------------------------------------------------


def test_approve_requires_admin(client: TestClient):
    hall = _seed_hall()
    booking = _create(client, hall)

    resp = client.post(f"/bookings/{booking['id']}/approve", headers=U1)
    assert resp.status_code == 403


def test_reject_without_remarks_is_422(client: TestClient):
    hall = _seed_hall()
    booking = _create(client, hall)

    resp = client.post(f"/bookings/{booking['id']}/reject", json={"remarks": " "}, headers=ADMIN)
    assert resp.status_code == 422
    assert booking_repo.get(booking["id"]).status == "pending"


def test_reject_stores_remarks(client: TestClient):
    hall = _seed_hall()
    booking = _create(client, hall)

    resp = client.post(
        f"/bookings/{booking['id']}/reject", json={"remarks": "Audit week"}, headers=ADMIN
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "rejected"
    assert resp.json()["remarks"] == "Audit week"


def test_approve_rejected_booking_is_state_error(client: TestClient):
    hall = _seed_hall()
    booking = _create(client, hall)
    client.post(f"/bookings/{booking['id']}/reject", json={"remarks": "No"}, headers=ADMIN)

    resp = client.post(f"/bookings/{booking['id']}/approve", headers=ADMIN)
    assert resp.status_code == 400
    assert "rejected" in resp.json()["detail"]


def test_approve_unknown_booking_is_404(client: TestClient):
    resp = client.post("/bookings/bogus-id/approve", headers=ADMIN)
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Tests: cancel / force delete
# ---------------------------------------------------------------------------


def test_cancel_by_stranger_is_forbidden(client: TestClient):
    hall = _seed_hall()
    booking = _create(client, hall)

    resp = client.delete(f"/bookings/{booking['id']}", headers=U2)
    assert resp.status_code == 403


def test_owner_cancels_pending(client: TestClient):
    hall = _seed_hall()
    booking = _create(client, hall)

    resp = client.delete(f"/bookings/{booking['id']}", headers=U1)
    assert resp.status_code == 204
    assert booking_repo.get(booking["id"]) is None


def test_owner_cannot_cancel_approved(client: TestClient):
    hall = _seed_hall()
    booking = _create(client, hall)
    client.post(f"/bookings/{booking['id']}/approve", headers=ADMIN)

    resp = client.delete(f"/bookings/{booking['id']}", headers=U1)
    assert resp.status_code == 400


def test_admin_force_delete_any_status(client: TestClient):
    hall = _seed_hall()
    booking = _create(client, hall)
    client.post(f"/bookings/{booking['id']}/approve", headers=ADMIN)

    resp = client.delete(f"/admin/bookings/{booking['id']}", headers=ADMIN)
    assert resp.status_code == 204
    assert booking_repo.get(booking["id"]) is None

    audit = client.get(f"/bookings/{booking['id']}/audit", headers=ADMIN).json()
    assert [e["action"] for e in audit] == ["created", "approved", "force_deleted"]


def test_force_delete_requires_admin(client: TestClient):
    hall = _seed_hall()
    booking = _create(client, hall)
    resp = client.delete(f"/admin/bookings/{booking['id']}", headers=U1)
    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Tests: listing and visibility
# ---------------------------------------------------------------------------


def test_users_see_only_their_bookings(client: TestClient):
    hall = _seed_hall()
    mine = _create(client, hall)
    _create(client, hall, headers=U2, start="11:00", end="12:00")

    own = client.get("/bookings", headers=U1).json()
    assert [b["id"] for b in own] == [mine["id"]]

    everything = client.get("/bookings", headers=ADMIN).json()
    assert len(everything) == 2


def test_list_bookings_status_filter_and_order(client: TestClient):
    hall = _seed_hall()
    early = _create(client, hall, date="2026-03-09")
    late = _create(client, hall, date="2026-03-11")
    client.post(f"/bookings/{early['id']}/approve", headers=ADMIN)

    listed = client.get("/bookings", headers=ADMIN).json()
    assert [b["id"] for b in listed] == [late["id"], early["id"]]

    approved = client.get("/bookings", params={"status": "approved"}, headers=ADMIN).json()
    assert [b["id"] for b in approved] == [early["id"]]


def test_get_booking_of_other_user_forbidden(client: TestClient):
    hall = _seed_hall()
    booking = _create(client, hall)

    assert client.get(f"/bookings/{booking['id']}", headers=U2).status_code == 403
    assert client.get(f"/bookings/{booking['id']}", headers=ADMIN).status_code == 200


# ---------------------------------------------------------------------------
# Tests: halls, sections, time slots, stats
# ---------------------------------------------------------------------------


def test_hall_listing_and_deactivation(client: TestClient):
    _seed_hall(name="Mini Hall A", type=HallType.MINI, capacity=10)
    main = _seed_hall()

    names = [h["name"] for h in client.get("/halls").json()]
    assert names == ["Main Conference", "Mini Hall A"]

    resp = client.patch(f"/halls/{main.id}", json={"is_active": False}, headers=ADMIN)
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False

    active = client.get("/halls", params={"active_only": True}).json()
    assert [h["name"] for h in active] == ["Mini Hall A"]


def test_create_hall_admin_only(client: TestClient):
    payload = {"name": "Board Room", "type": "mini", "capacity": 8, "facilities": ["TV"]}

    assert client.post("/halls", json=payload, headers=U1).status_code == 403

    resp = client.post("/halls", json=payload, headers=ADMIN)
    assert resp.status_code == 201
    assert resp.json()["type"] == "mini"
    assert resp.json()["is_active"] is True


def test_deactivated_hall_keeps_existing_bookings(client: TestClient):
    hall = _seed_hall()
    booking = _create(client, hall)

    client.patch(f"/halls/{hall.id}", json={"is_active": False}, headers=ADMIN)

    assert client.get(f"/bookings/{booking['id']}", headers=U1).status_code == 200
    resp = client.post("/bookings", json=_booking_payload(hall, start="12:00", end="13:00"), headers=U2)
    assert resp.status_code == 422


def test_sections_codes_unique(client: TestClient):
    resp = client.post("/sections", json={"name": "Finance", "code": "fin"}, headers=ADMIN)
    assert resp.status_code == 201
    assert resp.json()["code"] == "FIN"

    dup = client.post("/sections", json={"name": "Finance 2", "code": "FIN"}, headers=ADMIN)
    assert dup.status_code == 400


def test_time_slots_grid(client: TestClient):
    slots = client.get("/time-slots").json()
    assert slots[0] == {"value": "09:00", "label": "9:00 AM"}
    assert slots[-1] == {"value": "17:30", "label": "5:30 PM"}
    assert len(slots) == 18


def test_stats_summary_and_sections(client: TestClient):
    hall = _seed_hall()
    section = Section(name="Finance", code="FIN")
    section_repo.add(section)
    user_repo.add(UserProfile(id="u1", name="Uma", email="uma@example.com", section_id=section.id))

    empty = client.get("/stats/summary", headers=ADMIN).json()
    assert empty["approval_rate"] is None

    first = _create(client, hall)
    second = _create(client, hall, headers=U2, start="10:00", end="11:30")
    client.post(f"/bookings/{first['id']}/approve", headers=ADMIN)
    client.post(f"/bookings/{second['id']}/reject", json={"remarks": "No"}, headers=ADMIN)

    summary = client.get("/stats/summary", headers=ADMIN).json()
    assert summary["total"] == 2
    assert summary["approval_rate"] == 0.5

    halls = client.get("/stats/halls", headers=ADMIN).json()
    assert halls[0]["approved_bookings"] == 1
    assert halls[0]["booked_hours"] == 1.0

    sections = {row["section_name"]: row["bookings"] for row in client.get("/stats/sections", headers=ADMIN).json()}
    assert sections == {"Finance": 1, "Unassigned": 1}


# ---------------------------------------------------------------------------
# Tests: full request → review → lock scenario
# ---------------------------------------------------------------------------


def test_end_to_end_booking_flow(client: TestClient):
    hall = _seed_hall()

    u1_booking = _create(client, hall, start="09:00", end="10:00")
    assert u1_booking["status"] == "pending"

    check = client.post(
        "/bookings/check-conflict",
        json={"hall_id": hall.id, "date": "2026-03-10", "start_time": "09:30", "end_time": "10:30"},
        headers=U2,
    ).json()
    assert check["has_conflict"] is True
    assert check["conflicting_booking"]["status"] == "pending"
    assert check["conflicting_booking"]["start_time"] == "09:00"
    assert check["conflicting_booking"]["end_time"] == "10:00"

    refused = client.post(
        "/bookings", json=_booking_payload(hall, start="09:30", end="10:30"), headers=U2
    )
    assert refused.status_code == 409

    approved = client.post(f"/bookings/{u1_booking['id']}/approve", headers=ADMIN)
    assert approved.json()["status"] == "approved"

    edit = client.patch(
        f"/bookings/{u1_booking['id']}",
        json=_booking_payload(hall, start="11:00", end="12:00"),
        headers=U1,
    )
    assert edit.status_code == 400
    assert booking_repo.get(u1_booking["id"]).status == "approved"


def test_store_failure_maps_to_503(client: TestClient, monkeypatch):
    hall = _seed_hall()

    def _broken(*args, **kwargs):
        raise DataAccessError("bookings table unreachable")

    monkeypatch.setattr(booking_repo, "list_active", _broken)

    resp = client.post("/bookings", json=_booking_payload(hall), headers=U1)
    assert resp.status_code == 503
    assert resp.json()["detail"] == "bookings table unreachable"
