"""
Bookings API tests.

Covers:
    - Booking CRUD (create generates milestones, soft delete)
    - List filters and pagination
    - Milestone instance listing with schedule, status PATCH, sync
    - Progress endpoint
"""

import pytest

from sbclc.models import db
from sbclc.models.booking import Booking


@pytest.fixture()
def trucking_steps(make_milestone):
    make_milestone("pickup", 1, estimated_days=1)
    make_milestone("delivery", 2, estimated_days=2, notify_before_days=1)


def _create(client, **overrides):
    payload = {
        "booking_number": "TRK-001",
        "service_type": "domestic_trucking",
        "booking_date": "2026-03-02",
        "client_name": "Acme Foods",
    }
    payload.update(overrides)
    return client.post("/api/bookings", json=payload)


# ═════════════════════════════════════════════════════════════════════════════
# Bookings CRUD
# ═════════════════════════════════════════════════════════════════════════════


def test_create_generates_milestones(client, trucking_steps):
    res = _create(client)
    assert res.status_code == 201
    data = res.get_json()
    assert data["status"] == "pending"
    assert [m["milestone_code"] for m in data["milestones"]] == ["pickup", "delivery"]
    assert all(m["status"] == "pending" for m in data["milestones"])


def test_create_accepts_dotted_date(client):
    res = _create(client, booking_date="02.03.2026")
    assert res.status_code == 201
    assert res.get_json()["booking_date"] == "2026-03-02"


def test_create_missing_fields_422(client):
    res = client.post("/api/bookings", json={"booking_number": "X"})
    assert res.status_code == 422
    assert set(res.get_json()["details"]) == {"service_type", "booking_date"}


def test_create_invalid_date_422(client):
    assert _create(client, booking_date="not a date").status_code == 422


def test_create_duplicate_number_409(client):
    _create(client)
    res = _create(client)
    assert res.status_code == 409


def test_list_filters_and_excludes_deleted(client):
    _create(client)
    _create(client, booking_number="IMP-001", service_type="import")
    gone = _create(client, booking_number="TRK-002").get_json()["booking_id"]
    client.delete(f"/api/bookings/{gone}")

    data = client.get("/api/bookings").get_json()
    assert data["total"] == 2

    data = client.get("/api/bookings?service_type=import").get_json()
    assert [b["booking_number"] for b in data["items"]] == ["IMP-001"]


def test_list_pagination(client):
    for n in range(3):
        _create(client, booking_number=f"TRK-10{n}")
    data = client.get("/api/bookings?limit=2&offset=0").get_json()
    assert data["total"] == 3
    assert len(data["items"]) == 2


@pytest.mark.parametrize("limit,expected", [("-5", 1), ("0", 1), ("abc", 3), ("5000", 3)])
def test_list_limit_is_clamped(client, limit, expected):
    for n in range(3):
        _create(client, booking_number=f"TRK-20{n}")
    data = client.get(f"/api/bookings?limit={limit}").get_json()
    assert data["total"] == 3
    assert len(data["items"]) == expected


def test_update_booking(client):
    bid = _create(client).get_json()["booking_id"]
    res = client.put(f"/api/bookings/{bid}", json={"status": "in_transit", "remarks": "Left depot"})
    assert res.status_code == 200
    assert res.get_json()["status"] == "in_transit"


def test_update_service_type_rejected(client):
    bid = _create(client).get_json()["booking_id"]
    res = client.put(f"/api/bookings/{bid}", json={"service_type": "import"})
    assert res.status_code == 422


def test_update_invalid_status_422(client):
    bid = _create(client).get_json()["booking_id"]
    assert client.put(f"/api/bookings/{bid}", json={"status": "lost"}).status_code == 422


def test_soft_delete(client, trucking_steps):
    bid = _create(client).get_json()["booking_id"]
    res = client.delete(f"/api/bookings/{bid}")
    assert res.status_code == 200
    assert client.get(f"/api/bookings/{bid}").status_code == 404
    booking = db.session.get(Booking, bid)
    assert booking.is_deleted is True
    assert len(booking.milestones) == 2


# ═════════════════════════════════════════════════════════════════════════════
# Milestone instances
# ═════════════════════════════════════════════════════════════════════════════


def test_list_milestones_with_schedule(client, trucking_steps):
    bid = _create(client).get_json()["booking_id"]
    res = client.get(f"/api/bookings/{bid}/milestones?today=2026-03-04")
    assert res.status_code == 200
    rows = res.get_json()
    assert [r["milestone_code"] for r in rows] == ["pickup", "delivery"]
    pickup, delivery = rows
    assert pickup["schedule"]["due_date"] == "2026-03-03"
    assert pickup["schedule"]["overdue"] is True
    assert delivery["schedule"]["due_date"] == "2026-03-05"
    assert delivery["schedule"]["reminder_due"] is True


def test_patch_milestone_status(client, trucking_steps):
    bid = _create(client).get_json()["booking_id"]
    res = client.patch(f"/api/bookings/{bid}/milestones/pickup", json={"status": "completed", "notes": "ok"})
    assert res.status_code == 200
    data = res.get_json()
    assert data["status"] == "completed"
    assert data["completed_at"] is not None
    assert data["notes"] == "ok"

    progress = client.get(f"/api/bookings/{bid}/progress").get_json()
    assert progress == {"booking_id": bid, "progress": 50, "completed": 1, "total": 2}


def test_patch_backwards_409(client, trucking_steps):
    bid = _create(client).get_json()["booking_id"]
    client.patch(f"/api/bookings/{bid}/milestones/pickup", json={"status": "completed"})
    res = client.patch(f"/api/bookings/{bid}/milestones/pickup", json={"status": "pending"})
    assert res.status_code == 409
    assert res.get_json()["code"] == "ERR_CONFLICT_STATE"


def test_patch_without_status_400(client, trucking_steps):
    bid = _create(client).get_json()["booking_id"]
    res = client.patch(f"/api/bookings/{bid}/milestones/pickup", json={"notes": "x"})
    assert res.status_code == 400


def test_patch_unknown_code_404(client, trucking_steps):
    bid = _create(client).get_json()["booking_id"]
    res = client.patch(f"/api/bookings/{bid}/milestones/teleport", json={"status": "completed"})
    assert res.status_code == 404


def test_sync_endpoint(client, make_milestone):
    make_milestone("pickup", 1)
    bid = _create(client).get_json()["booking_id"]
    make_milestone("delivery", 2)

    res = client.post(f"/api/bookings/{bid}/milestones/sync")
    assert res.status_code == 200
    assert [m["milestone_code"] for m in res.get_json()["added"]] == ["delivery"]
    assert client.get(f"/api/bookings/{bid}/progress").get_json()["total"] == 2


def test_progress_without_milestones_is_zero(client):
    bid = _create(client).get_json()["booking_id"]
    data = client.get(f"/api/bookings/{bid}/progress").get_json()
    assert data["progress"] == 0
    assert data["total"] == 0


def test_unknown_booking_404(client):
    assert client.get("/api/bookings/999/milestones").status_code == 404
    assert client.get("/api/bookings/999/progress").status_code == 404
