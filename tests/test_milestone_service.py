"""
Milestone definition service tests.

Covers:
    - Listing order (sequence_order asc, ties by id) and filters
    - Required fields and value validation
    - Duplicate code / duplicate active sequence → ConflictError
    - Partial update, not-found
    - Permanent delete keeps booking instance snapshots
    - Cached listings are invalidated by every write
"""

import pytest

from sbclc.core.exceptions import ConflictError, NotFoundError, ValidationError
from sbclc.models import db
from sbclc.models.milestone import BookingMilestone, MilestoneDefinition
from sbclc.services import milestone_service, milestone_tracker


# ═════════════════════════════════════════════════════════════════════════════
# Listing
# ═════════════════════════════════════════════════════════════════════════════


def test_list_sorted_by_sequence(make_milestone):
    make_milestone("delivered", 3)
    make_milestone("pickup", 1)
    make_milestone("in_transit", 2)

    rows = milestone_service.list_definitions("domestic_trucking")
    assert [r["milestone_code"] for r in rows] == ["pickup", "in_transit", "delivered"]
    assert [r["sequence_order"] for r in rows] == [1, 2, 3]


def test_list_filters_by_service_type(make_milestone):
    make_milestone("pickup", 1)
    make_milestone("vessel_arrival", 1, service_type="import")

    rows = milestone_service.list_definitions("import")
    assert [r["milestone_code"] for r in rows] == ["vessel_arrival"]
    assert len(milestone_service.list_definitions()) == 2


def test_list_excludes_inactive_by_default(make_milestone):
    make_milestone("pickup", 1)
    make_milestone("legacy_step", 2, is_active=False)

    assert [r["milestone_code"] for r in milestone_service.list_definitions("domestic_trucking")] == ["pickup"]
    all_rows = milestone_service.list_definitions("domestic_trucking", include_inactive=True)
    assert [r["milestone_code"] for r in all_rows] == ["pickup", "legacy_step"]


def test_list_unknown_service_type_rejected():
    with pytest.raises(ValidationError):
        milestone_service.list_definitions("air_freight")


def test_list_empty_service_type():
    assert milestone_service.list_definitions("domestic_forwarding") == []


# ═════════════════════════════════════════════════════════════════════════════
# Create
# ═════════════════════════════════════════════════════════════════════════════


def test_create_applies_defaults(make_milestone):
    d = make_milestone("pickup", 1)
    assert d.id is not None
    assert d.is_required is True
    assert d.is_active is True
    assert d.priority == "medium"
    assert d.to_dict()["estimated_days"] == 0


def test_create_missing_required_fields():
    with pytest.raises(ValidationError) as exc:
        milestone_service.create_definition({"milestone_code": "pickup"})
    assert set(exc.value.details) == {"milestone_name", "service_type", "sequence_order"}


@pytest.mark.parametrize("field,value", [
    ("sequence_order", 0),
    ("sequence_order", -2),
    ("sequence_order", "first"),
    ("sequence_order", 1.5),
    ("estimated_days", -1),
    ("notify_before_days", "soon"),
    ("priority", "critical"),
    ("service_type", "air_freight"),
    ("is_required", "maybe"),
])
def test_create_rejects_invalid_values(field, value):
    data = {
        "milestone_code": "pickup",
        "milestone_name": "Pickup",
        "service_type": "domestic_trucking",
        "sequence_order": 1,
        field: value,
    }
    with pytest.raises(ValidationError):
        milestone_service.create_definition(data)
    assert MilestoneDefinition.query.count() == 0


def test_create_duplicate_code_conflicts(make_milestone):
    make_milestone("pickup", 1)
    with pytest.raises(ConflictError) as exc:
        make_milestone("pickup", 2)
    assert exc.value.field == "milestone_code"


def test_same_code_allowed_in_other_service_type(make_milestone):
    make_milestone("documentation", 1)
    d = make_milestone("documentation", 1, service_type="import")
    assert d.service_type == "import"


def test_create_duplicate_active_sequence_conflicts(make_milestone):
    make_milestone("pickup", 1)
    with pytest.raises(ConflictError) as exc:
        make_milestone("loading", 1)
    assert exc.value.field == "sequence_order"


def test_inactive_definition_may_share_sequence(make_milestone):
    make_milestone("pickup", 1)
    d = make_milestone("old_pickup", 1, is_active=False)
    assert d.is_active is False


# ═════════════════════════════════════════════════════════════════════════════
# Update / get
# ═════════════════════════════════════════════════════════════════════════════


def test_update_partial_fields(make_milestone):
    d = make_milestone("pickup", 1)
    updated = milestone_service.update_definition(d.id, {
        "milestone_name": "Cargo Pickup",
        "estimated_days": 2,
        "priority": "urgent",
    })
    assert updated.milestone_name == "Cargo Pickup"
    assert updated.estimated_days == 2
    assert updated.priority == "urgent"
    assert updated.sequence_order == 1


def test_update_into_taken_sequence_conflicts(make_milestone):
    make_milestone("pickup", 1)
    d = make_milestone("delivery", 2)
    with pytest.raises(ConflictError):
        milestone_service.update_definition(d.id, {"sequence_order": 1})


def test_reactivating_into_taken_sequence_conflicts(make_milestone):
    make_milestone("pickup", 1)
    old = make_milestone("old_pickup", 1, is_active=False)
    with pytest.raises(ConflictError):
        milestone_service.update_definition(old.id, {"is_active": 1})


def test_update_no_fields(make_milestone):
    d = make_milestone("pickup", 1)
    with pytest.raises(ValidationError):
        milestone_service.update_definition(d.id, {"bogus": True})


def test_update_missing_definition():
    with pytest.raises(NotFoundError):
        milestone_service.update_definition(404, {"milestone_name": "X"})


def test_get_missing_definition():
    with pytest.raises(NotFoundError):
        milestone_service.get_definition(404)


# ═════════════════════════════════════════════════════════════════════════════
# Delete
# ═════════════════════════════════════════════════════════════════════════════


def test_delete_is_permanent(make_milestone):
    d = make_milestone("pickup", 1)
    milestone_service.delete_definition(d.id)
    assert MilestoneDefinition.query.count() == 0
    with pytest.raises(NotFoundError):
        milestone_service.delete_definition(d.id)


def test_delete_keeps_completed_instances(make_milestone, make_booking):
    d = make_milestone("pickup", 1)
    make_milestone("delivery", 2)
    booking = make_booking()
    milestone_tracker.update_instance_status(booking.id, "pickup", "completed")

    milestone_service.delete_definition(d.id)
    db.session.expire_all()

    inst = BookingMilestone.query.filter_by(booking_id=booking.id, milestone_code="pickup").one()
    assert inst.status == "completed"
    assert inst.completed_at is not None
    assert inst.milestone_id is None
    assert inst.to_dict()["is_orphaned"] is True
    assert len(milestone_tracker.list_instances(booking.id)) == 2


# ═════════════════════════════════════════════════════════════════════════════
# Cache
# ═════════════════════════════════════════════════════════════════════════════


def test_listing_reflects_writes(make_milestone):
    first = make_milestone("pickup", 1)
    assert len(milestone_service.list_definitions("domestic_trucking")) == 1

    make_milestone("delivery", 2)
    assert len(milestone_service.list_definitions("domestic_trucking")) == 2

    milestone_service.update_definition(first.id, {"milestone_name": "Cargo Pickup"})
    assert milestone_service.list_definitions("domestic_trucking")[0]["milestone_name"] == "Cargo Pickup"

    milestone_service.delete_definition(first.id)
    assert [r["milestone_code"] for r in milestone_service.list_definitions("domestic_trucking")] == ["delivery"]


def test_listing_is_served_from_cache(make_milestone):
    make_milestone("pickup", 1)
    milestone_service.list_definitions("domestic_trucking")

    # Bypass the service so nothing invalidates
    db.session.add(MilestoneDefinition(
        milestone_code="sneaky", milestone_name="Sneaky",
        service_type="domestic_trucking", sequence_order=9,
    ))
    db.session.commit()

    assert len(milestone_service.list_definitions("domestic_trucking")) == 1
