"""
Milestone definitions API tests.

Covers:
    - GET list with serviceType / include_inactive filters
    - POST create (201), validation (422), duplicates (409), bad body (400)
    - GET/PUT/DELETE by id, 404 on unknown ids
    - master_setup permission enforcement
"""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from sbclc.models import db
from sbclc.models.milestone import MilestoneDefinition


def _payload(**overrides):
    data = {
        "milestone_code": "pickup",
        "milestone_name": "Cargo Pickup",
        "service_type": "domestic_trucking",
        "sequence_order": 1,
        "estimated_days": 1,
        "notify_before_days": 0,
        "priority": "high",
    }
    data.update(overrides)
    return data


def test_create_and_get(client):
    res = client.post("/api/milestones", json=_payload())
    assert res.status_code == 201
    created = res.get_json()
    assert created["message"] == "Milestone created"
    assert created["milestone_code"] == "pickup"
    assert created["is_required"] == 1
    assert created["priority"] == "high"

    res = client.get(f"/api/milestones/{created['milestone_id']}")
    assert res.status_code == 200
    assert res.get_json()["milestone_name"] == "Cargo Pickup"


def test_list_by_service_type_in_order(client):
    client.post("/api/milestones", json=_payload(milestone_code="delivery", sequence_order=2))
    client.post("/api/milestones", json=_payload())
    client.post("/api/milestones", json=_payload(milestone_code="vessel_arrival", service_type="import"))

    res = client.get("/api/milestones?serviceType=domestic_trucking")
    assert res.status_code == 200
    assert [m["milestone_code"] for m in res.get_json()] == ["pickup", "delivery"]

    res = client.get("/api/milestones?service_type=import")
    assert [m["milestone_code"] for m in res.get_json()] == ["vessel_arrival"]


def test_list_include_inactive(client):
    client.post("/api/milestones", json=_payload())
    client.post("/api/milestones", json=_payload(milestone_code="legacy", sequence_order=2, is_active=0))

    assert len(client.get("/api/milestones?serviceType=domestic_trucking").get_json()) == 1
    res = client.get("/api/milestones?serviceType=domestic_trucking&include_inactive=1")
    assert len(res.get_json()) == 2


def test_list_unknown_service_type_422(client):
    res = client.get("/api/milestones?serviceType=air_freight")
    assert res.status_code == 422
    assert res.get_json()["code"] == "ERR_VALIDATION_CONSTRAINT"


def test_create_missing_fields_422(client):
    res = client.post("/api/milestones", json={"milestone_code": "pickup"})
    assert res.status_code == 422
    assert "milestone_name" in res.get_json()["details"]


def test_create_negative_days_422(client):
    res = client.post("/api/milestones", json=_payload(estimated_days=-3))
    assert res.status_code == 422
    assert res.get_json()["details"] == {"estimated_days": "must not be negative"}


def test_create_duplicate_code_409(client):
    client.post("/api/milestones", json=_payload())
    res = client.post("/api/milestones", json=_payload(sequence_order=5))
    assert res.status_code == 409
    assert res.get_json()["details"]["field"] == "milestone_code"


def test_create_duplicate_sequence_409(client):
    client.post("/api/milestones", json=_payload())
    res = client.post("/api/milestones", json=_payload(milestone_code="loading"))
    assert res.status_code == 409
    assert res.get_json()["details"]["field"] == "sequence_order"


def test_create_non_json_400(client):
    res = client.post("/api/milestones", data="x", content_type="text/plain")
    assert res.status_code == 400
    assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"


def test_update(client):
    mid = client.post("/api/milestones", json=_payload()).get_json()["milestone_id"]
    res = client.put(f"/api/milestones/{mid}", json={"milestone_name": "Pickup at Shipper", "is_required": 0})
    assert res.status_code == 200
    data = res.get_json()
    assert data["milestone_name"] == "Pickup at Shipper"
    assert data["is_required"] == 0


def test_update_unknown_404(client):
    res = client.put("/api/milestones/999", json={"milestone_name": "X"})
    assert res.status_code == 404


def test_delete(client):
    mid = client.post("/api/milestones", json=_payload()).get_json()["milestone_id"]
    res = client.delete(f"/api/milestones/{mid}")
    assert res.status_code == 200
    assert res.get_json()["message"] == "Milestone deleted"
    assert client.get(f"/api/milestones/{mid}").status_code == 404
    assert client.get("/api/milestones?serviceType=domestic_trucking").get_json() == []


def test_get_unknown_404(client):
    res = client.get("/api/milestones/12345")
    assert res.status_code == 404
    assert res.get_json()["message"] == "Milestone 12345 not found"


# ── Permissions ──────────────────────────────────────────────────────────────


@pytest.fixture()
def auth_enabled(app, monkeypatch):
    monkeypatch.setitem(app.config, "API_AUTH_ENABLED", "true")


def test_operator_cannot_create_definitions(client, auth_enabled, seeded, auth_header):
    res = client.post("/api/milestones", json=_payload(), headers=auth_header("operator"))
    assert res.status_code == 403


def test_admin_can_create_definitions(client, auth_enabled, seeded, auth_header):
    headers = auth_header("admin", username="root")
    res = client.post("/api/milestones", json=_payload(sequence_order=10), headers=headers)
    assert res.status_code == 201


# ── Persistence failures ─────────────────────────────────────────────────────


def test_database_failure_returns_500_and_writes_nothing(client):
    failure = OperationalError("INSERT INTO milestones", {}, Exception("database is locked"))
    with patch.object(db.session, "commit", side_effect=failure):
        res = client.post("/api/milestones", json=_payload())
    assert res.status_code == 500
    assert res.get_json()["code"] == "ERR_DATABASE"
    assert MilestoneDefinition.query.count() == 0
