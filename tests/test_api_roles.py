"""
Roles & permissions API tests.

Covers:
    - Role CRUD (list, create with modules, update, delete)
    - Delete blocked while users are assigned
    - Permission GET/PUT with ETag / If-Match optimistic lock
    - Matrix and catalog endpoints
    - Auth enforcement: 401 without token, 403 without grant
"""

from unittest.mock import patch

import pytest
from sqlalchemy.orm.exc import StaleDataError

from sbclc.models import db
from sbclc.models.auth import Role, RolePermission


def _create(client, **overrides):
    payload = {
        "role_code": "clerk",
        "role_name": "Clerk",
        "description": "Front desk",
        "modules": {"bookings": ["view"]},
    }
    payload.update(overrides)
    return client.post("/api/roles", json=payload)


# ═════════════════════════════════════════════════════════════════════════════
# Roles CRUD
# ═════════════════════════════════════════════════════════════════════════════


def test_list_roles_sorted_by_name(client, seeded):
    res = client.get("/api/roles")
    assert res.status_code == 200
    names = [r["role_name"] for r in res.get_json()]
    assert len(names) == 5
    assert names == sorted(names)


def test_create_role_with_modules(client):
    res = _create(client, modules={"bookings": ["view", "create"], "dashboard": ["view", "delete"]})
    assert res.status_code == 201
    data = res.get_json()
    assert data["message"] == "Role created"
    assert data["role_code"] == "clerk"
    assert data["permissions_version"] == 1
    assert data["modules"] == {"bookings": ["create", "view"], "dashboard": ["view"]}


def test_create_role_normalizes_code(client):
    res = _create(client, role_code="Night Shift", role_name="Night Shift")
    assert res.status_code == 201
    assert res.get_json()["role_code"] == "night_shift"


def test_create_role_duplicate_code_409(client):
    _create(client)
    res = _create(client, role_name="Another Clerk")
    assert res.status_code == 409
    assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"


def test_create_role_missing_name_422(client):
    res = client.post("/api/roles", json={"role_code": "clerk"})
    assert res.status_code == 422
    assert res.get_json()["details"] == {"role_name": "required"}


def test_create_role_unknown_module_422(client):
    res = _create(client, modules={"warehouse": ["view"]})
    assert res.status_code == 422
    assert Role.query.filter_by(role_code="clerk").first() is None


def test_create_role_without_body_400(client):
    res = client.post("/api/roles", data="nope", content_type="text/plain")
    assert res.status_code == 400


def test_update_role(client):
    role_id = _create(client).get_json()["role_id"]
    res = client.put(f"/api/roles/{role_id}", json={"role_name": "Senior Clerk", "is_active": 0})
    assert res.status_code == 200
    data = res.get_json()
    assert data["role_name"] == "Senior Clerk"
    assert data["is_active"] == 0


def test_update_role_bumps_permissions_etag(client):
    _create(client)
    role_id = Role.query.filter_by(role_code="clerk").one().id
    assert client.get("/api/roles/clerk/permissions").headers["ETag"] == '"1"'

    client.put(f"/api/roles/{role_id}", json={"description": "Back office"})

    assert client.get("/api/roles/clerk/permissions").headers["ETag"] == '"2"'


def test_update_role_racing_another_write_409(client):
    role_id = _create(client).get_json()["role_id"]
    with patch.object(db.session, "commit", side_effect=StaleDataError("0 rows matched")):
        res = client.put(f"/api/roles/{role_id}", json={"role_name": "Senior Clerk"})
    assert res.status_code == 409
    assert res.get_json()["code"] == "ERR_CONFLICT_STATE"


def test_update_role_no_fields_422(client):
    role_id = _create(client).get_json()["role_id"]
    res = client.put(f"/api/roles/{role_id}", json={"unknown": 1})
    assert res.status_code == 422


def test_update_missing_role_404(client):
    res = client.put("/api/roles/9999", json={"role_name": "X"})
    assert res.status_code == 404
    assert res.get_json()["code"] == "ERR_NOT_FOUND"


def test_delete_role_removes_grants(client):
    role_id = _create(client).get_json()["role_id"]
    res = client.delete(f"/api/roles/{role_id}")
    assert res.status_code == 200
    assert res.get_json()["message"] == "Role permanently deleted"
    assert db.session.get(Role, role_id) is None
    assert RolePermission.query.filter_by(role_code="clerk").count() == 0


def test_delete_role_with_users_blocked(client, auth_header):
    role_id = _create(client).get_json()["role_id"]
    auth_header("clerk")
    res = client.delete(f"/api/roles/{role_id}")
    assert res.status_code == 422
    assert res.get_json()["details"] == {"user_count": 1}
    assert db.session.get(Role, role_id) is not None


# ═════════════════════════════════════════════════════════════════════════════
# Role permissions
# ═════════════════════════════════════════════════════════════════════════════


def test_get_permissions_with_etag(client):
    _create(client)
    res = client.get("/api/roles/clerk/permissions")
    assert res.status_code == 200
    assert res.get_json() == {"bookings": ["view"]}
    assert res.headers["ETag"] == '"1"'


def test_get_permissions_unknown_role_404(client):
    assert client.get("/api/roles/ghost/permissions").status_code == 404


def test_put_permissions_replaces_and_bumps_etag(client):
    _create(client)
    res = client.put(
        "/api/roles/clerk/permissions",
        json={"permissions": {"reports": ["view", "export"]}},
        headers={"If-Match": '"1"'},
    )
    assert res.status_code == 200
    data = res.get_json()
    assert data["permissions"] == {"reports": ["export", "view"]}
    assert data["version"] == 2
    assert res.headers["ETag"] == '"2"'
    assert client.get("/api/roles/clerk/permissions").get_json() == {"reports": ["export", "view"]}


def test_put_permissions_list_form(client):
    _create(client)
    res = client.put("/api/roles/clerk/permissions", json={
        "permissions": [
            {"module_id": "billing", "action": "view"},
            {"module_id": "billing", "action": "approve"},
        ],
    })
    assert res.status_code == 200
    assert res.get_json()["permissions"] == {"billing": ["approve", "view"]}


def test_put_permissions_stale_if_match_409(client):
    _create(client)
    client.put("/api/roles/clerk/permissions", json={"permissions": {}, "version": 1})
    res = client.put(
        "/api/roles/clerk/permissions",
        json={"permissions": {"bookings": ["view"]}},
        headers={"If-Match": '"1"'},
    )
    assert res.status_code == 409
    assert res.get_json()["code"] == "ERR_CONFLICT_STATE"
    assert client.get("/api/roles/clerk/permissions").get_json() == {}


def test_put_permissions_unknown_action_422(client):
    _create(client)
    res = client.put("/api/roles/clerk/permissions", json={"permissions": {"bookings": ["fly"]}})
    assert res.status_code == 422
    assert "bookings.fly" in res.get_json()["details"]
    assert client.get("/api/roles/clerk/permissions").get_json() == {"bookings": ["view"]}


def test_put_permissions_missing_payload_400(client):
    _create(client)
    res = client.put("/api/roles/clerk/permissions", json={"version": 1})
    assert res.status_code == 400
    assert res.get_json()["message"] == "Permissions payload required"


def test_matrix_endpoint(client):
    _create(client, modules={"bookings": ["view", "edit"]})
    res = client.get("/api/roles/clerk/matrix")
    assert res.status_code == 200
    data = res.get_json()
    rows = {r["module_id"]: r for r in data["modules"]}
    assert rows["bookings"]["access_level"] == "Edit Access"
    assert rows["dashboard"]["actions"]["delete"] == "not_applicable"
    assert res.headers["ETag"] == '"1"'


def test_permission_catalog(client):
    res = client.get("/api/permissions")
    assert res.status_code == 200
    catalog = {m["module_id"]: m["actions"] for m in res.get_json()}
    assert catalog["cash_advance"] == ["view", "create", "edit", "delete", "approve", "disburse"]


# ═════════════════════════════════════════════════════════════════════════════
# Auth enforcement
# ═════════════════════════════════════════════════════════════════════════════


@pytest.fixture()
def auth_enabled(app, monkeypatch):
    monkeypatch.setitem(app.config, "API_AUTH_ENABLED", "true")


def test_anonymous_request_401_when_auth_enabled(client, auth_enabled, seeded):
    res = client.get("/api/roles")
    assert res.status_code == 401
    assert res.get_json()["code"] == "ERR_UNAUTHORIZED"


def test_viewer_forbidden_from_role_admin(client, auth_enabled, seeded, auth_header):
    headers = auth_header("viewer")
    res = client.get("/api/roles", headers=headers)
    assert res.status_code == 403
    assert res.get_json()["details"] == {"required": "admin_users.view"}


def test_admin_token_allowed(client, auth_enabled, seeded, auth_header):
    headers = auth_header("admin", username="root")
    assert client.get("/api/roles", headers=headers).status_code == 200


def test_revoked_grant_takes_effect_immediately(client, auth_enabled, seeded, auth_header):
    headers = auth_header("manager")
    assert client.get("/api/bookings", headers=headers).status_code == 200

    admin = auth_header("admin", username="root")
    client.put(
        "/api/roles/manager/permissions",
        json={"permissions": {"dashboard": ["view"]}},
        headers=admin,
    )
    assert client.get("/api/bookings", headers=headers).status_code == 403


def test_garbage_token_treated_as_anonymous(client, auth_enabled):
    res = client.get("/api/roles", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401
