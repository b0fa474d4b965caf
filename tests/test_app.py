"""
App-level tests — health probes, middleware headers, JSON error handlers,
seed command, cache service.
"""

import json
import logging

from flask import g

from sbclc.core.enums import AccessLevel
from sbclc.middleware.logging_config import JSONFormatter, ReadableFormatter, RequestContextFilter
from sbclc.models.auth import Role, RolePermission, User
from sbclc.models.milestone import MilestoneDefinition
from sbclc.services import cache_service, permission_service
from sbclc.services.seed_service import seed_master_data


# ── Health ───────────────────────────────────────────────────────────────────


def test_health(client):
    res = client.get("/api/health")
    assert res.status_code == 200
    assert res.get_json()["status"] == "ok"


def test_health_ready(client):
    assert client.get("/api/health/ready").status_code == 200


def test_health_live_reports_dependencies(client):
    res = client.get("/api/health/live")
    assert res.status_code == 200
    checks = res.get_json()["checks"]
    assert checks["database"]["status"] == "ok"
    assert checks["cache"] == {"status": "ok", "backend": "memory"}


# ── Middleware & error handlers ──────────────────────────────────────────────


def test_security_and_timing_headers(client):
    res = client.get("/api/health")
    assert res.headers["X-Content-Type-Options"] == "nosniff"
    assert res.headers["X-Frame-Options"] == "DENY"
    assert "X-Request-Duration-Ms" in res.headers
    assert res.headers["X-Request-ID"]


def test_request_id_is_echoed(client):
    res = client.get("/api/health", headers={"X-Request-ID": "abc123"})
    assert res.headers["X-Request-ID"] == "abc123"


def test_log_records_carry_request_identity(app):
    record = logging.LogRecord("sbclc.test", logging.WARNING, __file__, 1, "saved %s", ("grants",), None)
    with app.test_request_context("/api/roles"):
        g.request_id = "abc123"
        g.jwt_user_id = 7
        g.jwt_role = "admin"
        assert RequestContextFilter().filter(record) is True

    line = json.loads(JSONFormatter().format(record))
    assert line["msg"] == "saved grants"
    assert line["request_id"] == "abc123"
    assert line["user_id"] == 7
    assert line["role_code"] == "admin"
    assert "[abc123 admin]" in ReadableFormatter().format(record)


def test_unknown_route_json_404(client):
    res = client.get("/api/nowhere")
    assert res.status_code == 404
    assert res.get_json()["path"] == "/api/nowhere"


def test_wrong_method_json_405(client):
    res = client.delete("/api/permissions")
    assert res.status_code == 405
    assert res.get_json()["error"] == "Method not allowed"


# ── Seed ─────────────────────────────────────────────────────────────────────


def test_seed_creates_defaults():
    result = seed_master_data()
    assert result == {"roles": 5, "admin_user": True, "milestones": 12}
    assert Role.query.count() == 5
    assert User.query.filter_by(username="admin").one().role_code == "admin"
    assert MilestoneDefinition.query.filter_by(service_type="import").count() == 4
    assert permission_service.has_permission("admin", "cash_advance", "approve") is True
    assert permission_service.has_permission("admin", "dashboard", "edit") is True
    modules, _version = permission_service.get_role_permissions("admin")
    admin_dashboard = modules["dashboard"]
    assert permission_service.access_level(admin_dashboard, "dashboard") == AccessLevel.EDIT
    assert permission_service.has_permission("viewer", "bookings", "create") is False


def test_seed_is_idempotent_and_keeps_edits():
    seed_master_data()
    permission_service.replace_role_permissions("viewer", {"dashboard": ["view"]})

    result = seed_master_data()

    assert result == {"roles": 0, "admin_user": False, "milestones": 0}
    assert Role.query.count() == 5
    assert RolePermission.query.filter_by(role_code="viewer").count() == 1


def test_seed_cli_command(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["seed-master-data"])
    assert result.exit_code == 0
    assert "Seeded 5 role(s), 12 milestone(s), admin user." in result.output


# ── Cache service ────────────────────────────────────────────────────────────


def test_resource_key_sorts_params():
    a = cache_service.resource_key("milestones", service_type="import", include_inactive=False)
    b = cache_service.resource_key("milestones", include_inactive=False, service_type="import")
    assert a == b == "sbclc:milestones:include_inactive=False:service_type=import"


def test_get_cached_calls_loader_once():
    calls = []

    def _loader():
        calls.append(1)
        return {"value": 42}

    key = cache_service.resource_key("things", id=1)
    assert cache_service.get_cached(key, loader=_loader) == {"value": 42}
    assert cache_service.get_cached(key, loader=_loader) == {"value": 42}
    assert len(calls) == 1


def test_invalidate_resource_drops_every_variant():
    cache_service.set_cached(cache_service.resource_key("things", id=1), 1)
    cache_service.set_cached(cache_service.resource_key("things", id=2), 2)
    cache_service.set_cached(cache_service.resource_key("others", id=1), 3)

    cache_service.invalidate_resource("things")

    assert cache_service.get_cached(cache_service.resource_key("things", id=1)) is None
    assert cache_service.get_cached(cache_service.resource_key("things", id=2)) is None
    assert cache_service.get_cached(cache_service.resource_key("others", id=1)) == 3
