"""
Shared pytest fixtures for the SBCLC back-office test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - seeded: default roles, grants, admin user and milestone sets
    - make_role / make_milestone / make_booking: service-level factories
    - auth_header: Bearer header for a user with a given role
"""

from datetime import date

import pytest

from sbclc import create_app
from sbclc.models import db as _db
from sbclc.services import cache_service


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        # Ids are reused after drop/create; cached lists and grants must go too
        cache_service.clear_all()
        yield
        cache_service.clear_all()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def seeded():
    """Default master data via the seed service."""
    from sbclc.services.seed_service import seed_master_data
    return seed_master_data()


@pytest.fixture()
def make_role():
    from sbclc.services import role_service

    def _make(role_code="clerk", role_name=None, modules=None, **extra):
        data = {
            "role_code": role_code,
            "role_name": role_name or role_code.replace("_", " ").title(),
            "modules": modules or {},
            **extra,
        }
        return role_service.create_role(data)
    return _make


@pytest.fixture()
def make_milestone():
    from sbclc.services import milestone_service

    def _make(code, seq, service_type="domestic_trucking", **extra):
        data = {
            "milestone_code": code,
            "milestone_name": extra.pop("milestone_name", code.replace("_", " ").title()),
            "service_type": service_type,
            "sequence_order": seq,
            **extra,
        }
        return milestone_service.create_definition(data)
    return _make


@pytest.fixture()
def make_booking():
    from sbclc.services import booking_service

    counter = {"n": 0}

    def _make(service_type="domestic_trucking", booking_date=date(2026, 3, 2), **extra):
        counter["n"] += 1
        data = {
            "booking_number": extra.pop("booking_number", f"BK-{counter['n']:04d}"),
            "service_type": service_type,
            "booking_date": booking_date.isoformat(),
            **extra,
        }
        return booking_service.create_booking(data)
    return _make


@pytest.fixture()
def auth_header():
    """Build a Bearer header for a freshly created user holding *role_code*."""
    from sbclc.services import jwt_service, user_service

    def _make(role_code, username=None):
        username = username or f"user_{role_code}"
        user = user_service.create_user(
            username, f"{username}@example.com", "Secret123!", role_code,
        )
        token = jwt_service.generate_access_token(user.id, role_code)
        return {"Authorization": f"Bearer {token}"}
    return _make
