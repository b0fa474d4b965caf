"""
Seed Service — default master data for a fresh database.

Idempotent: roles, users and milestone definitions that already exist are
left untouched, so re-running never overwrites an edited permission matrix.
Called from ``flask seed-master-data``.
"""

import logging
import os

from sbclc.core.enums import ServiceType
from sbclc.models import db
from sbclc.models.auth import Role, User
from sbclc.models.milestone import MilestoneDefinition
from sbclc.services import cache_service, permission_service
from sbclc.utils.crypto import hash_password

logger = logging.getLogger(__name__)


DEFAULT_ROLES = [
    ("admin", "System Administrator", "Full system access"),
    ("manager", "Department Manager", "Department-level management access"),
    ("supervisor", "Supervisor", "Supervisory access with limited approval rights"),
    ("operator", "Operator", "Operational access for daily tasks"),
    ("viewer", "Viewer", "Read-only access"),
]

DEFAULT_GRANTS = {
    "admin": {
        "dashboard": ["view", "edit"],
        "quotations": ["view", "create", "edit", "delete", "approve"],
        "bookings": ["view", "create", "edit", "delete"],
        "monitoring": ["view", "edit", "export"],
        "cash_advance": ["view", "create", "edit", "delete", "approve"],
        "billing": ["view", "create", "edit", "delete", "approve"],
        "reports": ["view", "export"],
        "admin_users": ["view", "create", "edit", "delete"],
        "master_setup": ["view", "create", "edit", "delete"],
    },
    "manager": {
        "dashboard": ["view"],
        "quotations": ["view", "create", "edit", "approve"],
        "bookings": ["view", "create", "edit"],
        "monitoring": ["view", "export"],
        "billing": ["view", "approve"],
        "reports": ["view", "export"],
    },
    "supervisor": {
        "dashboard": ["view"],
        "quotations": ["view", "create", "edit"],
        "bookings": ["view", "create"],
        "monitoring": ["view"],
        "reports": ["view"],
    },
    "operator": {
        "dashboard": ["view"],
        "quotations": ["view", "create"],
        "bookings": ["view", "create"],
        "monitoring": ["view"],
    },
    "viewer": {
        "dashboard": ["view"],
        "quotations": ["view"],
        "bookings": ["view"],
        "monitoring": ["view"],
        "reports": ["view"],
    },
}

# (code, name, sequence, estimated_days, notify_before_days, priority)
_IMPORT_MILESTONES = [
    ("vessel_arrival", "Vessel Arrival Confirmation", 1, 1, 0, "high"),
    ("customs_clearance", "Customs Clearance Process", 2, 3, 1, "urgent"),
    ("container_release", "Container Release & Delivery", 3, 1, 0, "high"),
    ("documentation", "Final Documentation", 4, 1, 0, "medium"),
]
_DOMESTIC_MILESTONES = [
    ("booking_confirmation", "Booking Confirmation", 1, 1, 0, "high"),
    ("dispatch_coordination", "Dispatch Coordination", 2, 1, 0, "high"),
    ("transit_monitoring", "Transit Monitoring", 3, 2, 1, "medium"),
    ("delivery_completion", "Delivery Completion", 4, 1, 0, "high"),
]

DEFAULT_MILESTONES = {
    ServiceType.IMPORT: _IMPORT_MILESTONES,
    ServiceType.DOMESTIC_TRUCKING: _DOMESTIC_MILESTONES,
    ServiceType.DOMESTIC_FORWARDING: _DOMESTIC_MILESTONES,
}


def seed_roles() -> int:
    created = 0
    for code, name, description in DEFAULT_ROLES:
        if Role.query.filter_by(role_code=code).first():
            continue
        role = Role(role_code=code, role_name=name, description=description)
        db.session.add(role)
        db.session.flush()
        permission_service.stage_grants(
            role, permission_service.normalize_permissions(DEFAULT_GRANTS.get(code, {})),
        )
        created += 1
    return created


def seed_admin_user() -> bool:
    if User.query.filter_by(username="admin").first():
        return False
    password = os.getenv("ADMIN_PASSWORD")
    if not password:
        password = "password123"
        logger.warning("ADMIN_PASSWORD not set; seeding admin with the default password")
    db.session.add(User(
        username="admin",
        email=os.getenv("ADMIN_EMAIL", "admin@sbclc.local"),
        password_hash=hash_password(password),
        full_name="System Administrator",
        department="IT",
        role_code="admin",
    ))
    return True


def seed_milestones() -> int:
    created = 0
    for service_type, rows in DEFAULT_MILESTONES.items():
        for code, name, seq, est, notify, priority in rows:
            exists = MilestoneDefinition.query.filter_by(
                service_type=service_type.value, milestone_code=code,
            ).first()
            if exists:
                continue
            db.session.add(MilestoneDefinition(
                milestone_code=code,
                milestone_name=name,
                service_type=service_type.value,
                sequence_order=seq,
                estimated_days=est,
                notify_before_days=notify,
                priority=priority,
            ))
            created += 1
    return created


def seed_master_data() -> dict:
    """Insert whatever default master data is missing; returns counts."""
    try:
        roles = seed_roles()
        db.session.flush()
        admin = seed_admin_user()
        milestones = seed_milestones()
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Seeding master data failed")
        raise
    cache_service.clear_all()

    result = {"roles": roles, "admin_user": admin, "milestones": milestones}
    logger.info("Seeded master data: %s", result)
    return result
