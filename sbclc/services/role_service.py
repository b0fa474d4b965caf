"""
Role Service — role CRUD for the user-management screen.

Features:
  - Create a role, optionally with its initial module grants (one transaction)
  - Rename / describe / (de)activate a role
  - Delete a role only when no user is still assigned to it
"""

import logging

from sbclc.core.exceptions import ConflictError, NotFoundError, ValidationError
from sbclc.models import db
from sbclc.models.auth import Role
from sbclc.services import cache_service, permission_service
from sbclc.utils.helpers import parse_bool_flag

logger = logging.getLogger(__name__)


def list_roles() -> list[Role]:
    return Role.query.order_by(Role.role_name).all()


def get_role(role_id: int) -> Role:
    role = db.session.get(Role, role_id)
    if role is None:
        raise NotFoundError(resource="Role", resource_id=role_id)
    return role


def create_role(data: dict) -> Role:
    """Create a role; ``data["modules"]`` (optional) seeds its grants."""
    missing = [f for f in ("role_code", "role_name") if not str(data.get(f) or "").strip()]
    if missing:
        raise ValidationError(
            f"{missing[0]} is required", details={f: "required" for f in missing},
        )

    role_code = str(data["role_code"]).strip().lower().replace(" ", "_")
    role_name = str(data["role_name"]).strip()

    if Role.query.filter_by(role_code=role_code).first():
        raise ConflictError(resource="Role", field="role_code", value=role_code)
    if Role.query.filter_by(role_name=role_name).first():
        raise ConflictError(resource="Role", field="role_name", value=role_name)

    mapping = permission_service.normalize_permissions(data.get("modules"))

    role = Role(
        role_code=role_code,
        role_name=role_name,
        description=data.get("description"),
        is_active=parse_bool_flag(data.get("is_active"), "is_active", default=True),
    )
    try:
        db.session.add(role)
        db.session.flush()
        permission_service.stage_grants(role, mapping)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Failed to create role %s", role_code)
        raise

    logger.info(
        "Created role '%s' with %d module grant(s)",
        role_code, sum(len(a) for a in mapping.values()),
    )
    return role


def update_role(role_id: int, data: dict) -> Role:
    role = get_role(role_id)
    changed = False

    if "role_name" in data:
        name = str(data.get("role_name") or "").strip()
        if not name:
            raise ValidationError("role_name cannot be empty", details={"role_name": "required"})
        clash = Role.query.filter(Role.role_name == name, Role.id != role.id).first()
        if clash:
            raise ConflictError(resource="Role", field="role_name", value=name)
        role.role_name = name
        changed = True
    if "description" in data:
        role.description = data.get("description")
        changed = True
    if "is_active" in data:
        role.is_active = parse_bool_flag(data.get("is_active"), "is_active")
        changed = True

    if not changed:
        raise ValidationError("No fields to update")

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Failed to update role %s", role_id)
        raise
    finally:
        cache_service.invalidate_role_cache(role.role_code)

    logger.info("Updated role %s", role.role_code)
    return role


def delete_role(role_id: int) -> None:
    """Permanently delete a role and its grants."""
    role = get_role(role_id)
    assigned = role.users.count()
    if assigned:
        raise ValidationError(
            f"Cannot delete role: {assigned} users are assigned to this role. "
            "Please reassign users first.",
            details={"user_count": assigned},
        )

    role_code = role.role_code
    try:
        db.session.delete(role)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Failed to delete role %s", role_code)
        raise
    finally:
        cache_service.invalidate_role_cache(role_code)

    logger.info("Deleted role %s", role_code)
