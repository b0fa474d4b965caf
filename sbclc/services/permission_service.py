"""
Permission Service — module/action grants per role, with cache.

Each role owns a flat set of ``(module_id, action)`` grants.  Evaluation is
deny-by-default:
  - unknown role, inactive role, or no stored entry for the module → False
  - an action that does not apply to the module is never granted, even if a
    stale row says otherwise ("not applicable" is not the same as "denied")

Grant sets are replaced wholesale in a single transaction.  Every replace
bumps ``Role.permissions_version`` through the mapper's versioned UPDATE, so an
editor holding an older version, or a save racing another save, gets a
ConflictError instead of silently overwriting a newer matrix.
"""

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone

from sqlalchemy.orm.exc import StaleDataError

from sbclc.core.enums import AccessLevel, ActionId, GrantState, ModuleId
from sbclc.core.exceptions import ConflictError, NotFoundError, ValidationError
from sbclc.models import db
from sbclc.models.auth import Role, RolePermission
from sbclc.services import cache_service

logger = logging.getLogger(__name__)


# ── Module catalog ───────────────────────────────────────────────────────────

MODULE_CATALOG: dict[ModuleId, dict] = {
    ModuleId.DASHBOARD: {
        "name": "Dashboard",
        "description": "Overview of bookings, monitoring and pending approvals",
        "actions": [ActionId.VIEW, ActionId.EDIT],
    },
    ModuleId.QUOTATIONS: {
        "name": "Quotations",
        "description": "Client quotations and rate sheets",
        "actions": [ActionId.VIEW, ActionId.CREATE, ActionId.EDIT, ActionId.DELETE, ActionId.APPROVE],
    },
    ModuleId.BOOKINGS: {
        "name": "Bookings",
        "description": "Import, trucking and forwarding bookings",
        "actions": [ActionId.VIEW, ActionId.CREATE, ActionId.EDIT, ActionId.DELETE],
    },
    ModuleId.MONITORING: {
        "name": "Monitoring",
        "description": "Milestone tracking for active bookings",
        "actions": [ActionId.VIEW, ActionId.EDIT, ActionId.EXPORT],
    },
    ModuleId.CASH_ADVANCE: {
        "name": "Cash Advance",
        "description": "Cash advance requests and disbursement",
        "actions": [
            ActionId.VIEW, ActionId.CREATE, ActionId.EDIT,
            ActionId.DELETE, ActionId.APPROVE, ActionId.DISBURSE,
        ],
    },
    ModuleId.BILLING: {
        "name": "Billing",
        "description": "Statements of account and service invoices",
        "actions": [ActionId.VIEW, ActionId.CREATE, ActionId.EDIT, ActionId.DELETE, ActionId.APPROVE],
    },
    ModuleId.COLLECTION_MONITORING: {
        "name": "Collection Monitoring",
        "description": "Accounts receivable follow-up",
        "actions": [ActionId.VIEW, ActionId.EDIT, ActionId.EXPORT],
    },
    ModuleId.APPROVALS: {
        "name": "Approvals",
        "description": "Approval queue for financial documents",
        "actions": [ActionId.VIEW, ActionId.APPROVE, ActionId.REJECT],
    },
    ModuleId.REPORTS: {
        "name": "Reports",
        "description": "Operational and financial reports",
        "actions": [ActionId.VIEW, ActionId.EXPORT],
    },
    ModuleId.ADMIN_USERS: {
        "name": "User Management",
        "description": "Users, roles and permission matrix",
        "actions": [ActionId.VIEW, ActionId.CREATE, ActionId.EDIT, ActionId.DELETE],
    },
    ModuleId.MASTER_SETUP: {
        "name": "Master Setup",
        "description": "Clients, vendors, milestones and other master data",
        "actions": [ActionId.VIEW, ActionId.CREATE, ActionId.EDIT, ActionId.DELETE],
    },
}


def _coerce_module(module_id) -> ModuleId | None:
    try:
        return ModuleId(str(module_id).strip().lower())
    except ValueError:
        return None


def _coerce_action(action_id) -> ActionId | None:
    try:
        return ActionId(str(action_id).strip().lower())
    except ValueError:
        return None


def applicable_actions(module_id) -> list[ActionId]:
    """Actions that make sense for *module_id* (empty for unknown modules)."""
    module = _coerce_module(module_id)
    if module is None:
        return []
    return list(MODULE_CATALOG[module]["actions"])


def canonical_module(module_id) -> str | None:
    """Stored module id for *module_id* (case and whitespace folded), or None."""
    module = _coerce_module(module_id)
    return module.value if module is not None else None


def canonical_pair(module_id, action_id) -> tuple[str, str] | None:
    """Stored ``(module, action)`` ids when the pair is applicable, else None."""
    module, action = _coerce_module(module_id), _coerce_action(action_id)
    if module is None or action not in MODULE_CATALOG[module]["actions"]:
        return None
    return module.value, action.value


def catalog() -> list[dict]:
    """Module catalog for the admin screen, in display order."""
    return [
        {
            "module_id": module.value,
            "name": meta["name"],
            "description": meta["description"],
            "actions": [a.value for a in meta["actions"]],
        }
        for module, meta in MODULE_CATALOG.items()
    ]


# ── Pure evaluation ──────────────────────────────────────────────────────────


def grant_state(grants: Mapping[str, Iterable[str]], module_id, action_id) -> GrantState:
    """Cell state for one ``(module, action)`` pair of a grant mapping."""
    pair = canonical_pair(module_id, action_id)
    if pair is None:
        return GrantState.NOT_APPLICABLE
    module, action = pair
    return GrantState.GRANTED if action in (grants.get(module) or ()) else GrantState.DENIED


def access_level(actions: Iterable[str] | None, module_id=None) -> AccessLevel:
    """Summarise the actions held on one module.

    delete or approve → Full, edit → Edit, create → Create, view → View Only,
    otherwise No Access.  When *module_id* is given only actions applicable
    to that module count.
    """
    held = set(actions or ())
    if module_id is not None:
        held &= {a.value for a in applicable_actions(module_id)}
    if not held:
        return AccessLevel.NONE
    if ActionId.DELETE in held or ActionId.APPROVE in held:
        return AccessLevel.FULL
    if ActionId.EDIT in held:
        return AccessLevel.EDIT
    if ActionId.CREATE in held:
        return AccessLevel.CREATE
    if ActionId.VIEW in held:
        return AccessLevel.VIEW
    return AccessLevel.NONE


def normalize_permissions(payload) -> dict[str, list[str]]:
    """Validate a grant payload and return ``{module_id: sorted[action]}``.

    Accepts the mapping form ``{module_id: [action, ...]}`` and the list form
    ``[{"module_id": ..., "action": ...}, ...]``.  Unknown module or action
    ids raise ValidationError; known actions that do not apply to the module
    are dropped.  Modules with no remaining actions are omitted.
    """
    if payload is None:
        payload = {}

    pairs: list[tuple] = []
    if isinstance(payload, Mapping):
        for module_id, actions in payload.items():
            if actions is None:
                continue
            if isinstance(actions, str) or not isinstance(actions, Iterable):
                raise ValidationError(
                    "Each module must map to a list of actions",
                    details={str(module_id): "expected a list"},
                )
            pairs.extend((module_id, action) for action in actions)
    elif isinstance(payload, list):
        for entry in payload:
            if not isinstance(entry, Mapping):
                raise ValidationError("Each permission entry must be an object")
            pairs.append((entry.get("module_id"), entry.get("action")))
    else:
        raise ValidationError("permissions must be an object or a list")

    errors: dict[str, str] = {}
    result: dict[str, set[str]] = {}
    for raw_module, raw_action in pairs:
        module = _coerce_module(raw_module)
        if module is None:
            errors[str(raw_module)] = "unknown module"
            continue
        action = _coerce_action(raw_action)
        if action is None:
            errors[f"{module.value}.{raw_action}"] = "unknown action"
            continue
        if action not in MODULE_CATALOG[module]["actions"]:
            logger.warning(
                "Dropping inapplicable action %s on module %s", action.value, module.value,
            )
            continue
        result.setdefault(module.value, set()).add(action.value)

    if errors:
        raise ValidationError("Unknown module or action id", details=errors)

    return {m: sorted(acts) for m, acts in sorted(result.items())}


# ── Persistence-backed operations ────────────────────────────────────────────


def _active_role(role_code) -> Role | None:
    if not role_code:
        return None
    return Role.query.filter_by(role_code=str(role_code), is_active=True).first()


def _require_role(role_code) -> Role:
    role = _active_role(role_code)
    if role is None:
        raise NotFoundError(resource="Role", resource_id=role_code)
    return role


def get_role_grants(role_code) -> dict[str, list[str]]:
    """Grant mapping for an active role; empty for unknown/inactive roles.

    Served from the query cache; ``replace_role_permissions`` invalidates.
    """
    cached = cache_service.get_cached_grants(role_code)
    if cached is not None:
        return cached
    role = _active_role(role_code)
    if role is None:
        return {}
    grants = role.modules()
    cache_service.set_cached_grants(role_code, grants)
    return grants


def has_permission(role_code, module_id, action_id) -> bool:
    """True only when the role holds an applicable grant for the pair."""
    pair = canonical_pair(module_id, action_id)
    if pair is None:
        return False
    module, action = pair
    return action in get_role_grants(role_code).get(module, [])


def get_role_permissions(role_code) -> tuple[dict[str, list[str]], int]:
    """Return ``(mapping, permissions_version)`` for an active role."""
    role = _require_role(role_code)
    return role.modules(), role.permissions_version


def _stale_version(version, message) -> ConflictError:
    return ConflictError(
        resource="Role", field="permissions_version", value=version, message=message,
    )


def replace_role_permissions(role_code, payload, expected_version=None):
    """Replace a role's grant set wholesale.

    Returns ``(mapping, new_version)``.  Raises NotFoundError (unknown role),
    ValidationError (unknown ids), ConflictError (stale *expected_version*, or
    the role row changed between load and commit).  Nothing is written unless
    the whole set is accepted.
    """
    role = _require_role(role_code)
    code = role.role_code
    base_version = role.permissions_version
    mapping = normalize_permissions(payload)

    if expected_version is not None:
        try:
            expected = int(expected_version)
        except (TypeError, ValueError):
            raise ValidationError(
                "version must be an integer", details={"version": "invalid"},
            ) from None
        if expected != role.permissions_version:
            raise _stale_version(
                expected,
                f"Permissions for role {code} were changed by someone else "
                f"(current version {role.permissions_version}, yours {expected})",
            )

    try:
        stage_grants(role, mapping)
        # dirty the row so the mapper issues the versioned UPDATE
        role.updated_at = datetime.now(timezone.utc)
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        logger.warning("Concurrent permission save on role %s; rejected", code)
        raise _stale_version(
            base_version, f"Permissions for role {code} were changed by someone else while saving",
        ) from None
    except Exception:
        db.session.rollback()
        logger.exception("Failed to save permissions for role %s", code)
        raise
    finally:
        cache_service.invalidate_role_cache(code)

    logger.info(
        "Permissions replaced for role=%s modules=%d version=%d",
        code, len(mapping), role.permissions_version,
    )
    return mapping, role.permissions_version


def stage_grants(role: Role, mapping: dict[str, list[str]]) -> None:
    """Delete-all then insert inside the caller's transaction."""
    RolePermission.query.filter_by(role_code=role.role_code).delete(synchronize_session="fetch")
    for module_id, actions in mapping.items():
        for action in actions:
            db.session.add(RolePermission(role_code=role.role_code, module_id=module_id, action=action))


def build_matrix(role_code) -> dict:
    """Full module × action grid with grant states and access levels."""
    grants, version = get_role_permissions(role_code)
    all_actions = [a.value for a in ActionId]
    rows = []
    summary = {level.value: 0 for level in AccessLevel}
    for module, meta in MODULE_CATALOG.items():
        level = access_level(grants.get(module.value), module.value)
        summary[level.value] += 1
        rows.append({
            "module_id": module.value,
            "name": meta["name"],
            "access_level": level.value,
            "actions": {a: grant_state(grants, module.value, a).value for a in all_actions},
        })
    return {
        "role_code": str(role_code),
        "permissions_version": version,
        "actions": all_actions,
        "modules": rows,
        "summary": summary,
    }
