"""
Milestone Definition Service — master-data store for milestone checklists.

Each service type owns an ordered list of definitions.  Rules enforced here:
  - milestone_code is unique within a service type
  - sequence_order is a positive integer, unique among *active* definitions
    of the service type (inactive rows may keep a stale order)
  - estimated_days / notify_before_days are non-negative
  - delete is permanent; booking instances keep their own snapshot

Listings go through ``cache_service`` and every write invalidates them.
"""

import logging

from flask import current_app

from sbclc.core.enums import ServiceType, StepPriority, parse_enum
from sbclc.core.exceptions import ConflictError, NotFoundError, ValidationError
from sbclc.models import db
from sbclc.models.milestone import MilestoneDefinition
from sbclc.services import cache_service
from sbclc.utils.helpers import parse_bool_flag

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("milestone_code", "milestone_name", "service_type", "sequence_order")
UPDATABLE_FIELDS = (
    "milestone_code", "milestone_name", "service_type", "sequence_order", "description",
    "estimated_days", "notify_before_days", "is_required", "is_active", "priority",
)

_CACHE_RESOURCE = "milestones"


# ═════════════════════════════════════════════════════════════════════════════
# Queries
# ═════════════════════════════════════════════════════════════════════════════


def list_definitions(service_type=None, include_inactive=False) -> list[dict]:
    """Definitions ordered by ``sequence_order`` ascending, ties by id.

    *service_type* None lists every service type (grouped by type).
    """
    st = parse_enum(ServiceType, service_type, "service_type").value if service_type else None
    key = cache_service.resource_key(
        _CACHE_RESOURCE, service_type=st or "all", include_inactive=bool(include_inactive),
    )
    ttl = current_app.config.get("MASTER_DATA_CACHE_TTL", cache_service.DEFAULT_TTL)

    def _load():
        q = MilestoneDefinition.query
        if st:
            q = q.filter(MilestoneDefinition.service_type == st)
        if not include_inactive:
            q = q.filter(MilestoneDefinition.is_active.is_(True))
        q = q.order_by(
            MilestoneDefinition.service_type,
            MilestoneDefinition.sequence_order,
            MilestoneDefinition.id,
        )
        return [d.to_dict() for d in q.all()]

    return cache_service.get_cached(key, ttl=ttl, loader=_load)


def active_definitions(service_type) -> list[MilestoneDefinition]:
    """Model rows (uncached) for instance generation."""
    st = parse_enum(ServiceType, service_type, "service_type")
    return (
        MilestoneDefinition.query
        .filter_by(service_type=st.value, is_active=True)
        .order_by(MilestoneDefinition.sequence_order, MilestoneDefinition.id)
        .all()
    )


def get_definition(milestone_id: int) -> MilestoneDefinition:
    definition = db.session.get(MilestoneDefinition, milestone_id)
    if definition is None:
        raise NotFoundError(resource="Milestone", resource_id=milestone_id)
    return definition


# ═════════════════════════════════════════════════════════════════════════════
# Validation
# ═════════════════════════════════════════════════════════════════════════════


def _clean_fields(data: dict) -> dict:
    """Coerce and validate whichever known fields are present in *data*."""
    clean: dict = {}
    errors: dict[str, str] = {}

    for field in ("milestone_code", "milestone_name"):
        if field in data:
            value = str(data.get(field) or "").strip()
            if not value:
                errors[field] = "required"
            else:
                clean[field] = value

    if "service_type" in data:
        clean["service_type"] = parse_enum(ServiceType, data.get("service_type"), "service_type").value

    if "sequence_order" in data:
        raw = data.get("sequence_order")
        try:
            if isinstance(raw, bool):
                raise TypeError
            seq = int(raw)
            if isinstance(raw, float) and not raw.is_integer():
                raise ValueError
        except (TypeError, ValueError):
            errors["sequence_order"] = "must be an integer"
        else:
            if seq < 1:
                errors["sequence_order"] = "must be a positive integer"
            else:
                clean["sequence_order"] = seq

    for field in ("estimated_days", "notify_before_days"):
        if field in data:
            raw = data.get(field)
            if raw in (None, ""):
                clean[field] = 0
                continue
            try:
                if isinstance(raw, bool):
                    raise TypeError
                num = float(raw)
            except (TypeError, ValueError):
                errors[field] = "must be a number"
                continue
            if num < 0:
                errors[field] = "must not be negative"
            else:
                clean[field] = num

    if "description" in data:
        clean["description"] = data.get("description") or None

    for field in ("is_required", "is_active"):
        if field in data and data.get(field) is not None:
            clean[field] = parse_bool_flag(data.get(field), field)

    if "priority" in data and data.get("priority") is not None:
        clean["priority"] = parse_enum(StepPriority, data.get("priority"), "priority").value

    if errors:
        first = next(iter(errors))
        raise ValidationError(f"{first} {errors[first]}", details=errors)
    return clean


def _check_conflicts(service_type, code, sequence_order, is_active, exclude_id=None):
    q = MilestoneDefinition.query.filter_by(service_type=service_type, milestone_code=code)
    if exclude_id is not None:
        q = q.filter(MilestoneDefinition.id != exclude_id)
    if q.first():
        raise ConflictError(resource="Milestone", field="milestone_code", value=code)

    if not is_active:
        return
    q = MilestoneDefinition.query.filter_by(
        service_type=service_type, sequence_order=sequence_order, is_active=True,
    )
    if exclude_id is not None:
        q = q.filter(MilestoneDefinition.id != exclude_id)
    clash = q.first()
    if clash:
        raise ConflictError(
            resource="Milestone",
            field="sequence_order",
            value=sequence_order,
            message=(
                f"Sequence {sequence_order} is already used by "
                f"{clash.milestone_code} for {service_type}"
            ),
        )


def _commit(action: str, definition: MilestoneDefinition) -> None:
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Failed to %s milestone %s", action, definition.milestone_code)
        raise
    finally:
        cache_service.invalidate_resource(_CACHE_RESOURCE)


# ═════════════════════════════════════════════════════════════════════════════
# Writes
# ═════════════════════════════════════════════════════════════════════════════


def create_definition(data: dict) -> MilestoneDefinition:
    missing = [f for f in REQUIRED_FIELDS if data.get(f) in (None, "")]
    if missing:
        raise ValidationError(
            f"{missing[0]} is required", details={f: "required" for f in missing},
        )

    clean = _clean_fields(data)
    clean.setdefault("estimated_days", 0)
    clean.setdefault("notify_before_days", 0)
    clean.setdefault("is_required", True)
    clean.setdefault("is_active", True)
    clean.setdefault("priority", StepPriority.MEDIUM.value)

    _check_conflicts(
        clean["service_type"], clean["milestone_code"], clean["sequence_order"], clean["is_active"],
    )

    definition = MilestoneDefinition(**clean)
    db.session.add(definition)
    _commit("create", definition)
    logger.info(
        "Created milestone %s:%s #%d",
        definition.service_type, definition.milestone_code, definition.sequence_order,
    )
    return definition


def update_definition(milestone_id: int, data: dict) -> MilestoneDefinition:
    definition = get_definition(milestone_id)
    patch = {k: data[k] for k in UPDATABLE_FIELDS if k in data}
    if not patch:
        raise ValidationError("No fields to update")

    clean = _clean_fields(patch)

    service_type = clean.get("service_type", definition.service_type)
    code = clean.get("milestone_code", definition.milestone_code)
    sequence_order = clean.get("sequence_order", definition.sequence_order)
    is_active = clean.get("is_active", definition.is_active)
    _check_conflicts(service_type, code, sequence_order, is_active, exclude_id=definition.id)

    for field, value in clean.items():
        setattr(definition, field, value)
    _commit("update", definition)
    logger.info("Updated milestone %s fields=%s", definition.id, sorted(clean))
    return definition


def delete_definition(milestone_id: int) -> None:
    """Permanently remove a definition.

    Existing booking instances keep their snapshot; their reference is
    nulled by the FK (and explicitly here for backends without FK support).
    """
    definition = get_definition(milestone_id)
    for instance in definition.instances:
        instance.milestone_id = None
    db.session.delete(definition)
    _commit("delete", definition)
    logger.info("Deleted milestone %s (%s)", milestone_id, definition.milestone_code)
