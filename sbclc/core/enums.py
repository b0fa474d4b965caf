"""
Shared enumerations.

StrEnum values compare equal to their string equivalents, so rows stored as
plain strings (``service_type == "import"``) keep working.  Use ``parse_enum``
at service boundaries so an unknown discriminant is rejected instead of
silently falling through to a default branch.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TypeVar

from sbclc.core.exceptions import ValidationError


class ServiceType(StrEnum):
    """Booking category that selects which milestone set applies."""

    IMPORT = "import"
    DOMESTIC_TRUCKING = "domestic_trucking"
    DOMESTIC_FORWARDING = "domestic_forwarding"

    @property
    def is_domestic(self) -> bool:
        return self is not ServiceType.IMPORT


class MilestoneStatus(StrEnum):
    """Completion state of a milestone instance on a booking."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class StepPriority(StrEnum):
    """Static priority badge attached to a milestone definition."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ModuleId(StrEnum):
    """Top-level functional areas used as the unit of permission grants."""

    DASHBOARD = "dashboard"
    QUOTATIONS = "quotations"
    BOOKINGS = "bookings"
    MONITORING = "monitoring"
    CASH_ADVANCE = "cash_advance"
    BILLING = "billing"
    COLLECTION_MONITORING = "collection_monitoring"
    APPROVALS = "approvals"
    REPORTS = "reports"
    ADMIN_USERS = "admin_users"
    MASTER_SETUP = "master_setup"


class ActionId(StrEnum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    APPROVE = "approve"
    REJECT = "reject"
    EXPORT = "export"
    DISBURSE = "disburse"


class AccessLevel(StrEnum):
    """Display-only summary of a role's grants on one module."""

    FULL = "Full Access"
    EDIT = "Edit Access"
    CREATE = "Create Access"
    VIEW = "View Only"
    NONE = "No Access"


class GrantState(StrEnum):
    """Cell state in the permission matrix.

    ``NOT_APPLICABLE`` renders as a non-interactive dash; ``DENIED`` is an
    unchecked but clickable checkbox.
    """

    GRANTED = "granted"
    DENIED = "denied"
    NOT_APPLICABLE = "not_applicable"


E = TypeVar("E", bound=StrEnum)


def parse_enum(enum_cls: type[E], value, field: str) -> E:
    """Coerce *value* to *enum_cls* or raise ValidationError naming *field*."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower() if value is not None else value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(
            f"{field} must be one of: {allowed}",
            details={field: f"invalid value {value!r}"},
        ) from None
