"""
In-memory permission matrix editor.

Holds one role's grant set while an administrator edits it.  Toggles only
touch local state; ``save`` hands the full map to a persistence callable
and only clears ``dirty`` once that call succeeds, so a failed save can be
retried without losing edits.

Usage:
    matrix = PermissionMatrix.from_role("operator", editable=True)
    matrix.toggle("bookings", "create")
    matrix.save()
"""

import logging
from collections.abc import Callable

from sbclc.core.enums import AccessLevel, GrantState, ModuleId
from sbclc.core.exceptions import ValidationError
from sbclc.services import permission_service

logger = logging.getLogger(__name__)

Persist = Callable[[dict, int | None], tuple[dict, int]]


class PermissionMatrix:
    def __init__(self, role_code: str, grants=None, version: int | None = None, editable: bool = False):
        self.role_code = role_code
        self.version = version
        self.editable = editable
        self.dirty = False
        self._grants: dict[str, set[str]] = {
            module: set(actions) for module, actions in
            permission_service.normalize_permissions(grants or {}).items()
        }

    @classmethod
    def from_role(cls, role_code: str, editable: bool = False) -> "PermissionMatrix":
        grants, version = permission_service.get_role_permissions(role_code)
        return cls(role_code, grants, version=version, editable=editable)

    # ── Queries ──────────────────────────────────────────────────────────

    def has_permission(self, module_id, action_id) -> bool:
        pair = permission_service.canonical_pair(module_id, action_id)
        if pair is None:
            return False
        module, action = pair
        return action in self._grants.get(module, set())

    def grant_state(self, module_id, action_id) -> GrantState:
        return permission_service.grant_state(self._grants, module_id, action_id)

    def access_level(self, module_id) -> AccessLevel:
        module = permission_service.canonical_module(module_id)
        return permission_service.access_level(self._grants.get(module), module)

    def access_summary(self) -> dict[str, int]:
        """Number of modules at each access level."""
        summary = {level.value: 0 for level in AccessLevel}
        for module in ModuleId:
            summary[self.access_level(module.value).value] += 1
        return summary

    def to_mapping(self) -> dict[str, list[str]]:
        return {m: sorted(a) for m, a in sorted(self._grants.items()) if a}

    # ── Edits ────────────────────────────────────────────────────────────

    def toggle(self, module_id, action_id) -> bool:
        """Flip one grant and return its new state."""
        if not self.editable:
            raise ValidationError("Permission matrix is not in edit mode")
        pair = permission_service.canonical_pair(module_id, action_id)
        if pair is None:
            raise ValidationError(
                f"Action {action_id} does not apply to module {module_id}",
                details={str(module_id): f"{action_id} not applicable"},
            )
        module, action = pair
        actions = self._grants.setdefault(module, set())
        if action in actions:
            actions.discard(action)
            granted = False
        else:
            actions.add(action)
            granted = True
        self.dirty = True
        return granted

    def save(self, persist: Persist | None = None) -> dict[str, list[str]]:
        """Persist the full map.  On failure the exception propagates and
        both ``dirty`` and the local grants are left as they were."""
        if persist is None:
            def persist(mapping, version):
                return permission_service.replace_role_permissions(
                    self.role_code, mapping, expected_version=version,
                )

        mapping = self.to_mapping()
        saved, new_version = persist(mapping, self.version)
        self.version = new_version
        self.dirty = False
        logger.info("Permission matrix saved for role=%s version=%s", self.role_code, new_version)
        return saved
