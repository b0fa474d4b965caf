"""
Permission Decorators — JWT-aware module/action checks for route protection.

Usage:
    @bp.route("/api/milestones", methods=["POST"])
    @require_module_permission("master_setup", "create")
    def create_milestone():
        ...

Behaviour:
    - JWT user present          → 403 unless the role holds the grant
    - no JWT user, auth enabled → 401
    - no JWT user, auth off     → pass through (development / testing)
"""

import functools
import logging

from flask import current_app, g

from sbclc.services.permission_service import has_permission
from sbclc.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def _auth_enabled() -> bool:
    return str(current_app.config.get("API_AUTH_ENABLED", "false")).lower() == "true"


def require_module_permission(module_id: str, action_id: str):
    """
    Decorator: require the JWT user's role to hold ``(module_id, action_id)``.

    Args:
        module_id: e.g. "master_setup"
        action_id: e.g. "edit"
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user_id = getattr(g, "jwt_user_id", None)
            if user_id is None:
                if _auth_enabled():
                    return api_error(E.UNAUTHORIZED, "Authentication required")
                return f(*args, **kwargs)

            role_code = getattr(g, "jwt_role", None)
            if not has_permission(role_code, module_id, action_id):
                logger.warning(
                    "User %s (role=%s) denied: %s.%s on %s",
                    user_id, role_code, module_id, action_id, f.__name__,
                )
                return api_error(
                    E.FORBIDDEN,
                    "Permission denied",
                    details={"required": f"{module_id}.{action_id}"},
                )

            return f(*args, **kwargs)
        return decorated
    return decorator


def require_login(f):
    """Decorator: require any authenticated user when auth is enabled."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if getattr(g, "jwt_user_id", None) is None and _auth_enabled():
            return api_error(E.UNAUTHORIZED, "Authentication required")
        return f(*args, **kwargs)
    return decorated
