"""
Auth blueprint — sign-in and current-user lookup.

Endpoints:
    POST /api/login   — email or username + password → JWT access token
    GET  /api/me      — current user with the role's grant mapping
"""

import logging

from flask import Blueprint, g, jsonify

from sbclc.blueprints import register_service_error_handlers
from sbclc.middleware.permission_required import require_login
from sbclc.services import jwt_service, permission_service, user_service
from sbclc.utils.errors import E, api_error
from sbclc.utils.helpers import get_json_or_error

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api")
register_service_error_handlers(auth_bp)


@auth_bp.route("/login", methods=["POST"])
def login():
    data, err = get_json_or_error()
    if err:
        return err

    identifier = (data.get("email") or data.get("username") or "").strip()
    password = data.get("password") or ""
    if not identifier or not password:
        return api_error(E.VALIDATION_REQUIRED, "Email and password are required")

    user = user_service.authenticate(identifier, password)
    if user is None:
        return api_error(E.UNAUTHORIZED, "Invalid email or password")

    tokens = jwt_service.token_response(user.id, user.role_code)
    return jsonify({
        "token": tokens["access_token"],
        **tokens,
        "user": user.to_dict(),
        "permissions": permission_service.get_role_grants(user.role_code),
    }), 200


@auth_bp.route("/me", methods=["GET"])
@require_login
def me():
    user_id = getattr(g, "jwt_user_id", None)
    if user_id is None:
        return api_error(E.UNAUTHORIZED, "Authentication required")
    user = user_service.get_user(user_id)
    return jsonify({
        "user": user.to_dict(),
        "permissions": permission_service.get_role_grants(user.role_code),
    }), 200
