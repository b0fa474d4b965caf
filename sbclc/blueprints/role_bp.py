"""
Roles & permissions blueprint.

Endpoints:
    GET    /api/roles                          — list roles
    POST   /api/roles                          — create (optional ``modules``)
    PUT    /api/roles/<role_id>                — update name/description/active
    DELETE /api/roles/<role_id>                — delete (no users assigned)

    GET    /api/roles/<role_code>/permissions  — {module_id: [action]} + ETag
    PUT    /api/roles/<role_code>/permissions  — replace wholesale
    GET    /api/roles/<role_code>/matrix       — grid with grant states
    GET    /api/permissions                    — module/action catalog

Permission PUT accepts an optimistic-lock version either as ``version`` in
the body or as an ``If-Match`` header (the ETag from GET).
"""

import logging

from flask import Blueprint, jsonify, request

from sbclc.blueprints import register_service_error_handlers
from sbclc.middleware.permission_required import require_module_permission
from sbclc.services import permission_service, role_service
from sbclc.utils.errors import E, api_error
from sbclc.utils.helpers import get_json_or_error

logger = logging.getLogger(__name__)

role_bp = Blueprint("roles", __name__, url_prefix="/api")
register_service_error_handlers(role_bp)


def _version_etag(version: int) -> str:
    return f'"{version}"'


def _expected_version(data: dict):
    if data.get("version") is not None:
        return data["version"]
    if_match = request.headers.get("If-Match")
    if if_match and if_match != "*":
        return if_match.strip().removeprefix("W/").strip('"')
    return None


# ═════════════════════════════════════════════════════════════════════════
# Roles
# ═════════════════════════════════════════════════════════════════════════


@role_bp.route("/roles", methods=["GET"])
@require_module_permission("admin_users", "view")
def list_roles():
    return jsonify([r.to_dict() for r in role_service.list_roles()]), 200


@role_bp.route("/roles", methods=["POST"])
@require_module_permission("admin_users", "create")
def create_role():
    data, err = get_json_or_error()
    if err:
        return err
    role = role_service.create_role(data)
    return jsonify({"message": "Role created", **role.to_dict(include_permissions=True)}), 201


@role_bp.route("/roles/<int:role_id>", methods=["PUT"])
@require_module_permission("admin_users", "edit")
def update_role(role_id):
    data, err = get_json_or_error()
    if err:
        return err
    role = role_service.update_role(role_id, data)
    return jsonify({"message": "Role updated", **role.to_dict()}), 200


@role_bp.route("/roles/<int:role_id>", methods=["DELETE"])
@require_module_permission("admin_users", "delete")
def delete_role(role_id):
    role_service.delete_role(role_id)
    return jsonify({"message": "Role permanently deleted"}), 200


# ═════════════════════════════════════════════════════════════════════════
# Role permissions
# ═════════════════════════════════════════════════════════════════════════


@role_bp.route("/roles/<string:role_code>/permissions", methods=["GET"])
@require_module_permission("admin_users", "view")
def get_role_permissions(role_code):
    grants, version = permission_service.get_role_permissions(role_code)
    resp = jsonify(grants)
    resp.headers["ETag"] = _version_etag(version)
    return resp, 200


@role_bp.route("/roles/<string:role_code>/permissions", methods=["PUT"])
@require_module_permission("admin_users", "edit")
def replace_role_permissions(role_code):
    data, err = get_json_or_error()
    if err:
        return err
    if data.get("permissions") is None:
        return api_error(E.VALIDATION_REQUIRED, "Permissions payload required")

    grants, version = permission_service.replace_role_permissions(
        role_code, data["permissions"], expected_version=_expected_version(data),
    )
    resp = jsonify({"message": "Permissions updated", "permissions": grants, "version": version})
    resp.headers["ETag"] = _version_etag(version)
    return resp, 200


@role_bp.route("/roles/<string:role_code>/matrix", methods=["GET"])
@require_module_permission("admin_users", "view")
def get_role_matrix(role_code):
    matrix = permission_service.build_matrix(role_code)
    resp = jsonify(matrix)
    resp.headers["ETag"] = _version_etag(matrix["permissions_version"])
    return resp, 200


@role_bp.route("/permissions", methods=["GET"])
@require_module_permission("admin_users", "view")
def permission_catalog():
    return jsonify(permission_service.catalog()), 200
