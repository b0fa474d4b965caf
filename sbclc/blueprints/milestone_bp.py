"""
Milestone definitions blueprint (master setup).

Endpoints:
    GET    /api/milestones?serviceType=&include_inactive=  — ordered list
    GET    /api/milestones/<id>
    POST   /api/milestones
    PUT    /api/milestones/<id>
    DELETE /api/milestones/<id>                            — permanent
"""

import logging

from flask import Blueprint, jsonify, request

from sbclc.blueprints import register_service_error_handlers
from sbclc.middleware.permission_required import require_module_permission
from sbclc.services import milestone_service
from sbclc.utils.helpers import get_json_or_error, parse_bool_flag

logger = logging.getLogger(__name__)

milestone_bp = Blueprint("milestones", __name__, url_prefix="/api/milestones")
register_service_error_handlers(milestone_bp)


@milestone_bp.route("", methods=["GET"])
@require_module_permission("master_setup", "view")
def list_milestones():
    service_type = request.args.get("serviceType") or request.args.get("service_type")
    include_inactive = parse_bool_flag(
        request.args.get("include_inactive"), "include_inactive", default=False,
    )
    return jsonify(milestone_service.list_definitions(service_type, include_inactive)), 200


@milestone_bp.route("/<int:milestone_id>", methods=["GET"])
@require_module_permission("master_setup", "view")
def get_milestone(milestone_id):
    return jsonify(milestone_service.get_definition(milestone_id).to_dict()), 200


@milestone_bp.route("", methods=["POST"])
@require_module_permission("master_setup", "create")
def create_milestone():
    data, err = get_json_or_error()
    if err:
        return err
    definition = milestone_service.create_definition(data)
    return jsonify({"message": "Milestone created", **definition.to_dict()}), 201


@milestone_bp.route("/<int:milestone_id>", methods=["PUT"])
@require_module_permission("master_setup", "edit")
def update_milestone(milestone_id):
    data, err = get_json_or_error()
    if err:
        return err
    definition = milestone_service.update_definition(milestone_id, data)
    return jsonify({"message": "Milestone updated", **definition.to_dict()}), 200


@milestone_bp.route("/<int:milestone_id>", methods=["DELETE"])
@require_module_permission("master_setup", "delete")
def delete_milestone(milestone_id):
    milestone_service.delete_definition(milestone_id)
    return jsonify({"message": "Milestone deleted"}), 200
