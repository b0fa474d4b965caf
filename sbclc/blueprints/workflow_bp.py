"""
Workflow guide blueprint — static playbooks per service type.

Endpoints:
    GET /api/workflow/guides/<service_type>?selected=<n>
"""

from flask import Blueprint, jsonify, request

from sbclc.blueprints import register_service_error_handlers
from sbclc.middleware.permission_required import require_module_permission
from sbclc.services import workflow_assistant

workflow_bp = Blueprint("workflow", __name__, url_prefix="/api/workflow")
register_service_error_handlers(workflow_bp)


@workflow_bp.route("/guides/<string:service_type>", methods=["GET"])
@require_module_permission("monitoring", "view")
def get_guide(service_type):
    selected = max(request.args.get("selected", 0, type=int) or 0, 0)
    return jsonify(workflow_assistant.guide(service_type, selected)), 200
