"""
Bookings blueprint — bookings, their milestone checklist and progress.

Endpoints:
    GET    /api/bookings?status=&service_type=&limit=&offset=
    POST   /api/bookings                         — also generates milestones
    GET    /api/bookings/<id>
    PUT    /api/bookings/<id>
    DELETE /api/bookings/<id>                    — soft delete

    GET    /api/bookings/<id>/milestones         — instances + schedule
    PATCH  /api/bookings/<id>/milestones/<code>  — {status, notes?}
    POST   /api/bookings/<id>/milestones/sync    — add newly activated steps
    GET    /api/bookings/<id>/progress
    GET    /api/bookings/<id>/workflow           — assistant summary
"""

import logging
from datetime import date

from flask import Blueprint, jsonify, request

from sbclc.blueprints import paginate_query, register_service_error_handlers
from sbclc.middleware.permission_required import require_module_permission
from sbclc.services import booking_service, milestone_tracker, workflow_assistant
from sbclc.utils.errors import E, api_error
from sbclc.utils.helpers import get_json_or_error, parse_date_input

logger = logging.getLogger(__name__)

booking_bp = Blueprint("bookings", __name__, url_prefix="/api/bookings")
register_service_error_handlers(booking_bp)


def _today():
    return parse_date_input(request.args.get("today"), "today") or date.today()


# ═════════════════════════════════════════════════════════════════════════
# Bookings
# ═════════════════════════════════════════════════════════════════════════


@booking_bp.route("", methods=["GET"])
@require_module_permission("bookings", "view")
def list_bookings():
    query = booking_service.list_bookings(
        status=request.args.get("status"),
        service_type=request.args.get("service_type") or request.args.get("serviceType"),
    )
    items, total = paginate_query(query)
    return jsonify({"items": [b.to_dict() for b in items], "total": total}), 200


@booking_bp.route("", methods=["POST"])
@require_module_permission("bookings", "create")
def create_booking():
    data, err = get_json_or_error()
    if err:
        return err
    booking = booking_service.create_booking(data)
    return jsonify({
        "message": "Booking created",
        **booking.to_dict(include_milestones=True),
    }), 201


@booking_bp.route("/<int:booking_id>", methods=["GET"])
@require_module_permission("bookings", "view")
def get_booking(booking_id):
    booking = booking_service.get_booking(booking_id)
    return jsonify(booking.to_dict(include_milestones=True)), 200


@booking_bp.route("/<int:booking_id>", methods=["PUT"])
@require_module_permission("bookings", "edit")
def update_booking(booking_id):
    data, err = get_json_or_error()
    if err:
        return err
    booking = booking_service.update_booking(booking_id, data)
    return jsonify({"message": "Booking updated", **booking.to_dict()}), 200


@booking_bp.route("/<int:booking_id>", methods=["DELETE"])
@require_module_permission("bookings", "delete")
def delete_booking(booking_id):
    booking_service.delete_booking(booking_id)
    return jsonify({"message": "Booking deleted"}), 200


# ═════════════════════════════════════════════════════════════════════════
# Milestone instances
# ═════════════════════════════════════════════════════════════════════════


@booking_bp.route("/<int:booking_id>/milestones", methods=["GET"])
@require_module_permission("monitoring", "view")
def list_booking_milestones(booking_id):
    booking = booking_service.get_booking(booking_id)
    instances = milestone_tracker.list_instances(booking_id)
    schedule = {
        s["milestone_code"]: s
        for s in milestone_tracker.compute_schedule(booking.booking_date, instances, _today())
    }
    items = []
    for inst in instances:
        row = inst.to_dict()
        row["schedule"] = schedule.get(inst.milestone_code)
        items.append(row)
    return jsonify(items), 200


@booking_bp.route("/<int:booking_id>/milestones/<string:milestone_code>", methods=["PATCH"])
@require_module_permission("monitoring", "edit")
def update_booking_milestone(booking_id, milestone_code):
    data, err = get_json_or_error()
    if err:
        return err
    if not data.get("status"):
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    instance = milestone_tracker.update_instance_status(
        booking_id, milestone_code, data["status"], notes=data.get("notes"),
    )
    return jsonify(instance.to_dict()), 200


@booking_bp.route("/<int:booking_id>/milestones/sync", methods=["POST"])
@require_module_permission("monitoring", "edit")
def sync_booking_milestones(booking_id):
    added = milestone_tracker.sync_instances(booking_id)
    return jsonify({
        "message": f"{len(added)} milestone(s) added",
        "added": [i.to_dict() for i in added],
    }), 200


@booking_bp.route("/<int:booking_id>/progress", methods=["GET"])
@require_module_permission("monitoring", "view")
def booking_progress(booking_id):
    instances = milestone_tracker.list_instances(booking_id)
    completed = sum(1 for i in instances if i.status == "completed")
    return jsonify({
        "booking_id": booking_id,
        "progress": milestone_tracker.compute_progress(instances),
        "completed": completed,
        "total": len(instances),
    }), 200


@booking_bp.route("/<int:booking_id>/workflow", methods=["GET"])
@require_module_permission("monitoring", "view")
def booking_workflow(booking_id):
    booking = booking_service.get_booking(booking_id)
    instances = milestone_tracker.list_instances(booking_id)
    summary = workflow_assistant.summarize(
        booking.service_type, instances, today=_today(), booking_date=booking.booking_date,
    )
    summary["booking_id"] = booking.id
    summary["booking_number"] = booking.booking_number
    return jsonify(summary), 200
