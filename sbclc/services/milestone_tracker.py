"""
Milestone Instance Tracker — per-booking checklist state.

Instances are generated from the active definitions of the booking's service
type when the booking is created; ``sync_instances`` adds any definitions
activated later.  Existing instances are never removed or re-ordered, so a
booking's history survives definition edits and deletes.

Status moves forward only (see ``MILESTONE_TRANSITIONS``).  The pure helpers
``compute_progress`` and ``compute_schedule`` accept model rows or their
``to_dict()`` output.
"""

import logging
import math
from datetime import date, datetime, timedelta, timezone

from sbclc.core.enums import MilestoneStatus, parse_enum
from sbclc.core.exceptions import ConflictError, NotFoundError
from sbclc.models import db
from sbclc.models.booking import Booking
from sbclc.models.milestone import BookingMilestone, validate_milestone_transition
from sbclc.services import milestone_service
from sbclc.utils.helpers import parse_date

logger = logging.getLogger(__name__)


def field_of(instance, name):
    if isinstance(instance, dict):
        return instance.get(name)
    return getattr(instance, name, None)


def _get_booking(booking_id: int) -> Booking:
    booking = db.session.get(Booking, booking_id)
    if booking is None or booking.is_deleted:
        raise NotFoundError(resource="Booking", resource_id=booking_id)
    return booking


# ═════════════════════════════════════════════════════════════════════════════
# Generation
# ═════════════════════════════════════════════════════════════════════════════


def _instance_from(definition, booking) -> BookingMilestone:
    return BookingMilestone(
        booking=booking,
        milestone_id=definition.id,
        milestone_code=definition.milestone_code,
        milestone_name=definition.milestone_name,
        sequence_order=definition.sequence_order,
        is_required=definition.is_required,
        estimated_days=definition.estimated_days or 0,
        notify_before_days=definition.notify_before_days or 0,
        priority=definition.priority,
        status=MilestoneStatus.PENDING.value,
    )


def generate_instances(booking: Booking) -> list[BookingMilestone]:
    """Stage one instance per missing active definition (caller commits)."""
    existing = {m.milestone_code for m in booking.milestones}
    added = []
    for definition in milestone_service.active_definitions(booking.service_type):
        if definition.milestone_code in existing:
            continue
        instance = _instance_from(definition, booking)
        db.session.add(instance)
        added.append(instance)
    return added


def list_instances(booking_id: int) -> list[BookingMilestone]:
    booking = _get_booking(booking_id)
    return sorted(booking.milestones, key=lambda m: (m.sequence_order, m.id or 0))


def sync_instances(booking_id: int) -> list[BookingMilestone]:
    """Add instances for definitions activated after the booking was created."""
    booking = _get_booking(booking_id)
    added = generate_instances(booking)
    if not added:
        return []
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Failed to sync milestones for booking %s", booking_id)
        raise
    logger.info(
        "Synced %d milestone(s) onto booking %s", len(added), booking.booking_number,
    )
    return added


# ═════════════════════════════════════════════════════════════════════════════
# Transitions
# ═════════════════════════════════════════════════════════════════════════════


def update_instance_status(booking_id: int, milestone_code: str, status, notes=None, now=None):
    """Move one instance to *status*.

    Re-sending the current status only updates notes.  Moving backwards
    (e.g. completed → pending) raises ConflictError.
    """
    new_status = parse_enum(MilestoneStatus, status, "status")
    booking = _get_booking(booking_id)
    instance = next((m for m in booking.milestones if m.milestone_code == milestone_code), None)
    if instance is None:
        raise NotFoundError(resource="Booking milestone", resource_id=milestone_code)

    old_status = instance.status
    if new_status != old_status:
        if not validate_milestone_transition(old_status, new_status):
            raise ConflictError(
                resource="Booking milestone",
                field="status",
                value=new_status.value,
                message=f"Cannot move milestone {milestone_code} from {old_status} to {new_status.value}",
            )
        now = now or datetime.now(timezone.utc)
        if new_status == MilestoneStatus.IN_PROGRESS and instance.started_at is None:
            instance.started_at = now
        if new_status == MilestoneStatus.COMPLETED:
            instance.completed_at = now
            if instance.started_at is None:
                instance.started_at = now
        instance.status = new_status.value

    if notes is not None:
        instance.notes = notes

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Failed to update milestone %s on booking %s", milestone_code, booking_id)
        raise

    logger.info(
        "Booking %s milestone %s: %s → %s",
        booking.booking_number, milestone_code, old_status, instance.status,
    )
    return instance


# ═════════════════════════════════════════════════════════════════════════════
# Pure computations
# ═════════════════════════════════════════════════════════════════════════════


def compute_progress(instances) -> float:
    """Percentage of completed instances; 0 for an empty list."""
    instances = list(instances or [])
    if not instances:
        return 0
    completed = sum(1 for i in instances if field_of(i, "status") == MilestoneStatus.COMPLETED)
    return completed / len(instances) * 100


def compute_schedule(booking_date, instances, today=None) -> list[dict]:
    """Projected due and reminder dates per instance, in sequence order.

    A step is reached when it starts (``started_at``), otherwise when the
    previous step completes, otherwise at the previous step's projected due
    date; the first step is reached on the booking date.  Partial days round
    up.
    """
    today = parse_date(today) or date.today()
    anchor = parse_date(booking_date) or today
    ordered = sorted(instances or [], key=lambda i: (field_of(i, "sequence_order") or 0, field_of(i, "id") or 0))

    schedule = []
    for inst in ordered:
        started = parse_date(field_of(inst, "started_at"))
        completed_on = parse_date(field_of(inst, "completed_at"))
        reached = started or anchor
        due = reached + timedelta(days=math.ceil(float(field_of(inst, "estimated_days") or 0)))
        notify_at = due - timedelta(days=math.ceil(float(field_of(inst, "notify_before_days") or 0)))
        done = field_of(inst, "status") == MilestoneStatus.COMPLETED

        schedule.append({
            "milestone_code": field_of(inst, "milestone_code"),
            "reached_on": reached.isoformat(),
            "due_date": due.isoformat(),
            "notify_at": notify_at.isoformat(),
            "reminder_due": not done and today >= notify_at,
            "overdue": not done and today > due,
        })
        anchor = completed_on if (done and completed_on) else due

    return schedule
