"""
Booking Service — the minimal booking record milestone instances hang off.

Creating a booking generates its milestone checklist from the active
definitions of its service type, in the same transaction.  Deletes are soft
so milestone history stays queryable.
"""

import logging

from sbclc.core.enums import ServiceType, parse_enum
from sbclc.core.exceptions import ConflictError, NotFoundError, ValidationError
from sbclc.models import db
from sbclc.models.booking import BOOKING_STATUSES, Booking
from sbclc.services import milestone_tracker
from sbclc.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("booking_number", "service_type", "booking_date")
UPDATABLE_FIELDS = ("booking_number", "client_name", "booking_date", "status", "remarks")


def _clean_status(value) -> str:
    status = str(value or "").strip().lower()
    if status not in BOOKING_STATUSES:
        raise ValidationError(
            f"status must be one of: {', '.join(sorted(BOOKING_STATUSES))}",
            details={"status": f"invalid value {value!r}"},
        )
    return status


def _check_number(booking_number: str, exclude_id=None) -> None:
    q = Booking.query.filter_by(booking_number=booking_number)
    if exclude_id is not None:
        q = q.filter(Booking.id != exclude_id)
    if q.first():
        raise ConflictError(resource="Booking", field="booking_number", value=booking_number)


def list_bookings(status=None, service_type=None):
    q = Booking.query.filter(Booking.is_deleted.is_(False))
    if status:
        q = q.filter(Booking.status == _clean_status(status))
    if service_type:
        q = q.filter(Booking.service_type == parse_enum(ServiceType, service_type, "service_type").value)
    return q.order_by(Booking.created_at.desc(), Booking.id.desc())


def get_booking(booking_id: int) -> Booking:
    booking = db.session.get(Booking, booking_id)
    if booking is None or booking.is_deleted:
        raise NotFoundError(resource="Booking", resource_id=booking_id)
    return booking


def create_booking(data: dict) -> Booking:
    missing = [f for f in REQUIRED_FIELDS if data.get(f) in (None, "")]
    if missing:
        raise ValidationError(
            f"{missing[0]} is required", details={f: "required" for f in missing},
        )

    booking_number = str(data["booking_number"]).strip()
    service_type = parse_enum(ServiceType, data["service_type"], "service_type")
    booking_date = parse_date_input(data["booking_date"], "booking_date")
    status = _clean_status(data.get("status") or "pending")
    _check_number(booking_number)

    booking = Booking(
        booking_number=booking_number,
        service_type=service_type.value,
        client_name=data.get("client_name"),
        booking_date=booking_date,
        status=status,
        remarks=data.get("remarks"),
    )
    try:
        db.session.add(booking)
        instances = milestone_tracker.generate_instances(booking)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Failed to create booking %s", booking_number)
        raise

    logger.info(
        "Created booking %s (%s) with %d milestone(s)",
        booking_number, service_type.value, len(instances),
    )
    return booking


def update_booking(booking_id: int, data: dict) -> Booking:
    booking = get_booking(booking_id)
    if "service_type" in data and data["service_type"] != booking.service_type:
        raise ValidationError(
            "service_type cannot be changed after creation",
            details={"service_type": "immutable"},
        )
    patch = {k: data[k] for k in UPDATABLE_FIELDS if k in data}
    if not patch:
        raise ValidationError("No fields to update")

    if "booking_number" in patch:
        number = str(patch["booking_number"] or "").strip()
        if not number:
            raise ValidationError("booking_number is required", details={"booking_number": "required"})
        _check_number(number, exclude_id=booking.id)
        booking.booking_number = number
    if "booking_date" in patch:
        booking_date = parse_date_input(patch["booking_date"], "booking_date")
        if booking_date is None:
            raise ValidationError("booking_date is required", details={"booking_date": "required"})
        booking.booking_date = booking_date
    if "status" in patch:
        booking.status = _clean_status(patch["status"])
    if "client_name" in patch:
        booking.client_name = patch["client_name"]
    if "remarks" in patch:
        booking.remarks = patch["remarks"]

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Failed to update booking %s", booking_id)
        raise
    logger.info("Updated booking %s fields=%s", booking.booking_number, sorted(patch))
    return booking


def delete_booking(booking_id: int) -> None:
    """Soft delete: the row and its milestones stay for history."""
    booking = get_booking(booking_id)
    booking.is_deleted = True
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Failed to delete booking %s", booking_id)
        raise
    logger.info("Soft-deleted booking %s", booking.booking_number)
