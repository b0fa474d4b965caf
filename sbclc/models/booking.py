"""
SBCLC Logistics Back-Office
Booking model — the record milestone instances hang off.

Bookings are soft-deleted (``is_deleted``) so their milestone history stays
queryable.
"""

from datetime import datetime, timezone

from sbclc.models import db


def _utcnow():
    return datetime.now(timezone.utc)


BOOKING_STATUSES = {"pending", "confirmed", "in_transit", "delivered", "completed", "cancelled"}


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column("booking_id", db.Integer, primary_key=True)
    booking_number = db.Column(db.String(50), unique=True, nullable=False)
    service_type = db.Column(db.String(30), nullable=False)
    client_name = db.Column(db.String(200))
    booking_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), default="pending", nullable=False)
    remarks = db.Column(db.Text)
    is_deleted = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.Index("ix_bookings_service_type", "service_type"),
        db.Index("ix_bookings_status", "status"),
    )

    milestones = db.relationship(
        "BookingMilestone",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingMilestone.sequence_order",
    )

    def to_dict(self, include_milestones=False):
        d = {
            "booking_id": self.id,
            "booking_number": self.booking_number,
            "service_type": self.service_type,
            "client_name": self.client_name,
            "booking_date": self.booking_date.isoformat() if self.booking_date else None,
            "status": self.status,
            "remarks": self.remarks,
            "is_deleted": 1 if self.is_deleted else 0,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_milestones:
            d["milestones"] = [m.to_dict() for m in self.milestones]
        return d
