"""
SBCLC Logistics Back-Office
Milestone models — master-data definitions and per-booking instances.

Models:
    - MilestoneDefinition:  ordered checklist step for one service type
    - BookingMilestone:     one step's completion state on one booking

Architecture:
    MilestoneDefinition ──1:N──▶ BookingMilestone ◀──N:1── Booking

    A BookingMilestone snapshots code/name/ordering/durations from its
    definition at generation time.  Deleting the definition nulls the
    reference but keeps the instance (historical bookings stay viewable).

Lifecycle states:
    BookingMilestone:   pending → in_progress → completed
                        pending | in_progress → blocked → in_progress | completed
                        completed is terminal (no un-completing)
"""

from datetime import datetime, timezone

from sbclc.core.enums import MilestoneStatus, StepPriority
from sbclc.models import db


def _utcnow():
    return datetime.now(timezone.utc)


# ── Lifecycle Transition Guards ──────────────────────────────────────────────

MILESTONE_TRANSITIONS = {
    MilestoneStatus.PENDING:     [MilestoneStatus.IN_PROGRESS, MilestoneStatus.COMPLETED, MilestoneStatus.BLOCKED],
    MilestoneStatus.IN_PROGRESS: [MilestoneStatus.COMPLETED, MilestoneStatus.BLOCKED],
    MilestoneStatus.BLOCKED:     [MilestoneStatus.IN_PROGRESS, MilestoneStatus.COMPLETED],
    MilestoneStatus.COMPLETED:   [],
}


def validate_milestone_transition(old_status, new_status):
    """Return True if BookingMilestone status transition is valid."""
    return new_status in MILESTONE_TRANSITIONS.get(MilestoneStatus(old_status), [])


# ═════════════════════════════════════════════════════════════════════════════
# MilestoneDefinition
# ═════════════════════════════════════════════════════════════════════════════


class MilestoneDefinition(db.Model):
    __tablename__ = "milestones"

    id = db.Column("milestone_id", db.Integer, primary_key=True)
    milestone_code = db.Column(db.String(50), nullable=False)
    milestone_name = db.Column(db.String(200), nullable=False)
    service_type = db.Column(db.String(30), nullable=False)
    sequence_order = db.Column(db.Integer, nullable=False)
    description = db.Column(db.Text)
    estimated_days = db.Column(db.Float, default=0, nullable=False)
    notify_before_days = db.Column(db.Float, default=0, nullable=False)
    is_required = db.Column(db.Boolean, default=True, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    priority = db.Column(db.String(10), default=StepPriority.MEDIUM.value, nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("service_type", "milestone_code", name="uq_milestone_service_code"),
        db.Index("idx_milestones_service_type", "service_type"),
        db.Index("idx_milestones_active", "is_active"),
    )

    instances = db.relationship("BookingMilestone", back_populates="definition", lazy="dynamic")

    def to_dict(self):
        return {
            "milestone_id": self.id,
            "milestone_code": self.milestone_code,
            "milestone_name": self.milestone_name,
            "service_type": self.service_type,
            "sequence_order": self.sequence_order,
            "description": self.description,
            "estimated_days": _number(self.estimated_days),
            "notify_before_days": _number(self.notify_before_days),
            "is_required": 1 if self.is_required else 0,
            "is_active": 1 if self.is_active else 0,
            "priority": self.priority,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<MilestoneDefinition {self.service_type}:{self.milestone_code} #{self.sequence_order}>"


# ═════════════════════════════════════════════════════════════════════════════
# BookingMilestone
# ═════════════════════════════════════════════════════════════════════════════


class BookingMilestone(db.Model):
    __tablename__ = "booking_milestones"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(
        db.Integer, db.ForeignKey("bookings.booking_id", ondelete="CASCADE"), nullable=False,
    )
    milestone_id = db.Column(
        db.Integer, db.ForeignKey("milestones.milestone_id", ondelete="SET NULL"), nullable=True,
    )
    milestone_code = db.Column(db.String(50), nullable=False)
    milestone_name = db.Column(db.String(200), nullable=False)
    sequence_order = db.Column(db.Integer, nullable=False)
    is_required = db.Column(db.Boolean, default=True, nullable=False)
    estimated_days = db.Column(db.Float, default=0, nullable=False)
    notify_before_days = db.Column(db.Float, default=0, nullable=False)
    priority = db.Column(db.String(10), default=StepPriority.MEDIUM.value, nullable=False)
    status = db.Column(db.String(20), default=MilestoneStatus.PENDING.value, nullable=False)
    notes = db.Column(db.Text)
    started_at = db.Column(db.DateTime)
    completed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("booking_id", "milestone_code", name="uq_booking_milestone_code"),
        db.Index("ix_booking_milestones_booking_id", "booking_id"),
    )

    booking = db.relationship("Booking", back_populates="milestones")
    definition = db.relationship("MilestoneDefinition", back_populates="instances")

    @property
    def is_orphaned(self) -> bool:
        return self.milestone_id is None

    def to_dict(self):
        return {
            "id": self.id,
            "booking_id": self.booking_id,
            "milestone_id": self.milestone_id,
            "milestone_code": self.milestone_code,
            "milestone_name": self.milestone_name,
            "sequence_order": self.sequence_order,
            "is_required": 1 if self.is_required else 0,
            "estimated_days": _number(self.estimated_days),
            "notify_before_days": _number(self.notify_before_days),
            "priority": self.priority,
            "status": self.status,
            "notes": self.notes,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "is_orphaned": self.is_orphaned,
        }


def _number(value):
    """Render whole-day floats as ints so the API keeps integer day counts."""
    if value is None:
        return 0
    return int(value) if float(value).is_integer() else value
