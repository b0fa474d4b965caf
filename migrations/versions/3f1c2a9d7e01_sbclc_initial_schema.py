"""sbclc_initial_schema

Creates the back-office core tables:
  - roles              : role definitions with permissions_version lock
  - role_permissions   : flat (role_code, module_id, action) grants
  - users              : sign-in accounts bound to one role
  - milestones         : milestone definitions per service type
  - bookings           : booking header
  - booking_milestones : per-booking milestone instances (snapshots)

Tables created conditionally (IF NOT EXISTS semantics) to support idempotent
execution against databases that already received these tables via db.create_all()
in a development environment.

Revision ID: 3f1c2a9d7e01
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '3f1c2a9d7e01'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Roles ─────────────────────────────────────────────────────────────
    if "roles" not in existing:
        op.create_table(
            "roles",
            sa.Column("role_id", sa.Integer(), nullable=False),
            sa.Column("role_code", sa.String(length=50), nullable=False),
            sa.Column("role_name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("permissions_version", sa.Integer(), nullable=False, server_default="1",
                      comment="Bumped on every grant replace (optimistic lock)"),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("role_id"),
            sa.UniqueConstraint("role_code"),
            sa.UniqueConstraint("role_name"),
        )

    # ── Role permissions ──────────────────────────────────────────────────
    if "role_permissions" not in existing:
        op.create_table(
            "role_permissions",
            sa.Column("permission_id", sa.Integer(), nullable=False),
            sa.Column("role_code", sa.String(length=50), nullable=False),
            sa.Column("module_id", sa.String(length=50), nullable=False),
            sa.Column("action", sa.String(length=20), nullable=False,
                      comment="view | create | edit | delete | approve | reject | export | disburse"),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["role_code"], ["roles.role_code"],
                                    ondelete="CASCADE", onupdate="CASCADE"),
            sa.PrimaryKeyConstraint("permission_id"),
            sa.UniqueConstraint("role_code", "module_id", "action", name="uq_role_module_action"),
        )
        op.create_index("ix_role_permissions_role_code", "role_permissions", ["role_code"])

    # ── Users ─────────────────────────────────────────────────────────────
    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("username", sa.String(length=100), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("password_hash", sa.String(length=256), nullable=True),
            sa.Column("full_name", sa.String(length=200), nullable=True),
            sa.Column("department", sa.String(length=100), nullable=True),
            sa.Column("role_code", sa.String(length=50), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("last_login_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["role_code"], ["roles.role_code"], onupdate="CASCADE"),
            sa.PrimaryKeyConstraint("user_id"),
            sa.UniqueConstraint("username"),
            sa.UniqueConstraint("email"),
        )

    # ── Milestone definitions ─────────────────────────────────────────────
    if "milestones" not in existing:
        op.create_table(
            "milestones",
            sa.Column("milestone_id", sa.Integer(), nullable=False),
            sa.Column("milestone_code", sa.String(length=50), nullable=False),
            sa.Column("milestone_name", sa.String(length=200), nullable=False),
            sa.Column("service_type", sa.String(length=30), nullable=False,
                      comment="import | domestic_trucking | domestic_forwarding"),
            sa.Column("sequence_order", sa.Integer(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("estimated_days", sa.Float(), nullable=False, server_default="0"),
            sa.Column("notify_before_days", sa.Float(), nullable=False, server_default="0"),
            sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("priority", sa.String(length=10), nullable=False, server_default="medium",
                      comment="low | medium | high | urgent"),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("milestone_id"),
            sa.UniqueConstraint("service_type", "milestone_code", name="uq_milestone_service_code"),
        )
        op.create_index("idx_milestones_service_type", "milestones", ["service_type"])
        op.create_index("idx_milestones_active", "milestones", ["is_active"])

    # ── Bookings ──────────────────────────────────────────────────────────
    if "bookings" not in existing:
        op.create_table(
            "bookings",
            sa.Column("booking_id", sa.Integer(), nullable=False),
            sa.Column("booking_number", sa.String(length=50), nullable=False),
            sa.Column("service_type", sa.String(length=30), nullable=False),
            sa.Column("client_name", sa.String(length=200), nullable=True),
            sa.Column("booking_date", sa.Date(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("remarks", sa.Text(), nullable=True),
            sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("booking_id"),
            sa.UniqueConstraint("booking_number"),
        )
        op.create_index("ix_bookings_service_type", "bookings", ["service_type"])
        op.create_index("ix_bookings_status", "bookings", ["status"])

    # ── Booking milestones ────────────────────────────────────────────────
    if "booking_milestones" not in existing:
        op.create_table(
            "booking_milestones",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("booking_id", sa.Integer(), nullable=False),
            sa.Column("milestone_id", sa.Integer(), nullable=True,
                      comment="NULL once the definition is deleted"),
            sa.Column("milestone_code", sa.String(length=50), nullable=False),
            sa.Column("milestone_name", sa.String(length=200), nullable=False),
            sa.Column("sequence_order", sa.Integer(), nullable=False),
            sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("estimated_days", sa.Float(), nullable=False, server_default="0"),
            sa.Column("notify_before_days", sa.Float(), nullable=False, server_default="0"),
            sa.Column("priority", sa.String(length=10), nullable=False, server_default="medium"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending",
                      comment="pending | in_progress | completed | blocked"),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("started_at", sa.DateTime(), nullable=True),
            sa.Column("completed_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["booking_id"], ["bookings.booking_id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["milestone_id"], ["milestones.milestone_id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("booking_id", "milestone_code", name="uq_booking_milestone_code"),
        )
        op.create_index("ix_booking_milestones_booking_id", "booking_milestones", ["booking_id"])


def downgrade():
    op.drop_table("booking_milestones")
    op.drop_table("bookings")
    op.drop_table("milestones")
    op.drop_table("users")
    op.drop_table("role_permissions")
    op.drop_table("roles")
