"""
Auth Models — roles, role permission grants, users.

A role owns a flat set of ``(module_id, action)`` grants.  Grants are replaced
wholesale per role.  ``permissions_version`` is the mapper's version counter:
every UPDATE of the role row is issued as
``... WHERE permissions_version = <loaded>`` and bumps it, so a concurrent
write surfaces as StaleDataError instead of being overwritten.
"""

from datetime import datetime, timezone

from sbclc.models import db


def _utcnow():
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════
# 1. ROLES
# ═══════════════════════════════════════════════════════════════
class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column("role_id", db.Integer, primary_key=True)
    role_code = db.Column(db.String(50), unique=True, nullable=False)
    role_name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    permissions_version = db.Column(db.Integer, default=1, nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    __mapper_args__ = {"version_id_col": permissions_version}

    # Relationships
    grants = db.relationship(
        "RolePermission",
        back_populates="role",
        lazy="dynamic",
        cascade="all, delete-orphan",
        primaryjoin="Role.role_code == RolePermission.role_code",
        foreign_keys="RolePermission.role_code",
    )
    users = db.relationship(
        "User",
        back_populates="role",
        lazy="dynamic",
        primaryjoin="Role.role_code == User.role_code",
        foreign_keys="User.role_code",
    )

    def modules(self):
        """Grant set grouped as ``{module_id: [action, ...]}``."""
        grouped: dict[str, list[str]] = {}
        for g in self.grants.order_by(RolePermission.module_id, RolePermission.action).all():
            grouped.setdefault(g.module_id, []).append(g.action)
        return grouped

    def to_dict(self, include_permissions=False):
        d = {
            "role_id": self.id,
            "role_code": self.role_code,
            "role_name": self.role_name,
            "description": self.description,
            "is_active": 1 if self.is_active else 0,
            "permissions_version": self.permissions_version,
            "user_count": self.users.count(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_permissions:
            d["modules"] = self.modules()
        return d


# ═══════════════════════════════════════════════════════════════
# 2. ROLE_PERMISSIONS
# ═══════════════════════════════════════════════════════════════
class RolePermission(db.Model):
    __tablename__ = "role_permissions"

    id = db.Column("permission_id", db.Integer, primary_key=True)
    role_code = db.Column(
        db.String(50),
        db.ForeignKey("roles.role_code", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    module_id = db.Column(db.String(50), nullable=False)
    action = db.Column(db.String(20), nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("role_code", "module_id", "action", name="uq_role_module_action"),
        db.Index("ix_role_permissions_role_code", "role_code"),
    )

    role = db.relationship(
        "Role",
        back_populates="grants",
        primaryjoin="Role.role_code == RolePermission.role_code",
        foreign_keys=[role_code],
    )

    def to_dict(self):
        return {
            "permission_id": self.id,
            "role_code": self.role_code,
            "module_id": self.module_id,
            "action": self.action,
        }


# ═══════════════════════════════════════════════════════════════
# 3. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column("user_id", db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False)
    email = db.Column(db.String(200), unique=True, nullable=False)
    password_hash = db.Column(db.String(256))
    full_name = db.Column(db.String(200))
    department = db.Column(db.String(100))
    role_code = db.Column(
        db.String(50),
        db.ForeignKey("roles.role_code", onupdate="CASCADE"),
        nullable=False,
    )
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=_utcnow)

    role = db.relationship(
        "Role",
        back_populates="users",
        primaryjoin="Role.role_code == User.role_code",
        foreign_keys=[role_code],
    )

    def to_dict(self):
        return {
            "user_id": self.id,
            "username": self.username,
            "email": self.email,
            "full_name": self.full_name,
            "department": self.department,
            "role": self.role_code,
            "is_active": 1 if self.is_active else 0,
            "last_login_at": self.last_login_at.isoformat() if self.last_login_at else None,
        }
