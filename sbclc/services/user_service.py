"""
User Service — sign-in and user lookup.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, or_

from sbclc.core.exceptions import NotFoundError, ValidationError
from sbclc.models import db
from sbclc.models.auth import Role, User
from sbclc.utils.crypto import check_password_policy, hash_password, needs_rehash, verify_password

logger = logging.getLogger(__name__)


def get_user(user_id) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(resource="User", resource_id=user_id)
    return user


def authenticate(identifier: str, password: str) -> User | None:
    """Return the active user matching username/email + password, else None.

    A user whose role has been deactivated cannot sign in.  Legacy or
    low-cost hashes are replaced with a fresh bcrypt hash on success.
    """
    if not identifier or not password:
        return None
    ident = identifier.strip().lower()
    user = User.query.filter(
        or_(func.lower(User.username) == ident, func.lower(User.email) == ident)
    ).first()
    if user is None or not user.is_active:
        logger.warning("Login failed for %s: unknown or inactive user", ident)
        return None
    if not verify_password(password, user.password_hash):
        logger.warning("Login failed for %s: bad password", ident)
        return None
    if user.role is None or not user.role.is_active:
        logger.warning("Login refused for %s: role %s inactive", ident, user.role_code)
        return None

    if needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        logger.info("Upgraded password hash for user %s", user.id)
    user.last_login_at = datetime.now(timezone.utc)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Failed to record last login for user %s", user.id)
        raise
    logger.info("User %s signed in (role=%s)", user.username, user.role_code)
    return user


def create_user(username, email, password, role_code, full_name=None, department=None) -> User:
    """Create a user; used by the seed command."""
    if not username or not email or not password:
        raise ValidationError("username, email and password are required")
    check_password_policy(password)
    if Role.query.filter_by(role_code=role_code).first() is None:
        raise NotFoundError(resource="Role", resource_id=role_code)
    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role_code=role_code,
        full_name=full_name,
        department=department,
    )
    db.session.add(user)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Failed to create user %s", username)
        raise
    logger.info("Created user %s with role %s", username, role_code)
    return user
