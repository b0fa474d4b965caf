"""
Password hashing for back-office sign-in.

New hashes are bcrypt with the cost taken from ``BCRYPT_ROUNDS`` (tests run
with a low cost).  Accounts migrated from the old Node back-office carry
werkzeug (scrypt/pbkdf2) hashes; those still verify, and ``needs_rehash``
flags them so a successful login can upgrade them in place.
"""

import bcrypt
from flask import current_app, has_app_context
from werkzeug.security import check_password_hash

from sbclc.core.exceptions import ValidationError

DEFAULT_ROUNDS = 12
MIN_PASSWORD_LENGTH = 8

_BCRYPT_PREFIXES = ("$2b$", "$2a$")


def _rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", DEFAULT_ROUNDS))
    return DEFAULT_ROUNDS


def check_password_policy(plain_password: str) -> None:
    """Raise ValidationError when a new password is too weak to store."""
    if not plain_password or len(plain_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={"password": "too_short"},
        )
    if plain_password.isdigit() or plain_password.isalpha():
        raise ValidationError(
            "Password must mix letters and digits or symbols",
            details={"password": "too_simple"},
        )


def hash_password(plain_password: str) -> str:
    salt = bcrypt.gensalt(rounds=_rounds())
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    if password_hash.startswith(_BCRYPT_PREFIXES):
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    return check_password_hash(password_hash, plain_password)


def needs_rehash(password_hash: str | None) -> bool:
    """True for legacy werkzeug hashes and bcrypt hashes below the current cost."""
    if not password_hash:
        return False
    if not password_hash.startswith(_BCRYPT_PREFIXES):
        return True
    # $2b$12$...
    try:
        cost = int(password_hash.split("$")[2])
    except (IndexError, ValueError):
        return True
    return cost < _rounds()
