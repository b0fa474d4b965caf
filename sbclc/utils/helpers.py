"""Shared request helpers.
parse_date:          lenient, returns None on bad input
parse_date_input:    strict, raises ValidationError on bad input
parse_bool_flag:     accepts 0|1, true|false, bool
get_json_or_error:   400 on missing / non-object JSON body
"""
from datetime import date, datetime

from flask import request

from sbclc.core.exceptions import ValidationError
from sbclc.utils.errors import E, api_error


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_date_input(value, field="date"):
    """Same as parse_date() but raises ValidationError when *value* is given
    and cannot be parsed."""
    if value in (None, ""):
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError(
            f"{field} must be a date (YYYY-MM-DD or DD.MM.YYYY)",
            details={field: "invalid date"},
        )
    return parsed


def parse_bool_flag(value, field, default=None):
    """Coerce a ``0|1`` / bool / "true"/"false" flag to bool."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ("1", "true", "yes"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("0", "false", "no"):
        return False
    raise ValidationError(f"{field} must be 0 or 1", details={field: "invalid flag"})


def get_json_or_error():
    """Return ``(data, None)`` for a JSON object body, else ``(None, error)``.

    Usage::

        data, err = get_json_or_error()
        if err:
            return err
    """
    data = request.get_json(silent=True)
    if data is None:
        return None, api_error(E.VALIDATION_REQUIRED, "Request body must be JSON")
    if not isinstance(data, dict):
        return None, api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    return data, None


