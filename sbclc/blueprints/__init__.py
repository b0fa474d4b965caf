"""
SBCLC Logistics Back-Office
Blueprint registry and shared view helpers.
"""

import logging

from flask import request
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError
from werkzeug.exceptions import HTTPException

from sbclc.core.exceptions import ConflictError, NotFoundError, ValidationError
from sbclc.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def paginate_query(query, default_limit=200, max_limit=1000):
    """Apply limit/offset pagination to a SQLAlchemy query.

    Query params:
        limit  — max items (default 200, clamped to 1..max_limit)
        offset — starting position (default 0)

    Returns:
        (items_list, total_count)
    """
    total = query.count()
    try:
        limit = max(min(int(request.args.get("limit", default_limit)), max_limit), 1)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    items = query.limit(limit).offset(offset).all()
    return items, total


def register_service_error_handlers(bp):
    """Map service-layer exceptions to JSON responses for one blueprint."""

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, str(error))

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_CONSTRAINT, str(error), details=error.details)

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        code = E.CONFLICT_STATE if error.field in ("status", "permissions_version") else E.CONFLICT_DUPLICATE
        return api_error(code, str(error), details={"field": error.field, "value": error.value})

    @bp.errorhandler(IntegrityError)
    def _handle_integrity(error: IntegrityError):
        logger.warning("Integrity error in %s: %s", bp.name, error.orig)
        return api_error(E.CONFLICT_DUPLICATE, "Duplicate or constraint violation")

    @bp.errorhandler(StaleDataError)
    def _handle_stale(error: StaleDataError):
        logger.warning("Stale row in %s: %s", bp.name, error)
        return api_error(E.CONFLICT_STATE, "Record was changed by someone else; reload and retry")

    @bp.errorhandler(OperationalError)
    def _handle_operational(error: OperationalError):
        logger.exception("Database operational error in %s", bp.name)
        return api_error(E.DATABASE, "Database error")

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")
