"""
JWT Auth Middleware — Parses JWT from Authorization header, sets g.jwt_*.

Sets:
    g.jwt_user_id   user id (int) or None
    g.jwt_role      role code or None

An invalid or expired token leaves the context empty; route decorators
decide whether anonymous access is allowed.
"""

import logging

import jwt as pyjwt
from flask import g, request

from sbclc.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/login",
    "/api/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.jwt_role = None

        path = request.path
        if not path.startswith("/api/"):
            return
        if path.startswith(JWT_SKIP_PREFIXES):
            return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired token on %s", path)
            return
        except pyjwt.InvalidTokenError as exc:
            logger.warning("Invalid token on %s: %s", path, exc)
            return

        try:
            g.jwt_user_id = int(payload.get("sub"))
        except (TypeError, ValueError):
            logger.warning("Token without a usable subject on %s", path)
            return
        g.jwt_role = payload.get("role")
