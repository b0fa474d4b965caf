"""
Startup diagnostics — runs once when the Flask app starts.

Checks critical dependencies and logs a summary banner.
"""

import logging
import sys

from flask import Flask

from sbclc.models import db

logger = logging.getLogger(__name__)


def run_startup_diagnostics(app: Flask):
    """Run diagnostic checks during app startup (inside app context)."""
    if app.config.get("TESTING"):
        return

    issues: list[str] = []

    with app.app_context():
        py = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"

        # ── Database connectivity ────────────────────────────────────
        db_status = "ok"
        db_uri = str(app.config.get("SQLALCHEMY_DATABASE_URI", ""))
        db_type = "PostgreSQL" if "postgresql" in db_uri else "SQLite" if "sqlite" in db_uri else "unknown"
        try:
            db.session.execute(db.text("SELECT 1"))
        except Exception as exc:
            db_status = f"FAILED ({exc})"
            issues.append(f"Database unreachable: {exc}")

        # ── Table count ──────────────────────────────────────────────
        try:
            from sqlalchemy import inspect as sa_inspect
            tables = sa_inspect(db.engine).get_table_names()
            table_count = len(tables)
            if table_count == 0:
                issues.append("No tables found — run 'flask db upgrade'")
        except Exception:
            table_count = "?"

        # ── Master data ──────────────────────────────────────────────
        from sbclc.models.auth import Role
        from sbclc.models.milestone import MilestoneDefinition
        try:
            role_count = Role.query.count()
            milestone_count = MilestoneDefinition.query.filter_by(is_active=True).count()
            if role_count == 0:
                issues.append("No roles defined — run 'flask seed-master-data'")
        except Exception:
            role_count = milestone_count = "?"

        # ── Cache backend ────────────────────────────────────────────
        from sbclc.services import cache_service
        cache = cache_service.health_check()
        cache_status = cache.get("backend", cache.get("detail", "?"))
        if cache.get("status") != "ok":
            issues.append("Cache backend unreachable — master data will not be cached")

        auth_enabled = str(app.config.get("API_AUTH_ENABLED", "false")).lower() == "true"

        banner = f"""
╔══════════════════════════════════════════════════════════════╗
║  SBCLC Back-Office API — Startup Diagnostics                 ║
╠══════════════════════════════════════════════════════════════╣
║  Python      : {py:<46s}║
║  Debug       : {str(app.debug):<46s}║
║  Database    : {db_type} ({db_status}){' ' * max(0, 46 - len(db_type) - len(str(db_status)) - 3)}║
║  Tables      : {str(table_count):<46s}║
║  Roles       : {str(role_count):<46s}║
║  Milestones  : {str(milestone_count):<46s}║
║  Cache       : {str(cache_status):<46s}║
║  Auth        : {'ENABLED' if auth_enabled else 'DISABLED':<46s}║
╚══════════════════════════════════════════════════════════════╝"""
        logger.info(banner)

        if issues:
            logger.warning("Startup issues detected:")
            for issue in issues:
                logger.warning("  ⚠ %s", issue)
        else:
            logger.info("✅ All startup checks passed")
