"""
SBCLC Logistics Back-Office
Flask Application Factory.

Usage:
    from sbclc import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine, event as _sa_event

from sbclc.config import config
from sbclc.middleware.diagnostics import run_startup_diagnostics
from sbclc.middleware.jwt_auth import init_jwt_middleware
from sbclc.middleware.logging_config import configure_logging
from sbclc.middleware.rate_limiter import init_rate_limits
from sbclc.middleware.security_headers import init_security_headers
from sbclc.middleware.timing import init_request_timing
from sbclc.models import db

logger = logging.getLogger(__name__)


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit; applied per blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    config_cls = config[config_name]
    # ProductionConfig validates required env vars on instantiation
    app.config.from_object(config_cls())

    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Middleware ───────────────────────────────────────────────────────
    init_security_headers(app)
    init_request_timing(app)
    init_jwt_middleware(app)

    app.config.setdefault("MAX_CONTENT_LENGTH", 1 * 1024 * 1024)  # 1 MB

    # ── Models (import so create_all sees every table) ───────────────────
    from sbclc.models import auth as _auth_models            # noqa: F401
    from sbclc.models import booking as _booking_models      # noqa: F401
    from sbclc.models import milestone as _milestone_models  # noqa: F401

    if config_name != "testing":
        if config_name == "development":
            os.makedirs(os.path.join(os.path.dirname(app.root_path), "instance"), exist_ok=True)
        with app.app_context():
            try:
                db.create_all()
                app.logger.info("db.create_all() completed successfully")
            except Exception as e:
                app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from sbclc.blueprints.auth_bp import auth_bp
    from sbclc.blueprints.booking_bp import booking_bp
    from sbclc.blueprints.health_bp import health_bp
    from sbclc.blueprints.milestone_bp import milestone_bp
    from sbclc.blueprints.role_bp import role_bp
    from sbclc.blueprints.workflow_bp import workflow_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(role_bp)
    app.register_blueprint(milestone_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(workflow_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-master-data")
    def seed_master_data_cmd():
        """Seed default roles, grants, admin user and milestone sets."""
        from sbclc.services.seed_service import seed_master_data
        result = seed_master_data()
        click.echo(
            f"Seeded {result['roles']} role(s), {result['milestones']} milestone(s)"
            f"{', admin user' if result['admin_user'] else ''}."
        )

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "message": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed", "message": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large", "message": "Request body too large"}, 413

    @app.errorhandler(429)
    def rate_limited(e):
        return {
            "error": "Too many requests",
            "message": "Too many requests",
            "retry_after": e.description,
        }, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error", "message": "Internal server error"}, 500

    # ── Startup diagnostics ──────────────────────────────────────────────
    run_startup_diagnostics(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
