"""
ISP Project Manager
Flask Application Factory.

Usage:
    from isp_manager import create_app
    app = create_app()           # defaults to "development"
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
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event
from sqlalchemy.exc import SQLAlchemyError

from isp_manager.config import config
from isp_manager.middleware.jwt_auth import init_jwt_middleware
from isp_manager.middleware.logging_config import configure_logging
from isp_manager.middleware.rate_limiter import init_rate_limits
from isp_manager.middleware.timing import init_request_timing
from isp_manager.models import db
from isp_manager.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
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
    default_limits=[],                     # no global limit, apply per-blueprint
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
    cfg = config[config_name]
    app.config.from_object(cfg() if config_name == "production" else cfg)

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
    init_request_timing(app)
    init_jwt_middleware(app)

    # ── Models (register tables on db.metadata) ─────────────────────────
    from isp_manager.models import acceptance as _acceptance_models  # noqa: F401
    from isp_manager.models import auth as _auth_models              # noqa: F401
    from isp_manager.models import costing as _costing_models        # noqa: F401
    from isp_manager.models import deletion as _deletion_models      # noqa: F401
    from isp_manager.models import notification as _notification_models  # noqa: F401
    from isp_manager.models import project as _project_models        # noqa: F401

    if config_name == "development":
        os.makedirs(app.instance_path, exist_ok=True)
        with app.app_context():
            try:
                db.create_all()
            except SQLAlchemyError as e:
                app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from isp_manager.blueprints.auth_bp import auth_bp
    from isp_manager.blueprints.billing_bp import billing_bp
    from isp_manager.blueprints.deletion_bp import deletion_bp
    from isp_manager.blueprints.health_bp import health_bp
    from isp_manager.blueprints.notification_bp import notification_bp
    from isp_manager.blueprints.pnl_bp import pnl_bp
    from isp_manager.blueprints.project_bp import project_bp
    from isp_manager.blueprints.user_bp import user_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(project_bp)
    app.register_blueprint(pnl_bp)
    app.register_blueprint(billing_bp)
    app.register_blueprint(deletion_bp)
    app.register_blueprint(notification_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    register_error_handlers(app)

    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.VALIDATION_INVALID, "Method not allowed", status=405)

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error(E.RATE_LIMITED, "Too many requests", details={"retry_after": e.description})

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    # ── Scheduler (registers jobs) ───────────────────────────────────────
    from isp_manager.services.scheduler_service import SchedulerService
    SchedulerService.init_app(app)

    _register_cli(app)

    return app


def _register_cli(app):
    @app.cli.command("promote-billing")
    def promote_billing():
        """Set billing Pending on Completed projects that have an acceptance form."""
        from isp_manager.services.billing_service import promote_completed_billing
        promoted = promote_completed_billing()
        click.echo(f"Promoted {len(promoted)} project(s) to billing status 'Pending'.")

    @app.cli.command("run-job")
    @click.argument("job_name")
    def run_job(job_name):
        """Run a registered scheduled job once."""
        from isp_manager.services.scheduler_service import SchedulerService
        outcome = SchedulerService.run_job(job_name)
        click.echo(f"{outcome['job_name']}: {outcome['status']} {outcome.get('result') or outcome.get('error')}")
        if outcome["status"] != "success":
            raise SystemExit(1)

    @app.cli.command("seed-users")
    @click.option("--password", default="changeme123", show_default=True)
    def seed_users(password):
        """Create one demo user per role (skips existing emails)."""
        from isp_manager.core.exceptions import ConflictError
        from isp_manager.models.auth import Role
        from isp_manager.services.user_service import register_user

        for role in Role:
            email = f"{role.value.lower().replace('_', '.')}@example.com"
            try:
                register_user(email=email, password=password, role=role.value,
                              name=role.value.replace("_", " ").title())
                click.echo(f"Created {email} ({role.value})")
            except ConflictError:
                click.echo(f"Exists  {email}")
