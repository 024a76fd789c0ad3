"""
Pharmacoeconomic Request Workflow
Flask Application Factory.

Usage:
    from app import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event
from sqlalchemy.exc import SQLAlchemyError

from app.auth import init_auth
from app.config import config
from app.middleware.jwt_auth import init_jwt_middleware
from app.middleware.logging_config import configure_logging
from app.middleware.rate_limiter import init_rate_limits
from app.middleware.security_headers import init_security_headers
from app.middleware.timing import init_request_timing
from app.models import db
from app.utils.errors import register_error_handlers

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
    default_limits=[],                     # no global limit; applied per blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),  # Redis in production, memory for dev
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
    app.config.from_object(config[config_name]())
    os.makedirs(app.instance_path, exist_ok=True)  # default SQLite file lives here

    # ── Structured logging (must be first) ───────────────────────────────
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

    # ── Content-Type / Origin guards on mutating API calls ──────────────
    init_auth(app)

    # ── Security headers (CSP, HSTS, X-Frame-Options, etc.) ─────────────
    init_security_headers(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── JWT auth middleware (sets g.current_user_*) ─────────────────────
    init_jwt_middleware(app)

    @app.before_request
    def _guard_request():
        max_len = app.config.get("MAX_CONTENT_LENGTH")
        if max_len and request.content_length and request.content_length > max_len:
            abort(413, description="Request body too large")

    # ── Import all models so Alembic can detect them ─────────────────────
    from app.models import analytics as _analytics_models  # noqa: F401
    from app.models import auth as _auth_models            # noqa: F401
    from app.models import chat as _chat_models            # noqa: F401
    from app.models import feedback as _feedback_models    # noqa: F401
    from app.models import request as _request_models      # noqa: F401
    from app.models import survey as _survey_models        # noqa: F401
    from app.models import task as _task_models            # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except SQLAlchemyError as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from app.blueprints.analytics_bp import analytics_bp
    from app.blueprints.attachments_bp import attachments_bp
    from app.blueprints.auth_bp import auth_bp
    from app.blueprints.chat_bp import chat_bp
    from app.blueprints.feedback_bp import feedback_bp
    from app.blueprints.health_bp import health_bp
    from app.blueprints.quality_bp import quality_bp
    from app.blueprints.requests_bp import requests_bp
    from app.blueprints.surveys_bp import surveys_bp
    from app.blueprints.tasks_bp import tasks_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(requests_bp)
    app.register_blueprint(tasks_bp)
    app.register_blueprint(attachments_bp)
    app.register_blueprint(chat_bp)
    app.register_blueprint(analytics_bp)
    app.register_blueprint(feedback_bp)
    app.register_blueprint(quality_bp)
    app.register_blueprint(surveys_bp)

    # ── Error handlers (domain errors → JSON) ────────────────────────────
    register_error_handlers(app)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("create-users")
    def create_users_cmd():
        """Seed one account per role (skips emails that already exist)."""
        from app.services.user_service import seed_default_users
        for user, created in seed_default_users():
            logger.info("%s %s (%s)", "Created" if created else "Exists ", user.email, user.role)

    @app.cli.command("init-chat-rooms")
    def init_chat_rooms_cmd():
        """Create the shared employee chat room if it does not exist."""
        from app.services.chat_service import get_or_create_employee_room
        room = get_or_create_employee_room()
        logger.info("Employee chat room ready: id=%s name=%s", room.id, room.name)

    @app.cli.command("migrate-survey-types")
    def migrate_survey_types_cmd():
        """Retype MULTIPLE_CHOICE questions that never got a multi-select answer."""
        from app.services.survey_service import migrate_multiple_choice
        converted = migrate_multiple_choice()
        logger.info("Migration complete: converted %s questions to SINGLE_CHOICE", converted)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
