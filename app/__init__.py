"""
ClientForge
Flask Application Factory.

Usage:
    from app import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from app.config import config
from app.models import db
from app.middleware.logging_config import configure_logging
from app.middleware.timing import init_request_timing
from app.middleware.security_headers import init_security_headers
from app.middleware.rate_limiter import init_rate_limits
from app.middleware.jwt_auth import init_jwt_middleware

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine
from sqlalchemy.exc import SQLAlchemyError

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
    default_limits=[],                     # limits are applied per blueprint
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
    app.config.from_object(config[config_name])

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

    # ── Security headers (CSP, HSTS, X-Frame-Options, etc.) ─────────────
    init_security_headers(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── JWT auth middleware (populates g.jwt_user_id) ────────────────────
    init_jwt_middleware(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    @app.before_request
    def _guard_request():
        from flask import request as _req, abort
        max_len = app.config.get("MAX_CONTENT_LENGTH")
        if max_len and _req.content_length and _req.content_length > max_len:
            abort(413, description="Request body too large")
        # Mutating API calls carry JSON bodies
        if _req.method in ("POST", "PUT", "PATCH") and _req.path.startswith("/api/"):
            ct = _req.content_type or ""
            if _req.data and "json" not in ct and "multipart/form-data" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic can detect them ─────────────────────
    from app.models import auth as _auth_models             # noqa: F401
    from app.models import client as _client_models         # noqa: F401
    from app.models import project as _project_models       # noqa: F401
    from app.models import planning as _planning_models     # noqa: F401
    from app.models import document as _document_models     # noqa: F401
    from app.models import agent as _agent_models           # noqa: F401
    from app.models import vault as _vault_models           # noqa: F401
    from app.models import proposal as _proposal_models     # noqa: F401
    from app.models import export as _export_models         # noqa: F401
    from app.models import activity as _activity_models     # noqa: F401
    from app.models import platform as _platform_models     # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except SQLAlchemyError as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from app.blueprints.auth_bp import auth_bp
    from app.blueprints.portal_bp import portal_bp
    from app.blueprints.client_bp import client_bp
    from app.blueprints.project_bp import project_bp
    from app.blueprints.briefing_bp import briefing_bp
    from app.blueprints.planning_bp import planning_bp
    from app.blueprints.stage_bp import stage_bp
    from app.blueprints.team_bp import team_bp
    from app.blueprints.document_bp import document_bp
    from app.blueprints.vault_bp import vault_bp
    from app.blueprints.agent_bp import agent_bp
    from app.blueprints.proposal_bp import proposal_bp
    from app.blueprints.export_bp import export_bp
    from app.blueprints.admin_bp import admin_bp
    from app.blueprints.health_bp import health_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(portal_bp)
    app.register_blueprint(client_bp)
    app.register_blueprint(project_bp)
    app.register_blueprint(briefing_bp)
    app.register_blueprint(planning_bp)
    app.register_blueprint(stage_bp)
    app.register_blueprint(team_bp)
    app.register_blueprint(document_bp)
    app.register_blueprint(vault_bp)
    app.register_blueprint(agent_bp)
    app.register_blueprint(proposal_bp)
    app.register_blueprint(export_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(health_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        from flask import request
        if request.path.startswith("/api/"):
            return {"error": "Not found", "path": request.path}, 404
        return {"error": "Not found"}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large"}, 413

    @app.errorhandler(415)
    def unsupported_media(e):
        return {"error": "Content-Type must be application/json"}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
