"""
Tierbook
Flask Application Factory.

Usage:
    from tierbook import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from tierbook.auth import init_auth
from tierbook.config import config
from tierbook.middleware.logging_config import configure_logging
from tierbook.middleware.rate_limiter import init_rate_limits
from tierbook.middleware.timing import init_request_timing
from tierbook.models import db

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
    default_limits=[],  # no global limit, applied per blueprint
)

# Uploads that are not JSON
_BINARY_UPLOAD_SUFFIX = "/import"


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
    # ProductionConfig validates required env vars in __init__
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

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

    # ── Authentication (resolves g.current_user) ─────────────────────────
    init_auth(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    @app.before_request
    def _guard_request():
        max_len = app.config.get("MAX_CONTENT_LENGTH")
        if max_len and request.content_length and request.content_length > max_len:
            abort(413, description="Request body too large")
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            if request.path.endswith(_BINARY_UPLOAD_SUFFIX):
                return None
            ct = request.content_type or ""
            if request.data and "json" not in ct:
                abort(415, description="Content-Type must be application/json")
        return None

    # ── Import all models so Alembic and create_all can see them ────────
    from tierbook.models import field_template as _field_template_models  # noqa: F401
    from tierbook.models import project as _project_models  # noqa: F401
    from tierbook.models import tier as _tier_models  # noqa: F401

    if app.config.get("SQLALCHEMY_DATABASE_URI", "").startswith("sqlite:///") \
            and ":memory:" not in app.config["SQLALCHEMY_DATABASE_URI"]:
        os.makedirs(app.instance_path, exist_ok=True)

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        db.create_all()
        app.logger.debug("db.create_all() completed")

    # ── Blueprints ───────────────────────────────────────────────────────
    from tierbook.blueprints.field_bp import field_bp
    from tierbook.blueprints.health_bp import health_bp
    from tierbook.blueprints.project_bp import project_bp
    from tierbook.blueprints.template_bp import template_bp
    from tierbook.blueprints.tier_bp import tier_bp
    from tierbook.blueprints.transfer_bp import transfer_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(project_bp)
    app.register_blueprint(tier_bp)
    app.register_blueprint(field_bp)
    app.register_blueprint(template_bp)
    app.register_blueprint(transfer_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("create-user")
    @click.argument("email")
    @click.option("--admin", is_flag=True, help="Grant admin rights.")
    def create_user_cmd(email, admin):
        """Create a user that can authenticate with X-User-Id."""
        from tierbook.models.project import User

        user = User(email=email.strip().lower(), is_admin=admin)
        db.session.add(user)
        db.session.commit()
        click.echo(f"Created user id={user.id} email={user.email} admin={user.is_admin}")

    @app.cli.command("seed-templates")
    def seed_templates_cmd():
        """Seed the built-in system field templates."""
        from tierbook.services.template_service import seed_system_templates

        count = seed_system_templates()
        logger.info("Seeded %s new system templates.", count)
        click.echo(f"Seeded {count} system template(s).")

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large"}, 413

    @app.errorhandler(415)
    def unsupported_media(e):
        return {"error": e.description}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
