import logging
import os
from flask import Flask, jsonify, render_template, request
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def create_app(config_name=None, overrides=None):
    flask_app = Flask(__name__)

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV")
        if not config_name:
            # Default to production on managed platforms to avoid accidental
            # debug mode/weak defaults when env selection is omitted.
            if os.environ.get("RAILWAY_ENVIRONMENT") or os.environ.get("PORT"):
                config_name = "production"
            else:
                config_name = "development"

    from seller_dashboard.config import Config, config_map

    config_cls = config_map.get(config_name, config_map["development"])
    flask_app.config.from_object(config_cls)
    if overrides:
        flask_app.config.update(overrides)

    if hasattr(config_cls, "init_app"):
        config_cls.init_app(flask_app)

    # Initialize extensions
    from seller_dashboard.extensions import db, migrate, init_drafts, init_redis, init_storage

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    init_redis(flask_app)
    init_storage(flask_app)
    init_drafts(flask_app)

    # Import models so Alembic sees them
    from seller_dashboard.models import (  # noqa: F401
        AuditLog,
        OtpCode,
        ProductVersion,
        Seller,
        SupportQuery,
    )

    # Register blueprints
    from seller_dashboard.blueprints.auth import auth_bp
    from seller_dashboard.blueprints.dashboard import dashboard_bp

    flask_app.register_blueprint(auth_bp, url_prefix="/auth")
    flask_app.register_blueprint(dashboard_bp, url_prefix="/dashboard")

    from seller_dashboard.errors import ConfigurationError, DashboardError

    @flask_app.errorhandler(DashboardError)
    def handle_dashboard_error(e):
        return jsonify(e.to_dict()), e.status_code

    # Without a database and bucket nothing but /health can work, so every
    # other request gets the configuration page instead of a crash.
    missing = Config.missing_backend_settings(flask_app.config)
    if missing:
        config_error = ConfigurationError(missing)
        logger.error("%s", config_error)

        @flask_app.before_request
        def configuration_error():
            if request.path == "/health":
                return None
            return render_template("config_error.html", missing=config_error.missing), 503

    # Register CLI commands
    from seller_dashboard.cli import register_cli

    register_cli(flask_app)

    # Health check
    @flask_app.route("/health")
    def health():
        from seller_dashboard.extensions import redis_client

        checks = {"status": "ok"}
        if missing:
            checks["config"] = "incomplete"
            checks["status"] = "degraded"
        try:
            db.session.execute(db.text("SELECT 1"))
            checks["db"] = "ok"
        except Exception:
            flask_app.logger.exception("Health check DB probe failed")
            checks["db"] = "error"
            checks["status"] = "degraded"
        try:
            if redis_client:
                redis_client.ping()
                checks["redis"] = "ok"
            else:
                checks["redis"] = "not configured"
        except Exception:
            flask_app.logger.exception("Health check Redis probe failed")
            checks["redis"] = "error"
            checks["status"] = "degraded"
        status_code = 200 if checks["status"] == "ok" else 503
        return checks, status_code

    return flask_app
