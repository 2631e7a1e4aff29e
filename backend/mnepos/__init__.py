# backend/mnepos/__init__.py
import logging
import os

from flask import Flask, jsonify, request

from .config import Config
from .extensions import configure_sqlite, db, migrate


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    app.logger.setLevel(level)
    logging.getLogger("werkzeug").setLevel(level)

    # SQLite creates the file but not its directory
    uri = app.config["SQLALCHEMY_DATABASE_URI"]
    if uri.startswith("sqlite:///") and ":memory:" not in uri:
        os.makedirs(os.path.dirname(os.path.abspath(uri[len("sqlite:///"):])), exist_ok=True)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    with app.app_context():
        configure_sqlite(
            db.engine,
            busy_timeout_ms=app.config["SQLITE_BUSY_TIMEOUT_MS"],
            wal_autocheckpoint=app.config["SQLITE_WAL_AUTOCHECKPOINT"],
        )
        if app.config.get("AUTO_CREATE_SCHEMA"):
            from .services import settings_service
            db.create_all()
            settings_service.ensure_defaults()
            db.session.remove()

    # Register blueprints
    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.bills import bills_bp
    from .routes.backups import backups_bp
    from .routes.settings import settings_bp
    from .routes.analytics import analytics_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(bills_bp)
    app.register_blueprint(backups_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(analytics_bp)

    @app.before_request
    def refuse_after_restore():
        # The database file was replaced under this process; only a restart
        # reopens it safely.
        from .services.backup_service import restart_required
        if request.path.startswith("/api/") and restart_required(app):
            return jsonify({
                "error": "Database was restored. Restart the application to continue.",
                "restart_required": True,
            }), 503
        return None

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    from .services.backup_scheduler import init_scheduler
    init_scheduler(app)

    return app
