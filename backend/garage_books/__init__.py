# backend/garage_books/__init__.py
from __future__ import annotations

from flask import Flask

from .config import Config
from .extensions import db, migrate
from .logging_config import configure_logging


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.postings import postings_bp
    from .routes.ledgers import ledgers_bp
    from .routes.sync import sync_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(postings_bp)
    app.register_blueprint(ledgers_bp)
    app.register_blueprint(sync_bp)

    # Outbox drainer: one explicit instance per app
    from .services.sync_adapters import build_adapter
    from .services.sync_service import SyncManager

    manager = SyncManager(
        adapter=build_adapter(app.config),
        max_retries=app.config.get("SYNC_MAX_RETRIES", 3),
        app=app,
    )
    app.extensions["sync_manager"] = manager
    if app.config.get("SYNC_AUTOSTART") and not app.config.get("TESTING"):
        manager.start_auto_sync(app.config.get("SYNC_INTERVAL_SECONDS", 30))

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
