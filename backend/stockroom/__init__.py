# backend/stockroom/__init__.py
from flask import Flask, jsonify

from .config import Config
from .extensions import db, migrate
from .validation import StockError


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    @app.errorhandler(StockError)
    def handle_stock_error(error: StockError):
        if error.status_code >= 500:
            app.logger.error("Unexpected stock engine failure: %s", error.message, exc_info=error)
        return jsonify(error.to_dict()), error.status_code

    # Reminder jobs need the app even when this process doesn't run them
    from .services.reminder_service import init_reminder_scheduler
    init_reminder_scheduler(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
