# backend/retailpos/__init__.py
from __future__ import annotations

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    if app.config["AUTO_CREATE_SCHEMA"]:
        with app.app_context():
            db.create_all()

    # In-memory ledger with its durable replica
    from .services.ledger import init_ledger
    ledger = init_ledger(app)
    if app.config["LEDGER_AUTOLOAD"]:
        ledger.load()

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.shifts import shifts_bp
    from .routes.sales import sales_bp
    from .routes.expenses import expenses_bp
    from .routes.returns import returns_bp
    from .routes.catalog import catalog_bp
    from .routes.reports import reports_bp
    from .routes.backup import backup_bp
    from .routes.customers import customers_bp
    from .routes.discounts import discounts_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(shifts_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(expenses_bp)
    app.register_blueprint(returns_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(backup_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(discounts_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
