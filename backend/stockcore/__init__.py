# backend/stockcore/__init__.py
from __future__ import annotations

import logging
from typing import Any, Mapping

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(test_config: Mapping[str, Any] | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.stock import stock_bp
    from .routes.sales import sales_bp, employee_sales_bp, invoices_bp
    from .routes.assignments import assignments_bp
    from .routes.purchases import purchases_bp
    from .routes.cylinders import cylinders_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(employee_sales_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(assignments_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(cylinders_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
