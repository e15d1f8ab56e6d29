"""
po_workflow/__init__.py

Flask application factory for the Purchase Order Workflow service.

Architecture:
- JSON API only. Blueprints are thin: parse input with Flask-WTF forms, resolve the actor,
  call a service, render `to_dict()`.
- PostgreSQL-ready (SQLAlchemy + migrations) but SQLite is used for dev and tests.
- Identity is a request header resolved by Flask-Login's request_loader. Permissions are
  enforced in the services; routes with a request body also check them before validating it.
"""

from __future__ import annotations

import logging
from datetime import datetime

import click
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .errors import WorkflowError
from .extensions import db, login_manager, migrate
from .security import load_user_from_request

logger = logging.getLogger(__name__)


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("po_workflow").setLevel(level)
    app.logger.setLevel(level)


def create_app(config_object: str | object = "config.Config") -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    _configure_logging(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)

    login_manager.init_app(app)
    login_manager.request_loader(load_user_from_request)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "unauthenticated", "message": "Missing or unknown user identity"}), 401

    # ----------------------------------------------------------------------
    # Error handling
    # ----------------------------------------------------------------------
    @app.errorhandler(WorkflowError)
    def handle_workflow_error(exc: WorkflowError):
        db.session.rollback()
        logger.warning("%s: %s", exc.code, exc)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        code = (exc.name or "error").upper().replace(" ", "_")
        return jsonify({"error": code, "message": exc.description}), exc.code

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.cost_estimates import cost_estimates_bp
    from .blueprints.purchase_orders import purchase_orders_bp
    from .blueprints.users import users_bp

    app.register_blueprint(users_bp)
    app.register_blueprint(purchase_orders_bp)
    app.register_blueprint(cost_estimates_bp)

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("seed-users")
    def seed_users_command():
        """Seed one demo user per role."""
        from .seed import seed_default_users

        created = seed_default_users()
        click.echo(f"Default users seeded ({created} created).")

    # ----------------------------------------------------------------------
    # Health
    # ----------------------------------------------------------------------
    @app.route("/health")
    def health():
        return jsonify(
            {
                "status": "ok",
                "app": app.config.get("APP_NAME"),
                "timestamp": datetime.utcnow().isoformat(),
            }
        )

    return app
