"""
supplies/__init__.py

Flask application factory for the Office Supplies Management system.

Requirements:
- Every action is authorized server-side through the AccessEvaluator; the
  evaluator and the request workflow are built once here and stored on
  app.extensions so blueprints and tests share the same instances.
- Errors raised by services (supplies.errors) become JSON responses with a
  stable status code; nothing is rendered as HTML.
- SQLite for dev/tests, DATABASE_URL elsewhere (Flask-Migrate for schema).
"""

from __future__ import annotations

import logging
import os

import click
from flask import Flask, redirect
from flask_login import current_user
from werkzeug.exceptions import HTTPException

from .errors import SuppliesError, api_error
from .extensions import csrf, db, login_manager, migrate
from .logging_config import configure_logging
from .models import User
from .policy import DEFAULT_POLICY
from .security import EXTENSION_KEY as EVALUATOR_KEY
from .security import AccessEvaluator
from .workflow import EXTENSION_KEY as WORKFLOW_KEY
from .workflow import RequestWorkflow

logger = logging.getLogger(__name__)


def create_app(config_name: str | None = None) -> Flask:
    """Create and configure the Flask application."""
    from config import config

    app = Flask(__name__)
    config_name = config_name or os.environ.get("APP_ENV", "default")
    config_class = config[config_name]
    # ProductionConfig validates the environment in __init__
    app.config.from_object(config_class() if config_name == "production" else config_class)

    configure_logging(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    login_manager.init_app(app)
    login_manager.login_view = "auth.login"

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """Load user for Flask-Login."""
        return db.session.get(User, user_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        return api_error("ERR_UNAUTHORIZED", "Unauthorized", status=401)

    # ----------------------------------------------------------------------
    # Authorization + workflow (policy injected, never read as a global)
    # ----------------------------------------------------------------------
    policy = app.config.get("ACCESS_POLICY") or DEFAULT_POLICY
    missing = policy.missing_entries()
    if missing:
        # Missing entries are denied at lookup time; flag them for operators.
        logger.warning("Access policy has no entry for %d role/feature pairs: %s", len(missing), missing[:5])

    evaluator = AccessEvaluator(policy)
    app.extensions[EVALUATOR_KEY] = evaluator
    app.extensions[WORKFLOW_KEY] = RequestWorkflow(evaluator)

    # ----------------------------------------------------------------------
    # Error handling
    # ----------------------------------------------------------------------
    @app.errorhandler(SuppliesError)
    def handle_supplies_error(exc: SuppliesError):
        # Drop whatever the failed view flushed before raising.
        db.session.rollback()
        if exc.status_code >= 500:
            logger.error("Unhandled service error: %s", exc)
        else:
            logger.info("Request failed: %s %s", exc.code, exc.message)
        return api_error(exc.code, exc.message, status=exc.status_code, details=exc.details)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return api_error(f"ERR_HTTP_{exc.code}", exc.description or exc.name, status=exc.code or 500)

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.audit_logs import audit_logs_bp
    from .blueprints.auth import auth_bp
    from .blueprints.dashboard import dashboard_bp
    from .blueprints.inventory import inventory_bp
    from .blueprints.purchase_orders import purchase_orders_bp
    from .blueprints.requests import requests_bp
    from .blueprints.suppliers import suppliers_bp
    from .blueprints.users import users_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(requests_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(purchase_orders_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(audit_logs_bp)

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("seed-demo")
    def seed_demo_command():
        """Seed demo users, a supplier and inventory items."""
        from .seed import seed_demo_data

        created = seed_demo_data()
        click.echo(f"Demo data seeded ({created} new records).")

    @app.cli.command("create-admin")
    @click.option("--email", prompt=True)
    @click.option("--name", default="System Administrator")
    @click.option("--department", default="Administration")
    @click.password_option()
    def create_admin_command(email, name, department, password):
        """Bootstrap the single admin account."""
        from .seed import create_admin

        try:
            user = create_admin(email=email, name=name, department=department, password=password)
        except SuppliesError as exc:
            raise click.ClickException(exc.message) from exc
        click.echo(f"Admin created: {user.email}")

    # ----------------------------------------------------------------------
    # Home
    # ----------------------------------------------------------------------
    @app.route("/")
    def index():
        """Home: redirect to the role's dashboard or to login."""
        from .dashboards import LOGIN_PATH, get_default_dashboard

        if current_user.is_authenticated:
            return redirect(get_default_dashboard(current_user.role))
        return redirect(LOGIN_PATH)

    return app
