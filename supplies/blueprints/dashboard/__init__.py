"""
Dashboard blueprint package.

Exposes dashboard_bp for registration in create_app(); the routes live in routes.py.
"""

from .routes import dashboard_bp  # noqa: F401
