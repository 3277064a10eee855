"""
Authentication blueprint package.

Exposes auth_bp for registration in create_app(); the routes live in routes.py.
"""

from .routes import auth_bp  # noqa: F401
