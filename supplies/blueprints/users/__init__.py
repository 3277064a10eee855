"""
User management blueprint package.

Exposes users_bp for registration in create_app(); the routes live in routes.py.
"""

from .routes import users_bp  # noqa: F401
