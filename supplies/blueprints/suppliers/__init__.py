"""
Suppliers blueprint package.

Exposes suppliers_bp for registration in create_app(); the routes live in routes.py.
"""

from .routes import suppliers_bp  # noqa: F401
