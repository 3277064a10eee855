"""
Inventory blueprint package.

Exposes inventory_bp for registration in create_app(); the routes live in routes.py.
"""

from .routes import inventory_bp  # noqa: F401
