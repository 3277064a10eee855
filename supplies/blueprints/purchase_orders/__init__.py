"""
Purchase orders blueprint package.

Exposes purchase_orders_bp for registration in create_app(); the routes live in routes.py.
"""

from .routes import purchase_orders_bp  # noqa: F401
