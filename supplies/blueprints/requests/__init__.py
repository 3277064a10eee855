"""
Supply requests blueprint package.

Exposes requests_bp for registration in create_app(); the routes live in routes.py.
"""

from .routes import requests_bp  # noqa: F401
