"""
Audit log blueprint package.

Exposes audit_logs_bp for registration in create_app(); the routes live in routes.py.
"""

from .routes import audit_logs_bp  # noqa: F401
