"""
Authentication Routes

Provides:
- POST /auth/login        (email + password, JSON)
- POST /auth/logout
- GET  /auth/me           (identity claims + landing dashboard)
- GET  /auth/csrf-token   (token for the X-CSRFToken header)
- POST /auth/seed-admin   (first system bootstrap)

Rules:
- Only ACTIVE users may log in.
- Credentials validated via password hash.
- seed-admin works only while the users table is empty.
"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from ...dashboards import get_default_dashboard
from ...errors import ForbiddenError, UnauthorizedError, ValidationError
from ...extensions import db
from ...models import User, utcnow
from ...schemas import check_keys
from ...seed import create_admin
from ...utils import get_json_payload

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _session_payload(user: User) -> dict:
    return {"user": user.to_dict(), "dashboard": get_default_dashboard(user.role)}


# ============================================================
# LOGIN / LOGOUT
# ============================================================

@auth_bp.route("/login", methods=["GET", "POST"])
def login():
    """
    Authenticate a user.

    GET only reports whether a session exists (login_view target).
    """
    if current_user.is_authenticated:
        return jsonify(_session_payload(current_user))

    if request.method == "GET":
        raise UnauthorizedError("Login required")

    data = check_keys(get_json_payload(), ("email", "password"), ("email", "password"))
    email = str(data["email"]).strip().lower()
    password = str(data["password"])

    user = User.query.filter_by(email=email).first()

    if not user or not user.check_password(password):
        logger.info("Failed login for %s", email)
        raise UnauthorizedError("Invalid email or password")

    if not user.is_active:
        logger.info("Login refused for inactive account %s", email)
        raise ForbiddenError("Account is inactive")

    login_user(user)
    user.last_sign_in = utcnow()
    db.session.commit()
    logger.info("User logged in: %s (%s)", user.email, user.role.value)

    return jsonify(_session_payload(user))


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    """Log out the current user."""
    logout_user()
    return jsonify({"success": True})


@auth_bp.route("/me")
@login_required
def me():
    return jsonify(_session_payload(current_user))


@auth_bp.route("/csrf-token")
def csrf_token():
    return jsonify({"csrf_token": generate_csrf()})


# ============================================================
# SEED FIRST ADMIN (BOOTSTRAP)
# ============================================================

@auth_bp.route("/seed-admin", methods=["POST"])
def seed_admin():
    """
    Bootstrap the FIRST admin of the system.

    Blocked as soon as any user exists.
    """
    if User.query.count() > 0:
        raise ForbiddenError("Users already exist; bootstrap is closed")

    data = check_keys(
        get_json_payload(),
        ("email", "name", "password", "department"),
        ("email", "password"),
    )
    password = str(data["password"])
    if len(password) < 6:
        raise ValidationError("Invalid input", {"password": "at least 6 characters"})

    user = create_admin(
        email=str(data["email"]),
        name=str(data.get("name") or "System Administrator"),
        department=str(data.get("department") or "Administration"),
        password=password,
    )
    return jsonify(user.to_dict()), 201
