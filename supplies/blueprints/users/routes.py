"""
User Management Routes

Provides:
- Scoped user list (managers: own department only)
- Create / update users (single ADMIN rule enforced on both)
- Deactivation instead of deletion
- Department listing

Rules:
- Exactly one ADMIN may exist.
- Users are never hard-deleted (requests and audit rows keep pointing at them).
- An admin cannot deactivate or demote their own account.
"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy import or_

from ...audit import audit_recorder, serialize_model
from ...errors import ForbiddenError, NotFoundError, ValidationError
from ...extensions import db
from ...models import AuditAction, Role, User, UserStatus
from ...schemas import UserInput
from ...security import apply_scope, enforce_scope, require_access
from ...seed import admin_exists
from ...utils import get_json_payload, paginate

logger = logging.getLogger(__name__)

users_bp = Blueprint("users", __name__, url_prefix="/users")

SINGLE_ADMIN_MESSAGE = "Only one admin account is allowed"


def _get_user(user_id: str) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def _email_taken(email: str, exclude_id=None) -> bool:
    q = User.query.filter(User.email == email)
    if exclude_id:
        q = q.filter(User.id != exclude_id)
    return q.first() is not None


# ============================================================
# LIST
# ============================================================

@users_bp.route("/", methods=["GET"])
@login_required
def list_users():
    decision = require_access("users", "canView")
    q = apply_scope(User.query, decision, current_user, owner_column=User.id, department_column=User.department)

    role = (request.args.get("role") or "").strip().upper()
    if role:
        try:
            q = q.filter(User.role == Role(role))
        except ValueError:
            raise ValidationError("Invalid filter", {"role": f"unknown value {role}"}) from None

    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(or_(User.name.ilike(like), User.email.ilike(like)))

    page = paginate(q, order_by=User.name.asc())
    return jsonify({"users": [u.to_dict() for u in page["items"]], "pagination": page["pagination"]})


@users_bp.route("/departments", methods=["GET"])
@login_required
def list_departments():
    """Distinct departments with their active headcount."""
    decision = require_access("departments", "canView")
    q = db.session.query(User.department, db.func.count(User.id)).filter(User.status == UserStatus.ACTIVE)
    q = apply_scope(q, decision, current_user, department_column=User.department)
    rows = q.group_by(User.department).order_by(User.department.asc()).all()
    return jsonify({"departments": [{"name": name, "users": count} for name, count in rows]})


@users_bp.route("/<user_id>", methods=["GET"])
@login_required
def get_user(user_id: str):
    decision = require_access("users", "canView")
    user = _get_user(user_id)
    enforce_scope(decision, current_user, owner_id=user.id, department=user.department)
    return jsonify(user.to_dict())


# ============================================================
# CREATE / UPDATE
# ============================================================

@users_bp.route("/", methods=["POST"])
@login_required
def create_user():
    data = UserInput.from_payload(get_json_payload())
    require_access("users", "canCreate", data.department)

    if data.role == Role.ADMIN and admin_exists():
        raise ForbiddenError(SINGLE_ADMIN_MESSAGE)
    if _email_taken(data.email):
        raise ValidationError("Invalid input", {"email": "already registered"})

    user = User(
        email=data.email,
        name=data.name,
        role=data.role,
        department=data.department,
        status=data.status or UserStatus.ACTIVE,
    )
    user.set_password(data.password)
    db.session.add(user)
    db.session.commit()
    logger.info("User created: %s (%s)", user.email, user.role.value)

    audit_recorder.record(
        AuditAction.CREATE, "User", user.id, current_user.id,
        f"Created user: {user.email}", after=serialize_model(user),
    )
    return jsonify(user.to_dict()), 201


@users_bp.route("/<user_id>", methods=["PUT", "PATCH"])
@login_required
def update_user(user_id: str):
    user = _get_user(user_id)
    require_access("users", "canEdit", user.department)

    data = UserInput.from_payload(get_json_payload(), partial=True)
    if data == UserInput():
        raise ValidationError("Nothing to update")

    if data.department is not None and data.department != user.department:
        require_access("users", "canEdit", data.department)
    if data.role == Role.ADMIN and user.role != Role.ADMIN and admin_exists():
        raise ForbiddenError(SINGLE_ADMIN_MESSAGE)
    if user.id == current_user.id:
        if data.role is not None and data.role != user.role:
            raise ForbiddenError("You cannot change your own role")
        if data.status == UserStatus.INACTIVE:
            raise ForbiddenError("You cannot deactivate your own account")
    if data.email is not None and _email_taken(data.email, exclude_id=user.id):
        raise ValidationError("Invalid input", {"email": "already registered"})

    before = serialize_model(user)
    for key in ("email", "name", "role", "department", "status"):
        value = getattr(data, key)
        if value is not None:
            setattr(user, key, value)
    if data.password:
        user.set_password(data.password)
    db.session.commit()

    audit_recorder.record(
        AuditAction.UPDATE, "User", user.id, current_user.id,
        f"Updated user: {user.email}", before=before, after=serialize_model(user),
    )
    return jsonify(user.to_dict())


# ============================================================
# DEACTIVATE
# ============================================================

@users_bp.route("/<user_id>", methods=["DELETE"])
@login_required
def deactivate_user(user_id: str):
    """Soft delete: status -> INACTIVE."""
    user = _get_user(user_id)
    require_access("users", "canDelete", user.department)

    if user.id == current_user.id:
        raise ForbiddenError("You cannot deactivate your own account")

    user.status = UserStatus.INACTIVE
    db.session.commit()
    logger.info("User deactivated: %s", user.email)

    audit_recorder.record(AuditAction.DEACTIVATE, "User", user.id, current_user.id, f"Deactivated user: {user.email}")
    return jsonify({"success": True, "user": user.to_dict()})
