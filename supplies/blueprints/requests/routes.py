"""
supplies/blueprints/requests/routes.py

Supply request routes (JSON).

Includes:
- Scoped list with filters + pagination
- CRUD (create / read / update / delete) and line-item edits
- Approval chain: approve/reject, append approver, pending approvals
- Fulfillment status changes

IMPORTANT:
- Every route authorizes through the AccessEvaluator (directly or via the
  workflow engine). No role comparisons happen here.
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy import func, or_

from ...models import Priority, Request, RequestStatus, User
from ...schemas import (
    AssignApproverInput,
    CreateRequestInput,
    RequestItemInput,
    StatusChangeInput,
    SubmitApprovalInput,
    UpdateRequestInput,
)
from ...errors import ValidationError
from ...security import apply_scope, feature_required, require_access
from ...utils import get_json_payload, paginate
from ...workflow import current_workflow

requests_bp = Blueprint("requests", __name__, url_prefix="/requests")


# ---------------------------------------------------------------------
# List filtering (server-side)
# ---------------------------------------------------------------------
def _enum_arg(enum_cls, name: str):
    raw = (request.args.get(name) or "").strip().upper()
    if not raw:
        return None
    try:
        return enum_cls(raw)
    except ValueError:
        raise ValidationError("Invalid filter", {name: f"unknown value {raw}"}) from None


def _apply_list_filters(q):
    """Per-column filters from the query string."""
    status = _enum_arg(RequestStatus, "status")
    if status:
        q = q.filter(Request.status == status)

    priority = _enum_arg(Priority, "priority")
    if priority:
        q = q.filter(Request.priority == priority)

    department = (request.args.get("department") or "").strip()
    if department:
        q = q.filter(Request.department == department)

    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.outerjoin(User, User.id == Request.requester_id).filter(
            or_(
                Request.title.ilike(like),
                func.coalesce(Request.description, "").ilike(like),
                User.name.ilike(like),
            )
        )
    return q


# ---------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------
@requests_bp.route("/", methods=["GET"])
@login_required
def list_requests():
    decision = require_access("requests", "canView")
    q = apply_scope(
        Request.query,
        decision,
        current_user,
        owner_column=Request.requester_id,
        department_column=Request.department,
    )
    q = _apply_list_filters(q)
    page = paginate(q, order_by=Request.created_at.desc())
    return jsonify(
        {
            "requests": [r.to_dict(include_children=False) for r in page["items"]],
            "pagination": page["pagination"],
        }
    )


@requests_bp.route("/pending-approvals", methods=["GET"])
@login_required
def pending_approvals():
    """Approvals waiting on the current user."""
    approvals = current_workflow().pending_approvals_for(current_user)
    return jsonify(
        {
            "approvals": [
                {**a.to_dict(), "request": a.request.to_dict(include_children=False)}
                for a in approvals
            ]
        }
    )


# ---------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------
@requests_bp.route("/", methods=["POST"])
@login_required
def create_request():
    data = CreateRequestInput.from_payload(get_json_payload())
    req = current_workflow().create_request(current_user, data)
    return jsonify(req.to_dict()), 201


@requests_bp.route("/<request_id>", methods=["GET"])
@login_required
def get_request(request_id: str):
    req = current_workflow().get_request(request_id, current_user)
    return jsonify(req.to_dict())


@requests_bp.route("/<request_id>", methods=["PUT", "PATCH"])
@login_required
def update_request(request_id: str):
    patch = UpdateRequestInput.from_payload(get_json_payload())
    req = current_workflow().update_request(request_id, current_user, patch)
    return jsonify(req.to_dict())


@requests_bp.route("/<request_id>", methods=["DELETE"])
@login_required
def delete_request(request_id: str):
    current_workflow().delete_request(request_id, current_user)
    return jsonify({"success": True})


@requests_bp.route("/<request_id>/items", methods=["POST"])
@login_required
def add_item(request_id: str):
    line = RequestItemInput.from_payload(get_json_payload())
    req = current_workflow().add_item(request_id, current_user, line)
    return jsonify(req.to_dict()), 201


@requests_bp.route("/<request_id>/items/<line_id>", methods=["DELETE"])
@login_required
def remove_item(request_id: str, line_id: str):
    req = current_workflow().remove_item(request_id, current_user, line_id)
    return jsonify(req.to_dict())


# ---------------------------------------------------------------------
# Approval chain
# ---------------------------------------------------------------------
@requests_bp.route("/<request_id>/approve", methods=["POST"])
@login_required
@feature_required("requests", "canApprove")
def approve_request(request_id: str):
    """Approve or reject the level assigned to the current user."""
    data = SubmitApprovalInput.from_payload(get_json_payload())
    req = current_workflow().submit_approval(request_id, current_user.id, data.decision, data.comments)
    return jsonify(
        {
            "success": True,
            "message": f"Request {data.decision.value.lower()} successfully",
            "request": req.to_dict(),
        }
    )


@requests_bp.route("/<request_id>/approvers", methods=["POST"])
@login_required
def assign_approver(request_id: str):
    data = AssignApproverInput.from_payload(get_json_payload())
    approval = current_workflow().assign_approver(request_id, current_user, data.approver_id)
    return jsonify(approval.to_dict()), 201


@requests_bp.route("/<request_id>/status", methods=["POST"])
@login_required
def change_status(request_id: str):
    data = StatusChangeInput.from_payload(get_json_payload())
    req = current_workflow().advance_fulfillment(request_id, current_user, data.status)
    return jsonify(req.to_dict())
