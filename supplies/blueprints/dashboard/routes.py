"""
Dashboard routes.

- GET /dashboard/         -> redirect to the caller's default dashboard
- GET /dashboard/<type>   -> JSON summary, 403 when the role may not open it

Counts are computed over the same scoped queries the list endpoints use, so
a dashboard never reveals rows its owner could not list.
"""

from flask import Blueprint, jsonify, redirect
from flask_login import current_user, login_required
from sqlalchemy import func

from ...dashboards import DASHBOARD_TYPES, can_access_dashboard_type, get_default_dashboard
from ...errors import ForbiddenError
from ...extensions import db
from ...models import Approval, ApprovalStatus, Item, Request, RequestStatus
from ...security import apply_scope, current_evaluator

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/dashboard")


def _request_counts() -> dict:
    evaluator = current_evaluator()
    decision = evaluator.check_access(current_user, "requests", "canView")
    if not decision.allowed:
        return {}

    q = db.session.query(Request.status, func.count(Request.id))
    q = apply_scope(
        q,
        decision,
        current_user,
        owner_column=Request.requester_id,
        department_column=Request.department,
    )
    counts = {status.value: 0 for status in RequestStatus}
    for status, count in q.group_by(Request.status).all():
        counts[status.value] = count
    return counts


def _pending_for_me() -> int:
    decision = current_evaluator().check_access(current_user, "pendingApprovals", "canView")
    if not decision.allowed:
        return 0
    return (
        db.session.query(func.count(Approval.id))
        .join(Request, Request.id == Approval.request_id)
        .filter(
            Approval.approver_id == current_user.id,
            Approval.status == ApprovalStatus.PENDING,
            Request.status == RequestStatus.PENDING,
        )
        .scalar()
        or 0
    )


def _low_stock_count():
    decision = current_evaluator().check_access(current_user, "lowStockAlerts", "canView")
    if not decision.allowed:
        return None
    q = apply_scope(Item.query, decision, current_user, department_column=Item.department)
    return q.filter(Item.current_stock <= Item.min_stock).count()


@dashboard_bp.route("/")
@login_required
def index():
    return redirect(get_default_dashboard(current_user.role))


@dashboard_bp.route("/<dashboard_type>")
@login_required
def show(dashboard_type: str):
    """Summary for one dashboard type (admin, system, department/manager, personal/employee)."""
    if not can_access_dashboard_type(current_user.role, dashboard_type):
        raise ForbiddenError(f"{current_user.role.value} may not open the {dashboard_type} dashboard")

    summary = {
        "dashboard": DASHBOARD_TYPES[dashboard_type.strip().lower()],
        "user": current_user.to_dict(),
        "requests_by_status": _request_counts(),
        "pending_approvals": _pending_for_me(),
    }
    low_stock = _low_stock_count()
    if low_stock is not None:
        summary["low_stock_items"] = low_stock
    return jsonify(summary)
