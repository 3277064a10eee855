"""
Audit log routes (read-only).

GET /audit-logs/?action=&entity_type=&entity_id=&performed_by=&page=&limit=
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ...models import AuditLog
from ...security import feature_required
from ...utils import paginate

audit_logs_bp = Blueprint("audit_logs", __name__, url_prefix="/audit-logs")


@audit_logs_bp.route("/", methods=["GET"])
@login_required
@feature_required("auditLogs", "canView")
def list_audit_logs():
    q = AuditLog.query

    action = (request.args.get("action") or "").strip().upper()
    if action:
        q = q.filter(AuditLog.action == action)

    for arg in ("entity_type", "entity_id", "performed_by"):
        value = (request.args.get(arg) or "").strip()
        if value:
            q = q.filter(getattr(AuditLog, arg) == value)

    page = paginate(q, order_by=AuditLog.created_at.desc())
    return jsonify({"logs": [log.to_dict() for log in page["items"]], "pagination": page["pagination"]})
