"""
supplies/blueprints/purchase_orders/routes.py

Purchase order routes (JSON).

Includes:
- Scoped list (department) with status / supplier / search filters
- CRUD: lines are editable while the order is DRAFT
- Receive: SENT or CONFIRMED -> RECEIVED, stock incremented per line

IMPORTANT:
- total_amount is derived from the lines (recalc_total) on every write.
- RECEIVED is only reachable through /receive so stock is never skipped.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy import func, or_, select, update

from ...audit import audit_recorder, serialize_model
from ...errors import InvalidStateError, NotFoundError, ValidationError
from ...extensions import db
from ...models import (
    AuditAction,
    Item,
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderStatus,
    Supplier,
    money,
    utcnow,
)
from ...schemas import PurchaseOrderInput
from ...security import apply_scope, enforce_scope, require_access
from ...utils import get_json_payload, paginate

logger = logging.getLogger(__name__)

purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/purchase-orders")

RECEIVABLE_STATUSES = {PurchaseOrderStatus.SENT, PurchaseOrderStatus.CONFIRMED}
DELETABLE_STATUSES = {PurchaseOrderStatus.DRAFT, PurchaseOrderStatus.CANCELLED}


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _get_order(order_id: str, *, lock: bool = False) -> PurchaseOrder:
    if lock:
        stmt = (
            select(PurchaseOrder)
            .where(PurchaseOrder.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        order = db.session.execute(stmt).scalar_one_or_none()
    else:
        order = db.session.get(PurchaseOrder, order_id)
    if order is None:
        raise NotFoundError("PurchaseOrder", order_id)
    return order


def next_order_number(year: int | None = None) -> str:
    """PO-<year>-<NNNN>, continuing after the highest number issued that year."""
    year = year or utcnow().year
    prefix = f"PO-{year}-"
    # Longer suffixes sort first so PO-2024-10000 beats PO-2024-9999.
    last = (
        db.session.query(PurchaseOrder.order_number)
        .filter(PurchaseOrder.order_number.like(f"{prefix}%"))
        .order_by(func.length(PurchaseOrder.order_number).desc(), PurchaseOrder.order_number.desc())
        .limit(1)
        .scalar()
    )
    seq = int(last[len(prefix):]) + 1 if last else 1
    return f"{prefix}{seq:04d}"


def _check_supplier(supplier_id: str) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise ValidationError("Invalid input", {"supplier_id": "unknown supplier"})
    return supplier


def _set_lines(order: PurchaseOrder, lines) -> None:
    order.lines.clear()
    db.session.flush()
    for line_no, line in enumerate(lines, start=1):
        item = db.session.get(Item, line.item_id)
        if item is None:
            raise ValidationError("Invalid input", {"items": f"unknown item {line.item_id}"})
        order.lines.append(
            PurchaseOrderItem(
                item=item,
                item_id=item.id,
                line_no=line_no,
                quantity=line.quantity,
                unit_price=money(line.unit_price),
            )
        )
    order.recalc_total()


def _order_snapshot(order: PurchaseOrder) -> dict:
    data = serialize_model(order)
    data["items"] = [serialize_model(line) for line in order.lines]
    return data


# ---------------------------------------------------------------------
# List
# ---------------------------------------------------------------------
@purchase_orders_bp.route("/", methods=["GET"])
@login_required
def list_orders():
    decision = require_access("purchaseOrders", "canView")
    q = apply_scope(PurchaseOrder.query, decision, current_user, department_column=PurchaseOrder.department)

    status = (request.args.get("status") or "").strip().upper()
    if status and status != "ALL":
        try:
            q = q.filter(PurchaseOrder.status == PurchaseOrderStatus(status))
        except ValueError:
            raise ValidationError("Invalid filter", {"status": f"unknown value {status}"}) from None

    supplier_id = (request.args.get("supplier_id") or "").strip()
    if supplier_id:
        q = q.filter(PurchaseOrder.supplier_id == supplier_id)

    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.outerjoin(Supplier, Supplier.id == PurchaseOrder.supplier_id).filter(
            or_(PurchaseOrder.order_number.ilike(like), Supplier.name.ilike(like))
        )

    page = paginate(q, order_by=PurchaseOrder.created_at.desc())
    return jsonify({"purchase_orders": [o.to_dict() for o in page["items"]], "pagination": page["pagination"]})


# ---------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------
@purchase_orders_bp.route("/", methods=["POST"])
@login_required
def create_order():
    data = PurchaseOrderInput.from_payload(get_json_payload())
    require_access("purchaseOrders", "canCreate", data.department)
    _check_supplier(data.supplier_id)

    status = data.status or PurchaseOrderStatus.DRAFT
    if status == PurchaseOrderStatus.RECEIVED:
        raise ValidationError("Invalid input", {"status": "use the receive endpoint"})

    order = PurchaseOrder(
        order_number=next_order_number(),
        supplier_id=data.supplier_id,
        department=data.department,
        status=status,
        notes=data.notes,
        expected_date=data.expected_date,
        created_by_id=current_user.id,
    )
    db.session.add(order)
    _set_lines(order, data.items)
    db.session.commit()
    logger.info("Purchase order created: %s total=%s", order.order_number, order.total_amount)

    audit_recorder.record(
        AuditAction.CREATE, "PurchaseOrder", order.id, current_user.id,
        f"Created purchase order: {order.order_number}", after=_order_snapshot(order),
    )
    return jsonify(order.to_dict()), 201


@purchase_orders_bp.route("/<order_id>", methods=["GET"])
@login_required
def get_order(order_id: str):
    decision = require_access("purchaseOrders", "canView")
    order = _get_order(order_id)
    enforce_scope(decision, current_user, department=order.department)
    return jsonify(order.to_dict())


@purchase_orders_bp.route("/<order_id>", methods=["PUT", "PATCH"])
@login_required
def update_order(order_id: str):
    order = _get_order(order_id)
    require_access("purchaseOrders", "canEdit", order.department)

    data = PurchaseOrderInput.from_payload(get_json_payload(), partial=True)
    if order.status in (PurchaseOrderStatus.RECEIVED, PurchaseOrderStatus.CANCELLED):
        raise InvalidStateError(f"Cannot edit a {order.status.value.lower()} purchase order")
    if data.status == PurchaseOrderStatus.RECEIVED:
        raise ValidationError("Invalid input", {"status": "use the receive endpoint"})
    if data.items is not None and order.status != PurchaseOrderStatus.DRAFT:
        raise InvalidStateError("Lines can only be changed while the order is DRAFT")
    if data.department is not None and data.department != order.department:
        require_access("purchaseOrders", "canEdit", data.department)

    before = _order_snapshot(order)

    if data.supplier_id is not None:
        _check_supplier(data.supplier_id)
        order.supplier_id = data.supplier_id
    if data.department is not None:
        order.department = data.department
    if data.notes is not None:
        order.notes = data.notes
    if data.expected_date is not None:
        order.expected_date = data.expected_date
    if data.status is not None:
        order.status = data.status
    if data.items is not None:
        _set_lines(order, data.items)

    db.session.commit()

    audit_recorder.record(
        AuditAction.UPDATE, "PurchaseOrder", order.id, current_user.id,
        f"Updated purchase order: {order.order_number}", before=before, after=_order_snapshot(order),
    )
    return jsonify(order.to_dict())


@purchase_orders_bp.route("/<order_id>", methods=["DELETE"])
@login_required
def delete_order(order_id: str):
    order = _get_order(order_id)
    require_access("purchaseOrders", "canDelete", order.department)
    if order.status not in DELETABLE_STATUSES:
        raise InvalidStateError(f"Cannot delete a purchase order with status {order.status.value}")

    before = _order_snapshot(order)
    number = order.order_number
    db.session.delete(order)
    db.session.commit()

    audit_recorder.record(
        AuditAction.DELETE, "PurchaseOrder", order_id, current_user.id,
        f"Deleted purchase order: {number}", before=before,
    )
    return jsonify({"success": True})


# ---------------------------------------------------------------------
# Receive
# ---------------------------------------------------------------------
@purchase_orders_bp.route("/<order_id>/receive", methods=["POST"])
@login_required
def receive_order(order_id: str):
    """Mark a SENT/CONFIRMED order as received and book its lines into stock."""
    order = _get_order(order_id, lock=True)
    require_access("purchaseOrders", "canEdit", order.department)

    if order.status not in RECEIVABLE_STATUSES:
        raise InvalidStateError("Only sent or confirmed orders can be marked as received")

    order.status = PurchaseOrderStatus.RECEIVED
    order.received_date = utcnow()
    for line in order.lines:
        db.session.execute(
            update(Item)
            .where(Item.id == line.item_id)
            .values(current_stock=func.coalesce(Item.current_stock, 0) + line.quantity)
            .execution_options(synchronize_session=False)
        )
    db.session.commit()
    logger.info("Purchase order received: %s (%d lines)", order.order_number, len(order.lines))

    supplier_name = order.supplier.name if order.supplier else "-"
    audit_recorder.record(
        AuditAction.RECEIVE, "PurchaseOrder", order.id, current_user.id,
        f"Received purchase order: {order.order_number} from supplier: {supplier_name}",
    )
    return jsonify(order.to_dict())
