"""
supplies/blueprints/inventory/routes.py

Inventory (stock items) routes.

Includes:
- Scoped list with category / search / low-stock filters
- CRUD with before/after audit snapshots
- Low-stock alert listing (lowStockAlerts feature)

Managers only see and edit items of their own department.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy import or_

from ...audit import audit_recorder, serialize_model
from ...errors import InvalidStateError, NotFoundError, ValidationError
from ...extensions import db
from ...models import AuditAction, Item, PurchaseOrderItem, RequestItem, Supplier
from ...schemas import ItemInput
from ...security import apply_scope, enforce_scope, require_access
from ...utils import get_json_payload, paginate

logger = logging.getLogger(__name__)

inventory_bp = Blueprint("inventory", __name__, url_prefix="/inventory")


def _get_item(item_id: str) -> Item:
    item = db.session.get(Item, item_id)
    if item is None:
        raise NotFoundError("Item", item_id)
    return item


def _check_supplier(supplier_id):
    if supplier_id and db.session.get(Supplier, supplier_id) is None:
        raise ValidationError("Invalid input", {"supplier_id": "unknown supplier"})


def _reference_taken(reference: str, exclude_id: str | None = None) -> bool:
    q = Item.query.filter(Item.reference == reference)
    if exclude_id:
        q = q.filter(Item.id != exclude_id)
    return q.first() is not None


# ---------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------
@inventory_bp.route("/items", methods=["GET"])
@login_required
def list_items():
    decision = require_access("inventory", "canView")
    q = apply_scope(Item.query, decision, current_user, owner_column=None, department_column=Item.department)

    category = (request.args.get("category") or "").strip()
    if category:
        q = q.filter(Item.category == category)

    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Item.name.ilike(like), Item.reference.ilike(like)))

    if (request.args.get("low_stock") or "").lower() in ("1", "true", "yes"):
        q = q.filter(Item.current_stock <= Item.min_stock)

    page = paginate(q, order_by=Item.name.asc())
    return jsonify({"items": [i.to_dict() for i in page["items"]], "pagination": page["pagination"]})


@inventory_bp.route("/low-stock", methods=["GET"])
@login_required
def low_stock():
    """Items at or below their minimum stock level."""
    decision = require_access("lowStockAlerts", "canView")
    q = apply_scope(Item.query, decision, current_user, department_column=Item.department)
    rows = q.filter(Item.current_stock <= Item.min_stock).order_by(Item.current_stock.asc(), Item.name.asc()).all()
    return jsonify({"items": [i.to_dict() for i in rows], "count": len(rows)})


# ---------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------
@inventory_bp.route("/items", methods=["POST"])
@login_required
def create_item():
    data = ItemInput.from_payload(get_json_payload()).values
    decision = require_access("inventory", "canCreate", data.get("department"))
    if decision.department_scope and not data.get("department"):
        data["department"] = decision.department_scope

    if _reference_taken(data["reference"]):
        raise ValidationError("Invalid input", {"reference": "already exists"})
    _check_supplier(data.get("supplier_id"))

    item = Item(**data)
    db.session.add(item)
    db.session.commit()
    logger.info("Item created: %s by %s", item.reference, current_user.id)

    audit_recorder.record(
        AuditAction.CREATE, "Item", item.id, current_user.id,
        f"Created item: {item.reference}", after=serialize_model(item),
    )
    return jsonify(item.to_dict()), 201


@inventory_bp.route("/items/<item_id>", methods=["GET"])
@login_required
def get_item(item_id: str):
    decision = require_access("inventory", "canView")
    item = _get_item(item_id)
    enforce_scope(decision, current_user, department=item.department)
    return jsonify(item.to_dict())


@inventory_bp.route("/items/<item_id>", methods=["PUT", "PATCH"])
@login_required
def update_item(item_id: str):
    item = _get_item(item_id)
    require_access("inventory", "canEdit", item.department)

    data = ItemInput.from_payload(get_json_payload(), partial=True).values
    if not data:
        raise ValidationError("Nothing to update")
    if "department" in data and data["department"] != item.department:
        require_access("inventory", "canEdit", data["department"])
    if "reference" in data and _reference_taken(data["reference"], exclude_id=item.id):
        raise ValidationError("Invalid input", {"reference": "already exists"})
    _check_supplier(data.get("supplier_id"))

    before = serialize_model(item)
    for key, value in data.items():
        setattr(item, key, value)
    db.session.commit()

    audit_recorder.record(
        AuditAction.UPDATE, "Item", item.id, current_user.id,
        f"Updated item: {item.reference}", before=before, after=serialize_model(item),
    )
    return jsonify(item.to_dict())


@inventory_bp.route("/items/<item_id>", methods=["DELETE"])
@login_required
def delete_item(item_id: str):
    item = _get_item(item_id)
    require_access("inventory", "canDelete", item.department)

    in_use = (
        db.session.query(RequestItem.id).filter(RequestItem.item_id == item.id).first()
        or db.session.query(PurchaseOrderItem.id).filter(PurchaseOrderItem.item_id == item.id).first()
    )
    if in_use:
        raise InvalidStateError("Item is referenced by requests or purchase orders")

    before = serialize_model(item)
    reference = item.reference
    db.session.delete(item)
    db.session.commit()

    audit_recorder.record(
        AuditAction.DELETE, "Item", item_id, current_user.id,
        f"Deleted item: {reference}", before=before,
    )
    return jsonify({"success": True})
