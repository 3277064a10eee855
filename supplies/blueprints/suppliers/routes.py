"""
Suppliers routes.

Suppliers are global (not department-bound). Deleting a supplier that still
has purchase orders is refused; deactivate it instead.
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy import or_

from ...audit import audit_recorder, serialize_model
from ...errors import InvalidStateError, NotFoundError, ValidationError
from ...extensions import db
from ...models import AuditAction, PurchaseOrder, Supplier, SupplierStatus
from ...schemas import SupplierInput
from ...security import feature_required, require_access
from ...utils import get_json_payload, paginate

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/suppliers")


def _get_supplier(supplier_id: str) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError("Supplier", supplier_id)
    return supplier


def _name_taken(name: str, exclude_id=None) -> bool:
    q = Supplier.query.filter(Supplier.name == name)
    if exclude_id:
        q = q.filter(Supplier.id != exclude_id)
    return q.first() is not None


@suppliers_bp.route("/", methods=["GET"])
@login_required
@feature_required("suppliers", "canView")
def list_suppliers():
    q = Supplier.query

    status = (request.args.get("status") or "").strip().upper()
    if status:
        try:
            q = q.filter(Supplier.status == SupplierStatus(status))
        except ValueError:
            raise ValidationError("Invalid filter", {"status": f"unknown value {status}"}) from None

    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Supplier.name.ilike(like), Supplier.contact_person.ilike(like)))

    page = paginate(q, order_by=Supplier.name.asc())
    return jsonify({"suppliers": [s.to_dict() for s in page["items"]], "pagination": page["pagination"]})


@suppliers_bp.route("/", methods=["POST"])
@login_required
def create_supplier():
    require_access("suppliers", "canCreate")
    data = SupplierInput.from_payload(get_json_payload()).values
    if _name_taken(data["name"]):
        raise ValidationError("Invalid input", {"name": "already exists"})

    supplier = Supplier(**data)
    db.session.add(supplier)
    db.session.commit()

    audit_recorder.record(
        AuditAction.CREATE, "Supplier", supplier.id, current_user.id,
        f"Created supplier: {supplier.name}", after=serialize_model(supplier),
    )
    return jsonify(supplier.to_dict()), 201


@suppliers_bp.route("/<supplier_id>", methods=["GET"])
@login_required
@feature_required("suppliers", "canView")
def get_supplier(supplier_id: str):
    return jsonify(_get_supplier(supplier_id).to_dict())


@suppliers_bp.route("/<supplier_id>", methods=["PUT", "PATCH"])
@login_required
def update_supplier(supplier_id: str):
    require_access("suppliers", "canEdit")
    supplier = _get_supplier(supplier_id)

    data = SupplierInput.from_payload(get_json_payload(), partial=True).values
    if not data:
        raise ValidationError("Nothing to update")
    if "name" in data and _name_taken(data["name"], exclude_id=supplier.id):
        raise ValidationError("Invalid input", {"name": "already exists"})

    before = serialize_model(supplier)
    for key, value in data.items():
        setattr(supplier, key, value)
    db.session.commit()

    audit_recorder.record(
        AuditAction.UPDATE, "Supplier", supplier.id, current_user.id,
        f"Updated supplier: {supplier.name}", before=before, after=serialize_model(supplier),
    )
    return jsonify(supplier.to_dict())


@suppliers_bp.route("/<supplier_id>", methods=["DELETE"])
@login_required
def delete_supplier(supplier_id: str):
    require_access("suppliers", "canDelete")
    supplier = _get_supplier(supplier_id)

    if db.session.query(PurchaseOrder.id).filter(PurchaseOrder.supplier_id == supplier.id).first():
        raise InvalidStateError("Supplier has purchase orders; deactivate it instead")

    before = serialize_model(supplier)
    name = supplier.name
    db.session.delete(supplier)
    db.session.commit()

    audit_recorder.record(
        AuditAction.DELETE, "Supplier", supplier_id, current_user.id,
        f"Deleted supplier: {name}", before=before,
    )
    return jsonify({"success": True})
