"""
Office Supplies Management – Domain Models

Entities:
- User (role + department drive every authorization decision)
- Item (inventory), Supplier, PurchaseOrder / PurchaseOrderItem
- Request / RequestItem / Approval (the approval workflow)
- AuditLog (append-only)

IMPORTANT:
- Ids are opaque strings (uuid4 hex).
- Status and role columns are closed enumerations, never free text.
- Request.total_amount is derived: always call recalc_total() after touching items.
- Request carries a version counter; concurrent status flips fail with StaleDataError.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from .extensions import db


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    """Naive UTC timestamp (portable across SQLite and PostgreSQL)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_decimal(value) -> Decimal:
    """Convert Numeric/None to Decimal safely."""
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value))


def money(x: Decimal) -> Decimal:
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


# ---------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------
class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class Priority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class RequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class ApprovalStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class SupplierStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class PurchaseOrderStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    CONFIRMED = "CONFIRMED"
    RECEIVED = "RECEIVED"
    CANCELLED = "CANCELLED"


class AuditAction(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    ASSIGN = "ASSIGN"
    STATUS_CHANGE = "STATUS_CHANGE"
    RECEIVE = "RECEIVE"
    DEACTIVATE = "DEACTIVATE"


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
class User(UserMixin, db.Model):
    """System login user. role + department are the identity claims."""

    __tablename__ = "users"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(150), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.Enum(Role, name="user_role"), nullable=False, default=Role.EMPLOYEE, index=True)
    department = db.Column(db.String(120), nullable=False, index=True)
    status = db.Column(db.Enum(UserStatus, name="user_status"), nullable=False, default=UserStatus.ACTIVE)

    last_sign_in = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    requests = db.relationship("Request", back_populates="requester", lazy=True)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role.value,
            "department": self.department,
            "status": self.status.value,
            "last_sign_in": _iso(self.last_sign_in),
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<User {self.email} {self.role.value}>"


# ---------------------------------------------------------------------
# Inventory & suppliers
# ---------------------------------------------------------------------
class Supplier(db.Model):
    __tablename__ = "suppliers"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)

    name = db.Column(db.String(255), nullable=False, unique=True, index=True)
    email = db.Column(db.String(255))
    phone = db.Column(db.String(50))
    address = db.Column(db.String(255))
    contact_person = db.Column(db.String(150))

    status = db.Column(db.Enum(SupplierStatus, name="supplier_status"), nullable=False, default=SupplierStatus.ACTIVE)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "contact_person": self.contact_person,
            "status": self.status.value,
        }

    def __repr__(self):
        return f"<Supplier {self.name}>"


class Item(db.Model):
    """Stock-keeping item. department scopes manager visibility."""

    __tablename__ = "items"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)

    name = db.Column(db.String(255), nullable=False)
    reference = db.Column(db.String(80), nullable=False, unique=True, index=True)
    description = db.Column(db.Text)
    unit = db.Column(db.String(50), nullable=False, default="piece")
    category = db.Column(db.String(120), index=True)
    department = db.Column(db.String(120), nullable=True, index=True)

    unit_price = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    current_stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)

    supplier_id = db.Column(
        db.String(32),
        db.ForeignKey("suppliers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    supplier = db.relationship("Supplier", backref=db.backref("items", lazy=True))

    @property
    def is_low_stock(self) -> bool:
        return (self.current_stock or 0) <= (self.min_stock or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "reference": self.reference,
            "description": self.description,
            "unit": self.unit,
            "category": self.category,
            "department": self.department,
            "unit_price": str(money(to_decimal(self.unit_price))),
            "current_stock": self.current_stock,
            "min_stock": self.min_stock,
            "is_low_stock": self.is_low_stock,
            "supplier_id": self.supplier_id,
        }

    def __repr__(self):
        return f"<Item {self.reference}>"


# ---------------------------------------------------------------------
# Purchase orders
# ---------------------------------------------------------------------
class PurchaseOrder(db.Model):
    __tablename__ = "purchase_orders"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)

    order_number = db.Column(db.String(40), nullable=False, unique=True, index=True)

    supplier_id = db.Column(
        db.String(32),
        db.ForeignKey("suppliers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    department = db.Column(db.String(120), nullable=False, index=True)

    status = db.Column(
        db.Enum(PurchaseOrderStatus, name="purchase_order_status"),
        nullable=False,
        default=PurchaseOrderStatus.DRAFT,
        index=True,
    )

    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    notes = db.Column(db.Text)

    expected_date = db.Column(db.Date, nullable=True)
    received_date = db.Column(db.DateTime, nullable=True)

    created_by_id = db.Column(db.String(32), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    supplier = db.relationship("Supplier")
    created_by = db.relationship("User")

    lines = db.relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItem.line_no",
    )

    def recalc_total(self):
        total = Decimal("0.00")
        for line in self.lines:
            line.total_price = line.compute_total()
            total += line.total_price
        self.total_amount = money(total)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "department": self.department,
            "status": self.status.value,
            "total_amount": str(money(to_decimal(self.total_amount))),
            "notes": self.notes,
            "expected_date": self.expected_date.isoformat() if self.expected_date else None,
            "received_date": _iso(self.received_date),
            "created_by_id": self.created_by_id,
            "items": [line.to_dict() for line in self.lines],
            "created_at": _iso(self.created_at),
        }


class PurchaseOrderItem(db.Model):
    __tablename__ = "purchase_order_items"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)

    purchase_order_id = db.Column(
        db.String(32),
        db.ForeignKey("purchase_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    item_id = db.Column(db.String(32), db.ForeignKey("items.id", ondelete="RESTRICT"), nullable=False, index=True)

    line_no = db.Column(db.Integer, nullable=False, default=1)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total_price = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    purchase_order = db.relationship("PurchaseOrder", back_populates="lines")
    item = db.relationship("Item")

    def compute_total(self) -> Decimal:
        return money(Decimal(self.quantity or 0) * to_decimal(self.unit_price))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "quantity": self.quantity,
            "unit_price": str(money(to_decimal(self.unit_price))),
            "total_price": str(money(to_decimal(self.total_price))),
        }


# ---------------------------------------------------------------------
# Requests & approvals
# ---------------------------------------------------------------------
class Request(db.Model):
    """A supply request moving through the approval chain."""

    __tablename__ = "requests"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    department = db.Column(db.String(120), nullable=False, index=True)

    priority = db.Column(db.Enum(Priority, name="request_priority"), nullable=False, default=Priority.MEDIUM)
    status = db.Column(
        db.Enum(RequestStatus, name="request_status"),
        nullable=False,
        default=RequestStatus.PENDING,
        index=True,
    )

    requester_id = db.Column(
        db.String(32),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}

    requester = db.relationship("User", back_populates="requests")

    items = db.relationship(
        "RequestItem",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="RequestItem.line_no",
    )

    approvals = db.relationship(
        "Approval",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="Approval.level",
    )

    def recalc_total(self):
        """Authoritative total: sum of quantity * unit_price per line."""
        total = Decimal("0.00")
        for line in self.items:
            line.total_price = line.compute_total()
            total += line.total_price
        self.total_amount = money(total)

    def next_line_no(self) -> int:
        return max((line.line_no or 0 for line in self.items), default=0) + 1

    def to_dict(self, include_children: bool = True) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description or "",
            "department": self.department,
            "priority": self.priority.value,
            "status": self.status.value,
            "requester_id": self.requester_id,
            "requester": self.requester.name if self.requester else None,
            "total_amount": str(money(to_decimal(self.total_amount))),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_children:
            data["items"] = [line.to_dict() for line in self.items]
            data["approvals"] = [approval.to_dict() for approval in self.approvals]
        return data

    def __repr__(self):
        return f"<Request {self.id} {self.status.value}>"


class RequestItem(db.Model):
    __tablename__ = "request_items"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)

    request_id = db.Column(
        db.String(32),
        db.ForeignKey("requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    item_id = db.Column(db.String(32), db.ForeignKey("items.id", ondelete="RESTRICT"), nullable=False, index=True)

    line_no = db.Column(db.Integer, nullable=False, default=1)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total_price = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    notes = db.Column(db.Text, nullable=True)

    request = db.relationship("Request", back_populates="items")
    item = db.relationship("Item")

    def compute_total(self) -> Decimal:
        return money(Decimal(self.quantity or 0) * to_decimal(self.unit_price))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "name": self.item.name if self.item else None,
            "quantity": self.quantity,
            "unit_price": str(money(to_decimal(self.unit_price))),
            "total_price": str(money(to_decimal(self.total_price))),
            "notes": self.notes,
        }


class Approval(db.Model):
    """One link of a request's approval chain. Levels resolve in ascending order."""

    __tablename__ = "approvals"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)

    request_id = db.Column(
        db.String(32),
        db.ForeignKey("requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    approver_id = db.Column(
        db.String(32),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    level = db.Column(db.Integer, nullable=False, default=1)
    status = db.Column(
        db.Enum(ApprovalStatus, name="approval_status"),
        nullable=False,
        default=ApprovalStatus.PENDING,
        index=True,
    )
    comments = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    request = db.relationship("Request", back_populates="approvals")
    approver = db.relationship("User")

    __table_args__ = (db.UniqueConstraint("request_id", "level", name="uq_approval_request_level"),)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "approver_id": self.approver_id,
            "approver": self.approver.name if self.approver else None,
            "level": self.level,
            "status": self.status.value,
            "comments": self.comments,
            "updated_at": _iso(self.updated_at),
        }


# ---------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------
class AuditLog(db.Model):
    """Append-only who-did-what-to-which-entity trail."""

    __tablename__ = "audit_logs"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)

    action = db.Column(db.String(30), nullable=False, index=True)
    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.String(64), nullable=False, index=True)

    performed_by = db.Column(db.String(32), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    username_snapshot = db.Column(db.String(255), nullable=True)

    details = db.Column(db.Text, nullable=True)
    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "performed_by": self.performed_by,
            "username": self.username_snapshot,
            "details": self.details,
            "ip_address": self.ip_address,
            "timestamp": _iso(self.created_at),
        }
