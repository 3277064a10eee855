"""
supplies/schemas.py

Typed input structs, one per operation, validated at the boundary.

Each from_payload() takes the decoded JSON dict and either returns a frozen
dataclass or raises ValidationError with a field -> problem map. Unknown keys
are rejected, so a typo never silently becomes a no-op.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional, Tuple, Type, TypeVar

from .errors import ValidationError
from .models import (
    ApprovalStatus,
    Priority,
    PurchaseOrderStatus,
    RequestStatus,
    Role,
    SupplierStatus,
    UserStatus,
)
from .utils import parse_date, parse_decimal, parse_int

E = TypeVar("E")


def check_keys(payload: Any, allowed: Iterable[str], required: Iterable[str] = ()) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValidationError("Expected a JSON object")
    allowed = set(allowed)
    errors = {key: "unknown field" for key in payload if key not in allowed}
    for key in required:
        value = payload.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            errors[key] = "required"
    if errors:
        raise ValidationError("Invalid input", errors)
    return payload


def _text(payload: Dict[str, Any], key: str, *, max_len: int = 255, blank_ok: bool = False) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("Invalid input", {key: "must be a string"})
    value = value.strip()
    if not value and not blank_ok:
        raise ValidationError("Invalid input", {key: "must not be blank"})
    if len(value) > max_len:
        raise ValidationError("Invalid input", {key: f"at most {max_len} characters"})
    return value


def _enum(enum_cls: Type[E], payload: Dict[str, Any], key: str) -> Optional[E]:
    value = payload.get(key)
    if value is None:
        return None
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValidationError("Invalid input", {key: f"must be one of {choices}"}) from None


def _positive_int(value: Any, key: str) -> int:
    parsed = parse_int(value)
    if parsed is None or parsed <= 0:
        raise ValidationError("Invalid input", {key: "must be a positive integer"})
    return parsed


def _non_negative_int(value: Any, key: str) -> int:
    parsed = parse_int(value)
    if parsed is None or parsed < 0:
        raise ValidationError("Invalid input", {key: "must be a non-negative integer"})
    return parsed


def _money_value(value: Any, key: str) -> Decimal:
    parsed = parse_decimal(value)
    if parsed is None or parsed < 0:
        raise ValidationError("Invalid input", {key: "must be a non-negative amount"})
    return parsed


# ---------------------------------------------------------------------
# Requests / approvals
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RequestItemInput:
    item_id: str
    quantity: int
    unit_price: Optional[Decimal] = None
    notes: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "RequestItemInput":
        data = check_keys(payload, ("item_id", "quantity", "unit_price", "notes"), ("item_id", "quantity"))
        unit_price = data.get("unit_price")
        return cls(
            item_id=str(data["item_id"]).strip(),
            quantity=_positive_int(data["quantity"], "quantity"),
            unit_price=None if unit_price is None else _money_value(unit_price, "unit_price"),
            notes=_text(data, "notes", max_len=2000, blank_ok=True) or None,
        )


def _items(value: Any) -> Tuple[RequestItemInput, ...]:
    if not isinstance(value, list) or not value:
        raise ValidationError("Invalid input", {"items": "at least one item is required"})
    return tuple(RequestItemInput.from_payload(item) for item in value)


@dataclass(frozen=True)
class CreateRequestInput:
    title: str
    department: str
    items: Tuple[RequestItemInput, ...]
    priority: Priority = Priority.MEDIUM
    description: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "CreateRequestInput":
        data = check_keys(
            payload,
            ("title", "description", "department", "priority", "items"),
            ("title", "department", "items"),
        )
        return cls(
            title=_text(data, "title"),
            department=_text(data, "department", max_len=120),
            items=_items(data["items"]),
            priority=_enum(Priority, data, "priority") or Priority.MEDIUM,
            description=_text(data, "description", max_len=5000, blank_ok=True),
        )


@dataclass(frozen=True)
class UpdateRequestInput:
    """Partial update. None means "leave unchanged"."""

    title: Optional[str] = None
    description: Optional[str] = None
    department: Optional[str] = None
    priority: Optional[Priority] = None
    items: Optional[Tuple[RequestItemInput, ...]] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "UpdateRequestInput":
        data = check_keys(payload, ("title", "description", "department", "priority", "items"))
        return cls(
            title=_text(data, "title"),
            description=_text(data, "description", max_len=5000, blank_ok=True),
            department=_text(data, "department", max_len=120),
            priority=_enum(Priority, data, "priority"),
            items=_items(data["items"]) if "items" in data else None,
        )

    def is_empty(self) -> bool:
        return all(getattr(self, name) is None for name in ("title", "description", "department", "priority", "items"))


@dataclass(frozen=True)
class SubmitApprovalInput:
    decision: ApprovalStatus
    comments: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "SubmitApprovalInput":
        data = check_keys(payload, ("decision", "comments"), ("decision",))
        decision = _enum(ApprovalStatus, data, "decision")
        if decision not in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED):
            raise ValidationError("Invalid input", {"decision": "must be APPROVED or REJECTED"})
        return cls(decision=decision, comments=_text(data, "comments", max_len=5000, blank_ok=True))


@dataclass(frozen=True)
class AssignApproverInput:
    approver_id: str

    @classmethod
    def from_payload(cls, payload: Any) -> "AssignApproverInput":
        data = check_keys(payload, ("approver_id",), ("approver_id",))
        return cls(approver_id=str(data["approver_id"]).strip())


@dataclass(frozen=True)
class StatusChangeInput:
    status: RequestStatus

    @classmethod
    def from_payload(cls, payload: Any) -> "StatusChangeInput":
        data = check_keys(payload, ("status",), ("status",))
        return cls(status=_enum(RequestStatus, data, "status"))


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class UserInput:
    email: Optional[str] = None
    name: Optional[str] = None
    password: Optional[str] = None
    role: Optional[Role] = None
    department: Optional[str] = None
    status: Optional[UserStatus] = None

    FIELDS = ("email", "name", "password", "role", "department", "status")

    @classmethod
    def from_payload(cls, payload: Any, *, partial: bool = False) -> "UserInput":
        required = () if partial else ("email", "name", "password", "role", "department")
        data = check_keys(payload, cls.FIELDS, required)
        email = _text(data, "email")
        if email is not None and ("@" not in email or email.startswith("@") or email.endswith("@")):
            raise ValidationError("Invalid input", {"email": "invalid email format"})
        password = data.get("password")
        if password is not None and (not isinstance(password, str) or len(password) < 6):
            raise ValidationError("Invalid input", {"password": "at least 6 characters"})
        return cls(
            email=email.lower() if email else None,
            name=_text(data, "name", max_len=150),
            password=password,
            role=_enum(Role, data, "role"),
            department=_text(data, "department", max_len=120),
            status=_enum(UserStatus, data, "status"),
        )


# ---------------------------------------------------------------------
# Inventory / suppliers / purchase orders
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ItemInput:
    values: Dict[str, Any] = field(default_factory=dict)

    FIELDS = (
        "name", "reference", "description", "unit", "category", "department",
        "unit_price", "current_stock", "min_stock", "supplier_id",
    )

    @classmethod
    def from_payload(cls, payload: Any, *, partial: bool = False) -> "ItemInput":
        required = () if partial else ("name", "reference", "unit_price")
        data = check_keys(payload, cls.FIELDS, required)
        values: Dict[str, Any] = {}
        for key in ("name", "reference", "unit", "category", "department", "supplier_id"):
            if key in data:
                values[key] = _text(data, key, blank_ok=key in ("category", "department", "supplier_id")) or None
        if "description" in data:
            values["description"] = _text(data, "description", max_len=5000, blank_ok=True)
        if "unit_price" in data:
            values["unit_price"] = _money_value(data["unit_price"], "unit_price")
        for key in ("current_stock", "min_stock"):
            if key in data:
                values[key] = _non_negative_int(data[key], key)
        return cls(values=values)


@dataclass(frozen=True)
class SupplierInput:
    values: Dict[str, Any] = field(default_factory=dict)

    FIELDS = ("name", "email", "phone", "address", "contact_person", "status")

    @classmethod
    def from_payload(cls, payload: Any, *, partial: bool = False) -> "SupplierInput":
        data = check_keys(payload, cls.FIELDS, () if partial else ("name",))
        values: Dict[str, Any] = {}
        for key in ("name", "email", "phone", "address", "contact_person"):
            if key in data:
                values[key] = _text(data, key, blank_ok=key != "name") or None
        if "status" in data:
            values["status"] = _enum(SupplierStatus, data, "status")
        return cls(values=values)


@dataclass(frozen=True)
class PurchaseOrderLineInput:
    item_id: str
    quantity: int
    unit_price: Decimal

    @classmethod
    def from_payload(cls, payload: Any) -> "PurchaseOrderLineInput":
        data = check_keys(payload, ("item_id", "quantity", "unit_price"), ("item_id", "quantity", "unit_price"))
        return cls(
            item_id=str(data["item_id"]).strip(),
            quantity=_positive_int(data["quantity"], "quantity"),
            unit_price=_money_value(data["unit_price"], "unit_price"),
        )


@dataclass(frozen=True)
class PurchaseOrderInput:
    supplier_id: Optional[str] = None
    department: Optional[str] = None
    notes: Optional[str] = None
    expected_date: Optional[date] = None
    status: Optional[PurchaseOrderStatus] = None
    items: Optional[Tuple[PurchaseOrderLineInput, ...]] = None

    FIELDS = ("supplier_id", "department", "notes", "expected_date", "status", "items")

    @classmethod
    def from_payload(cls, payload: Any, *, partial: bool = False) -> "PurchaseOrderInput":
        required = () if partial else ("supplier_id", "department", "items")
        data = check_keys(payload, cls.FIELDS, required)

        expected = None
        if data.get("expected_date"):
            expected = parse_date(data["expected_date"])
            if expected is None:
                raise ValidationError("Invalid input", {"expected_date": "expected YYYY-MM-DD"})

        items = None
        if "items" in data:
            if not isinstance(data["items"], list) or not data["items"]:
                raise ValidationError("Invalid input", {"items": "at least one item is required"})
            items = tuple(PurchaseOrderLineInput.from_payload(line) for line in data["items"])

        return cls(
            supplier_id=_text(data, "supplier_id"),
            department=_text(data, "department", max_len=120),
            notes=_text(data, "notes", max_len=5000, blank_ok=True),
            expected_date=expected,
            status=_enum(PurchaseOrderStatus, data, "status"),
            items=items,
        )
