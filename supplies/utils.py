"""
Utility functions shared across the app:
- parse_decimal / parse_int / parse_date: lenient input parsing (None on failure).
- get_json_payload: JSON body as a dict, rejecting anything else.
- paginate: page/limit handling for list endpoints.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from flask import current_app, request

from .errors import ValidationError


def parse_decimal(value: Any) -> Decimal | None:
    """Parse decimal from user input (accepts comma or dot)."""
    if value is None or isinstance(value, bool):
        return None
    raw = str(value).strip().replace(",", ".")
    if raw == "":
        return None
    try:
        parsed = Decimal(raw)
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


def parse_int(value: Any) -> int | None:
    """Parse an int; floats with a fractional part are rejected."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    raw = str(value).strip()
    if raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def parse_date(value: Any) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        return None


def get_json_payload() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def paginate(query, order_by=None) -> dict:
    """
    Apply ?page=&limit= to a query.

    Returns {"items": [...rows], "pagination": {...}}; rows are model objects.
    """
    page = parse_int(request.args.get("page")) or 1
    limit = parse_int(request.args.get("limit")) or current_app.config["PAGE_SIZE_DEFAULT"]
    page = max(page, 1)
    limit = max(1, min(limit, current_app.config["PAGE_SIZE_MAX"]))

    total = query.order_by(None).count()
    if order_by is not None:
        query = query.order_by(order_by)
    rows = query.offset((page - 1) * limit).limit(limit).all()

    return {
        "items": rows,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }
