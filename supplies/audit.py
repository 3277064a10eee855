"""
supplies/audit.py

Audit trail recorder.

Goals:
- Capture WHO did WHAT to WHICH entity, with optional BEFORE/AFTER snapshots.
- Store a username snapshot so identity survives later user edits.
- Store the client IP when called inside a request.

IMPORTANT:
- record() runs AFTER the business transaction has committed and commits its
  own row, so the entry is durable before the HTTP response is returned.
- A failed audit write never undoes the business change and never masks a
  business error: it is rolled back and reported through logger.exception.
"""

from __future__ import annotations

import enum
import json
import logging
from typing import Any, Dict, Optional

from flask import has_request_context, request
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db
from .models import AuditLog, User

logger = logging.getLogger(__name__)


def _safe_str(value: Any) -> Optional[str]:
    """Stable string form for JSON snapshots (Decimal, datetime, enums)."""
    if value is None:
        return None
    if isinstance(value, enum.Enum):
        return str(value.value)
    try:
        return str(value)
    except Exception:
        return repr(value)


def serialize_model(instance: Any, exclude: tuple[str, ...] = ("password_hash",)) -> Dict[str, Optional[str]]:
    """
    Snapshot a model's scalar columns as strings.

    Relationships are not followed; callers add child data explicitly.
    """
    data: Dict[str, Optional[str]] = {}
    for column in instance.__table__.columns:
        if column.name in exclude:
            continue
        data[column.name] = _safe_str(getattr(instance, column.name))
    return data


class AuditRecorder:
    """Append-only writer for AuditLog rows."""

    def record(
        self,
        action: Any,
        entity_type: str,
        entity_id: Any,
        performed_by: Optional[str],
        details: str = "",
        *,
        before: Optional[Dict[str, Any]] = None,
        after: Optional[Dict[str, Any]] = None,
    ) -> None:
        action_name = action.value if isinstance(action, enum.Enum) else str(action)
        try:
            entry = AuditLog(
                action=action_name,
                entity_type=entity_type,
                entity_id=str(entity_id),
                performed_by=performed_by,
                username_snapshot=self._username(performed_by),
                details=details or None,
                before_data=json.dumps(before, ensure_ascii=False) if before else None,
                after_data=json.dumps(after, ensure_ascii=False) if after else None,
                ip_address=request.remote_addr if has_request_context() else None,
            )
            self._persist(entry)
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception(
                "Audit write failed: action=%s entity=%s id=%s by=%s",
                action_name, entity_type, entity_id, performed_by,
            )

    def _username(self, user_id: Optional[str]) -> Optional[str]:
        if not user_id:
            return None
        user = db.session.get(User, user_id)
        return user.email if user else None

    def _persist(self, entry: AuditLog) -> None:
        db.session.add(entry)
        db.session.commit()


audit_recorder = AuditRecorder()
