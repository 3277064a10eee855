"""
supplies/security.py

Authorization evaluator and Flask access-control helpers.

Key rules:
- All permission checks are server-side and go through AccessEvaluator.
  Callers never compare role strings themselves.
- Unknown role / feature / action, or a missing identity: deny (fail closed).
- MANAGER + department_restricted feature: the target department must be the
  manager's own. Without a target the decision carries department_scope and
  the caller pre-filters its query to that department.
- personal_only (EMPLOYEE): surfaced on the decision; the data-access layer
  filters to rows owned by the user (apply_scope / AccessDecision.permits).
- ADMIN is global; its denials (requests.canCreate, personal dashboard) are
  plain policy facts.

The evaluator is pure: it reads the injected AccessPolicy and the caller's
identity claims (id, role, department) and nothing else.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Optional, Tuple

from flask import current_app
from flask_login import current_user
from sqlalchemy import false

from .errors import ForbiddenError, UnauthorizedError
from .models import Role
from .policy import ACTIONS, PERSONAL_ONLY, AccessPolicy

logger = logging.getLogger(__name__)

UNAUTHORIZED = "Unauthorized"
FORBIDDEN = "Forbidden"
EXTENSION_KEY = "supplies.access_evaluator"


@dataclass(frozen=True)
class Identity:
    """Identity claims handed over by the session layer."""

    id: str
    role: Any
    department: Optional[str] = None


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: Optional[str] = None
    additional_restrictions: Tuple[str, ...] = ()
    department_scope: Optional[str] = None

    @property
    def personal_only(self) -> bool:
        return PERSONAL_ONLY in self.additional_restrictions

    def permits(self, user: Any, *, owner_id: Optional[str] = None, department: Optional[str] = None) -> bool:
        """Row-level check for one record against the decision's scope."""
        if not self.allowed:
            return False
        if self.department_scope is not None and department != self.department_scope:
            return False
        if self.personal_only and owner_id != getattr(user, "id", None):
            return False
        return True


def _deny(reason: str) -> AccessDecision:
    return AccessDecision(allowed=False, reason=reason)


def coerce_role(value: Any) -> Optional[Role]:
    if isinstance(value, Role):
        return value
    if value is None:
        return None
    try:
        return Role(str(value))
    except ValueError:
        return None


def _is_authenticated(user: Any) -> bool:
    if user is None:
        return False
    if getattr(user, "is_authenticated", True) is False:
        return False
    return getattr(user, "id", None) is not None


class AccessEvaluator:
    """Answers "may this user do <action> on <feature> (in <department>)?"."""

    def __init__(self, policy: AccessPolicy) -> None:
        self.policy = policy

    def check_access(
        self,
        user: Any,
        feature: str,
        action: str,
        target_department: Optional[str] = None,
    ) -> AccessDecision:
        if not _is_authenticated(user):
            return _deny(UNAUTHORIZED)

        role = coerce_role(getattr(user, "role", None))
        if role is None or action not in ACTIONS:
            return _deny(UNAUTHORIZED)

        permission = self.policy.permission(role, feature)
        if permission is None:
            return _deny(UNAUTHORIZED)

        if not permission.allows(action):
            logger.debug("Access denied: role=%s feature=%s action=%s", role.value, feature, action)
            return _deny(FORBIDDEN)

        scope = None
        if permission.department_restricted and role == Role.MANAGER:
            own_department = getattr(user, "department", None)
            if not own_department:
                return _deny(f"{feature} is restricted to the manager's department")
            if target_department is not None and target_department != own_department:
                logger.debug(
                    "Department denied: user=%s feature=%s target=%s",
                    user.id, feature, target_department,
                )
                return _deny(f"{feature} is restricted to department {own_department}")
            scope = own_department

        return AccessDecision(
            allowed=True,
            additional_restrictions=tuple(permission.additional_restrictions),
            department_scope=scope,
        )

    def ensure(
        self,
        user: Any,
        feature: str,
        action: str,
        target_department: Optional[str] = None,
    ) -> AccessDecision:
        """check_access, raising UnauthorizedError / ForbiddenError on deny."""
        decision = self.check_access(user, feature, action, target_department)
        if decision.allowed:
            return decision
        if not _is_authenticated(user):
            raise UnauthorizedError()
        raise ForbiddenError(decision.reason or FORBIDDEN)

    def can_access_dashboard(self, role: Any, dashboard: str) -> bool:
        coerced = coerce_role(role)
        if coerced is None:
            return False
        return self.policy.dashboard_allowed(coerced, dashboard)


# ---------------------------------------------------------------------
# Flask glue
# ---------------------------------------------------------------------
def current_evaluator() -> AccessEvaluator:
    return current_app.extensions[EXTENSION_KEY]


def require_access(
    feature: str,
    action: str,
    target_department: Optional[str] = None,
    user: Any = None,
) -> AccessDecision:
    """Evaluate for the logged-in user (or `user`) and raise on deny."""
    subject = current_user if user is None else user
    return current_evaluator().ensure(subject, feature, action, target_department)


def feature_required(feature: str, action: str) -> Callable[..., Any]:
    """
    Decorator: feature-level gate (no target department).

    Row-level checks (department, ownership) stay in the view or service.
    """
    def decorator(view_func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view_func)
        def wrapper(*args: Any, **kwargs: Any):
            require_access(feature, action)
            return view_func(*args, **kwargs)

        return wrapper

    return decorator


def apply_scope(query, decision: AccessDecision, user: Any, *, owner_column=None, department_column=None):
    """
    Pre-filter a query to what the decision lets the user see.

    - department_scope -> department_column == scope
    - personal_only    -> owner_column == user.id (no owner column: nothing)
    """
    if decision.department_scope is not None and department_column is not None:
        query = query.filter(department_column == decision.department_scope)
    if decision.personal_only:
        if owner_column is None:
            return query.filter(false())
        query = query.filter(owner_column == user.id)
    return query


def enforce_scope(decision: AccessDecision, user: Any, *, owner_id: Optional[str] = None,
                  department: Optional[str] = None) -> None:
    if not decision.permits(user, owner_id=owner_id, department=department):
        raise ForbiddenError("Not authorized for this record")
