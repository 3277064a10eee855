"""
Dashboard routing.

- get_default_dashboard(role): landing path after login / on "/".
- can_access_dashboard_type(role, type): asks the app's AccessEvaluator for the
  dashboard flag. "manager" is an alias of "department", "employee" of "personal".
"""

from __future__ import annotations

from typing import Any, Optional

from .models import Role
from .security import AccessEvaluator, coerce_role, current_evaluator

LOGIN_PATH = "/auth/login"

DEFAULT_DASHBOARDS = {
    Role.ADMIN: "/dashboard/admin",
    Role.MANAGER: "/dashboard/manager",
    Role.EMPLOYEE: "/dashboard/employee",
}

DASHBOARD_TYPES = {
    "admin": "adminDashboard",
    "system": "systemDashboard",
    "department": "departmentDashboard",
    "manager": "departmentDashboard",
    "personal": "personalDashboard",
    "employee": "personalDashboard",
}


def get_default_dashboard(role: Any) -> str:
    coerced = coerce_role(role)
    if coerced is None:
        return LOGIN_PATH
    return DEFAULT_DASHBOARDS.get(coerced, LOGIN_PATH)


def can_access_dashboard_type(
    role: Any, dashboard_type: str, evaluator: Optional[AccessEvaluator] = None
) -> bool:
    dashboard = DASHBOARD_TYPES.get((dashboard_type or "").strip().lower())
    if dashboard is None:
        return False
    return (evaluator or current_evaluator()).can_access_dashboard(role, dashboard)
