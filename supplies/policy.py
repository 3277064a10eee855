"""
supplies/policy.py

Role -> feature permission matrix.

Pure data. Every role has an entry for every feature and every dashboard;
anything not listed is denied by the evaluator (fail closed).

The matrix is immutable: Permission is a frozen dataclass and the nested
mappings are read-only views. The app factory loads one AccessPolicy at
start-up (config ACCESS_POLICY, default DEFAULT_POLICY) and injects it
into the AccessEvaluator, so tests can swap in alternate policies.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from .models import Role

PERSONAL_ONLY = "personal_only"

FEATURES: Tuple[str, ...] = (
    "requests",
    "inventory",
    "suppliers",
    "purchaseOrders",
    "reports",
    "quickReports",
    "users",
    "departments",
    "auditLogs",
    "settings",
    "lowStockAlerts",
    "pendingApprovals",
)

DASHBOARDS: Tuple[str, ...] = (
    "adminDashboard",
    "systemDashboard",
    "departmentDashboard",
    "personalDashboard",
)

# Action name -> Permission attribute
ACTIONS = MappingProxyType(
    {
        "canView": "can_view",
        "canCreate": "can_create",
        "canEdit": "can_edit",
        "canDelete": "can_delete",
        "canApprove": "can_approve",
    }
)


@dataclass(frozen=True)
class Permission:
    can_view: bool = False
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_approve: bool = False
    department_restricted: bool = False
    additional_restrictions: Tuple[str, ...] = ()

    def allows(self, action: str) -> bool:
        attr = ACTIONS.get(action)
        if attr is None:
            return False
        return bool(getattr(self, attr))


DENY = Permission()


def _perm(actions: str = "", *, dept: bool = False, restrictions: Tuple[str, ...] = ()) -> Permission:
    """
    Compact constructor: letters V/C/E/D/A switch on the matching flag.

        _perm("VCE", dept=True) -> view/create/edit, department restricted
    """
    flags = set(actions)
    return Permission(
        can_view="V" in flags,
        can_create="C" in flags,
        can_edit="E" in flags,
        can_delete="D" in flags,
        can_approve="A" in flags,
        department_restricted=dept,
        additional_restrictions=tuple(restrictions),
    )


class AccessPolicy:
    """Read-only lookup table keyed by role, then feature / dashboard name."""

    def __init__(
        self,
        features: Mapping[Role, Mapping[str, Permission]],
        dashboards: Mapping[Role, Mapping[str, bool]],
    ) -> None:
        self._features = MappingProxyType(
            {role: MappingProxyType(dict(table)) for role, table in features.items()}
        )
        self._dashboards = MappingProxyType(
            {role: MappingProxyType(dict(table)) for role, table in dashboards.items()}
        )

    def permission(self, role: Role, feature: str) -> Optional[Permission]:
        """Return the Permission for (role, feature) or None when absent."""
        table = self._features.get(role)
        if table is None:
            return None
        return table.get(feature)

    def dashboard_allowed(self, role: Role, dashboard: str) -> bool:
        table = self._dashboards.get(role)
        if table is None:
            return False
        return bool(table.get(dashboard, False))

    def features_for(self, role: Role) -> Mapping[str, Permission]:
        return self._features.get(role, MappingProxyType({}))

    def missing_entries(self) -> list[tuple[str, str]]:
        """(role, name) pairs without an explicit entry. Empty for a complete table."""
        missing = []
        for role in Role:
            features = self._features.get(role, {})
            dashboards = self._dashboards.get(role, {})
            missing.extend((role.value, f) for f in FEATURES if f not in features)
            missing.extend((role.value, d) for d in DASHBOARDS if d not in dashboards)
        return missing


# ---------------------------------------------------------------------
# Default matrix
# ---------------------------------------------------------------------
_ADMIN_FEATURES = {feature: _perm("VCEDA") for feature in FEATURES}
# Admins approve requests but never raise them.
_ADMIN_FEATURES["requests"] = _perm("VEDA")

_MANAGER_FEATURES = {
    "requests": _perm("VCEDA", dept=True),
    "inventory": _perm("VCE", dept=True),
    "suppliers": _perm("VCE"),
    "purchaseOrders": _perm("VCE", dept=True),
    "reports": _perm("VC", dept=True),
    "quickReports": _perm("VC", dept=True),
    "users": _perm("V", dept=True),
    "departments": _perm("V", dept=True),
    "auditLogs": DENY,
    "settings": DENY,
    "lowStockAlerts": _perm("V", dept=True),
    "pendingApprovals": _perm("V", dept=True),
}

_EMPLOYEE_FEATURES = {
    "requests": _perm("VCED", restrictions=(PERSONAL_ONLY,)),
    "inventory": _perm("V"),
    "suppliers": DENY,
    "purchaseOrders": DENY,
    "reports": _perm("V", restrictions=(PERSONAL_ONLY,)),
    "quickReports": _perm("V", restrictions=(PERSONAL_ONLY,)),
    "users": DENY,
    "departments": DENY,
    "auditLogs": DENY,
    "settings": DENY,
    "lowStockAlerts": DENY,
    "pendingApprovals": DENY,
}

DEFAULT_POLICY = AccessPolicy(
    features={
        Role.ADMIN: _ADMIN_FEATURES,
        Role.MANAGER: _MANAGER_FEATURES,
        Role.EMPLOYEE: _EMPLOYEE_FEATURES,
    },
    dashboards={
        Role.ADMIN: {
            "adminDashboard": True,
            "systemDashboard": True,
            "departmentDashboard": True,
            "personalDashboard": False,
        },
        Role.MANAGER: {
            "adminDashboard": False,
            "systemDashboard": False,
            "departmentDashboard": True,
            "personalDashboard": True,
        },
        Role.EMPLOYEE: {
            "adminDashboard": False,
            "systemDashboard": False,
            "departmentDashboard": False,
            "personalDashboard": True,
        },
    },
)
