"""Tests for the role -> feature permission matrix."""

import dataclasses

import pytest

from supplies.models import Role
from supplies.policy import DASHBOARDS, DEFAULT_POLICY, DENY, FEATURES, PERSONAL_ONLY, AccessPolicy, Permission


def test_default_policy_is_complete():
    assert DEFAULT_POLICY.missing_entries() == []
    assert all(DEFAULT_POLICY.features_for(role) for role in Role)


def test_admin_has_everything_except_raising_requests():
    for feature in FEATURES:
        perm = DEFAULT_POLICY.permission(Role.ADMIN, feature)
        assert perm.can_view and perm.can_edit and perm.can_delete and perm.can_approve
        assert not perm.department_restricted
    assert DEFAULT_POLICY.permission(Role.ADMIN, "requests").can_create is False
    assert DEFAULT_POLICY.permission(Role.ADMIN, "inventory").can_create is True


def test_manager_department_restrictions():
    restricted = {
        "requests", "inventory", "purchaseOrders", "reports", "quickReports",
        "users", "departments", "lowStockAlerts", "pendingApprovals",
    }
    for feature in restricted:
        assert DEFAULT_POLICY.permission(Role.MANAGER, feature).department_restricted, feature
    assert not DEFAULT_POLICY.permission(Role.MANAGER, "suppliers").department_restricted
    assert DEFAULT_POLICY.permission(Role.MANAGER, "auditLogs") == DENY
    assert DEFAULT_POLICY.permission(Role.MANAGER, "settings") == DENY


def test_employee_requests_are_personal_only():
    perm = DEFAULT_POLICY.permission(Role.EMPLOYEE, "requests")
    assert perm.can_create and perm.can_edit and perm.can_delete
    assert not perm.can_approve
    assert PERSONAL_ONLY in perm.additional_restrictions
    assert DEFAULT_POLICY.permission(Role.EMPLOYEE, "inventory").allows("canView")
    assert not DEFAULT_POLICY.permission(Role.EMPLOYEE, "inventory").allows("canEdit")


@pytest.mark.parametrize(
    "role,allowed",
    [
        (Role.ADMIN, {"adminDashboard", "systemDashboard", "departmentDashboard"}),
        (Role.MANAGER, {"departmentDashboard", "personalDashboard"}),
        (Role.EMPLOYEE, {"personalDashboard"}),
    ],
)
def test_dashboard_flags(role, allowed):
    for dashboard in DASHBOARDS:
        assert DEFAULT_POLICY.dashboard_allowed(role, dashboard) is (dashboard in allowed)


def test_policy_is_immutable():
    with pytest.raises(TypeError):
        DEFAULT_POLICY.features_for(Role.EMPLOYEE)["auditLogs"] = Permission(can_view=True)
    with pytest.raises(dataclasses.FrozenInstanceError):
        DEFAULT_POLICY.permission(Role.EMPLOYEE, "requests").can_approve = True


def test_partial_policy_reports_missing_entries():
    policy = AccessPolicy(features={Role.ADMIN: {"requests": Permission(can_view=True)}}, dashboards={})
    missing = policy.missing_entries()
    assert ("ADMIN", "inventory") in missing
    assert ("EMPLOYEE", "requests") in missing
    assert policy.permission(Role.MANAGER, "requests") is None
    assert policy.dashboard_allowed(Role.ADMIN, "adminDashboard") is False


def test_unknown_action_is_not_allowed():
    assert not DEFAULT_POLICY.permission(Role.ADMIN, "inventory").allows("canExplode")
