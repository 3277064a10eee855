"""
Tests for the AccessEvaluator.

The evaluator is pure, so most tests use plain Identity claims and never
touch the database.
"""

from types import SimpleNamespace

import pytest

from supplies.errors import ForbiddenError, UnauthorizedError
from supplies.models import Request, Role
from supplies.policy import DEFAULT_POLICY, FEATURES, AccessPolicy, Permission
from supplies.security import AccessEvaluator, Identity, apply_scope

ADMIN = Identity(id="a1", role=Role.ADMIN, department="Administration")
MANAGER = Identity(id="m1", role=Role.MANAGER, department="Sales")
EMPLOYEE = Identity(id="e1", role=Role.EMPLOYEE, department="Sales")

RESTRICTED_FOR_MANAGER = [
    f for f in FEATURES
    if DEFAULT_POLICY.permission(Role.MANAGER, f).department_restricted
    and DEFAULT_POLICY.permission(Role.MANAGER, f).can_view
]


@pytest.fixture()
def evaluator():
    return AccessEvaluator(DEFAULT_POLICY)


# ── Fail closed ──────────────────────────────────────────────────────────


@pytest.mark.parametrize("user", [ADMIN, MANAGER, EMPLOYEE])
def test_unknown_feature_is_denied(evaluator, user):
    decision = evaluator.check_access(user, "spaceships", "canView")
    assert not decision.allowed
    assert decision.reason == "Unauthorized"


def test_missing_policy_entry_is_denied():
    sparse = AccessEvaluator(AccessPolicy(features={Role.ADMIN: {"inventory": Permission(can_view=True)}}, dashboards={}))
    assert sparse.check_access(ADMIN, "inventory", "canView").allowed
    assert not sparse.check_access(ADMIN, "requests", "canView").allowed
    assert not sparse.check_access(MANAGER, "inventory", "canView").allowed


def test_unknown_role_and_action_are_denied(evaluator):
    stranger = Identity(id="x", role="AUDITOR", department="Sales")
    assert not evaluator.check_access(stranger, "inventory", "canView").allowed
    assert not evaluator.check_access(ADMIN, "inventory", "canFly").allowed


def test_anonymous_is_denied(evaluator):
    anonymous = SimpleNamespace(is_authenticated=False, id=None, role=None)
    assert evaluator.check_access(None, "inventory", "canView").reason == "Unauthorized"
    assert not evaluator.check_access(anonymous, "inventory", "canView").allowed
    with pytest.raises(UnauthorizedError):
        evaluator.ensure(anonymous, "inventory", "canView")


def test_role_given_as_string_is_accepted(evaluator):
    user = Identity(id="m2", role="MANAGER", department="IT")
    assert evaluator.check_access(user, "suppliers", "canCreate").allowed


# ── ADMIN ────────────────────────────────────────────────────────────────


def test_admin_can_never_create_requests(evaluator):
    for department in (None, "Sales", "Administration"):
        assert not evaluator.check_access(ADMIN, "requests", "canCreate", department).allowed
    assert evaluator.check_access(ADMIN, "requests", "canCreate").reason == "Forbidden"
    with pytest.raises(ForbiddenError, match="^Forbidden$"):
        evaluator.ensure(ADMIN, "requests", "canCreate")


def test_admin_is_never_department_restricted(evaluator):
    for feature in FEATURES:
        decision = evaluator.check_access(ADMIN, feature, "canView", "Some Other Dept")
        assert decision.allowed
        assert decision.department_scope is None
    assert evaluator.check_access(ADMIN, "inventory", "canDelete", "IT").allowed


def test_admin_has_no_personal_dashboard(evaluator):
    assert not evaluator.can_access_dashboard(Role.ADMIN, "personalDashboard")
    assert evaluator.can_access_dashboard(Role.ADMIN, "systemDashboard")


# ── MANAGER ──────────────────────────────────────────────────────────────


@pytest.mark.parametrize("feature", RESTRICTED_FOR_MANAGER)
def test_manager_only_in_own_department(evaluator, feature):
    assert evaluator.check_access(MANAGER, feature, "canView", "Sales").allowed
    denied = evaluator.check_access(MANAGER, feature, "canView", "IT")
    assert not denied.allowed
    assert "Sales" in denied.reason


def test_manager_without_target_gets_department_scope(evaluator):
    decision = evaluator.check_access(MANAGER, "inventory", "canView")
    assert decision.allowed
    assert decision.department_scope == "Sales"


def test_manager_suppliers_are_global(evaluator):
    decision = evaluator.check_access(MANAGER, "suppliers", "canEdit", "IT")
    assert decision.allowed
    assert decision.department_scope is None
    assert not evaluator.check_access(MANAGER, "suppliers", "canDelete").allowed


def test_manager_without_department_is_denied_restricted_features(evaluator):
    nowhere = Identity(id="m3", role=Role.MANAGER, department=None)
    assert not evaluator.check_access(nowhere, "inventory", "canView").allowed
    assert evaluator.check_access(nowhere, "suppliers", "canView").allowed


def test_manager_has_no_audit_logs(evaluator):
    with pytest.raises(ForbiddenError):
        evaluator.ensure(MANAGER, "auditLogs", "canView")


# ── EMPLOYEE ─────────────────────────────────────────────────────────────


def test_employee_requests_are_personal_only(evaluator):
    decision = evaluator.check_access(EMPLOYEE, "requests", "canEdit", "Sales")
    assert decision.allowed
    assert decision.personal_only
    assert decision.permits(EMPLOYEE, owner_id="e1", department="Sales")
    assert not decision.permits(EMPLOYEE, owner_id="someone-else", department="Sales")


def test_employee_cannot_approve(evaluator):
    assert not evaluator.check_access(EMPLOYEE, "requests", "canApprove").allowed
    assert not evaluator.check_access(EMPLOYEE, "pendingApprovals", "canView").allowed


def test_employee_dashboards(evaluator):
    assert evaluator.can_access_dashboard(Role.EMPLOYEE, "personalDashboard")
    assert not evaluator.can_access_dashboard(Role.EMPLOYEE, "departmentDashboard")
    assert not evaluator.can_access_dashboard("NOBODY", "personalDashboard")


# ── Query scoping ────────────────────────────────────────────────────────


def test_apply_scope_filters_owner_and_department(evaluator):
    employee_q = apply_scope(
        Request.query,
        evaluator.check_access(EMPLOYEE, "requests", "canView"),
        EMPLOYEE,
        owner_column=Request.requester_id,
        department_column=Request.department,
    )
    assert "requester_id" in str(employee_q.statement).split("WHERE", 1)[1]

    manager_q = apply_scope(
        Request.query,
        evaluator.check_access(MANAGER, "requests", "canView"),
        MANAGER,
        owner_column=Request.requester_id,
        department_column=Request.department,
    )
    sql = str(manager_q.statement)
    assert "department" in sql.split("WHERE", 1)[1]
    assert "requester_id" not in sql.split("WHERE", 1)[1]
