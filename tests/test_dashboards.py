"""Dashboard router: default landing paths, type gating and the HTTP views."""

import pytest

from supplies.dashboards import LOGIN_PATH, can_access_dashboard_type, get_default_dashboard
from supplies.models import Role
from supplies.policy import AccessPolicy, Permission
from supplies.schemas import CreateRequestInput
from supplies.security import EXTENSION_KEY as EVALUATOR_KEY
from supplies.security import AccessEvaluator

from conftest import login_as, make_item


@pytest.mark.parametrize(
    "role,path",
    [
        (Role.ADMIN, "/dashboard/admin"),
        (Role.MANAGER, "/dashboard/manager"),
        ("EMPLOYEE", "/dashboard/employee"),
        ("INTERN", LOGIN_PATH),
        (None, LOGIN_PATH),
    ],
)
def test_get_default_dashboard(role, path):
    assert get_default_dashboard(role) == path


@pytest.mark.parametrize(
    "role,dashboard_type,expected",
    [
        (Role.ADMIN, "admin", True),
        (Role.ADMIN, "system", True),
        (Role.ADMIN, "department", True),
        (Role.ADMIN, "personal", False),
        (Role.MANAGER, "manager", True),
        (Role.MANAGER, "personal", True),
        (Role.MANAGER, "admin", False),
        (Role.EMPLOYEE, "employee", True),
        (Role.EMPLOYEE, "department", False),
        (Role.EMPLOYEE, "reports", False),
    ],
)
def test_can_access_dashboard_type(role, dashboard_type, expected):
    assert can_access_dashboard_type(role, dashboard_type) is expected


def _admin_personal_only():
    policy = AccessPolicy(
        features={Role.ADMIN: {"requests": Permission(can_view=True)}},
        dashboards={Role.ADMIN: {"personalDashboard": True}},
    )
    return AccessEvaluator(policy)


def test_can_access_dashboard_type_uses_given_evaluator():
    evaluator = _admin_personal_only()
    assert can_access_dashboard_type(Role.ADMIN, "personal", evaluator) is True
    assert can_access_dashboard_type(Role.ADMIN, "admin", evaluator) is False
    assert can_access_dashboard_type("INTERN", "personal", evaluator) is False


# ── HTTP ─────────────────────────────────────────────────────────────────


def test_root_redirects_to_login_when_anonymous(client):
    res = client.get("/")
    assert res.status_code == 302
    assert res.headers["Location"].endswith(LOGIN_PATH)


def test_root_redirects_to_role_dashboard(client, manager):
    login_as(client, manager)
    res = client.get("/")
    assert res.status_code == 302
    assert res.headers["Location"].endswith("/dashboard/manager")


def test_admin_personal_dashboard_is_forbidden(client, admin):
    login_as(client, admin)
    res = client.get("/dashboard/personal")
    assert res.status_code == 403
    assert res.get_json()["code"] == "ERR_FORBIDDEN"


def test_dashboard_view_uses_the_app_evaluator(app, client, admin, monkeypatch):
    monkeypatch.setitem(app.extensions, EVALUATOR_KEY, _admin_personal_only())
    login_as(client, admin)
    assert client.get("/dashboard/admin").status_code == 403
    assert client.get("/dashboard/personal").status_code == 200


def test_manager_dashboard_counts_only_own_department(client, workflow, manager, it_manager, employee, item):
    workflow.create_request(
        employee,
        CreateRequestInput.from_payload({"title": "Paper", "department": "Sales", "items": [{"item_id": item.id, "quantity": 1}]}),
    )
    make_item("STP-010", "12.00", department="IT", stock=0, min_stock=5)

    login_as(client, manager)
    body = client.get("/dashboard/manager").get_json()
    assert body["dashboard"] == "departmentDashboard"
    assert body["requests_by_status"]["PENDING"] == 1
    assert body["pending_approvals"] == 1
    assert body["low_stock_items"] == 0

    login_as(client, it_manager)
    body = client.get("/dashboard/department").get_json()
    assert body["requests_by_status"]["PENDING"] == 0
    assert body["pending_approvals"] == 0
    assert body["low_stock_items"] == 1


def test_employee_dashboard_has_no_low_stock(client, employee):
    login_as(client, employee)
    body = client.get("/dashboard/employee").get_json()
    assert body["dashboard"] == "personalDashboard"
    assert "low_stock_items" not in body


def test_dashboard_requires_login(client):
    assert client.get("/dashboard/admin").status_code == 401
