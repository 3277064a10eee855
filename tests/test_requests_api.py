"""
HTTP tests for /requests.

The workflow rules themselves are covered in test_workflow.py; these check
wiring, status codes, scoping of lists and the JSON shapes.
"""

import pytest

from supplies.models import AuditLog, RequestStatus, Role, UserStatus

from conftest import login_as, make_user


def _new_request(client, item, quantity=3, **extra):
    body = {"title": "Paper restock", "department": "Sales", "items": [{"item_id": item.id, "quantity": quantity}]}
    body.update(extra)
    return client.post("/requests/", json=body)


@pytest.fixture()
def created(client, manager, it_manager, employee, item):
    login_as(client, employee)
    res = _new_request(client, item)
    assert res.status_code == 201
    return res.get_json()


def test_create_returns_full_request(created, manager):
    assert created["status"] == "PENDING"
    assert created["total_amount"] == "30.00"
    assert created["priority"] == "MEDIUM"
    assert created["items"][0]["quantity"] == 3
    assert [(a["level"], a["approver_id"], a["status"]) for a in created["approvals"]] == [(1, manager.id, "PENDING")]


def test_admin_create_is_forbidden(client, admin, manager, item):
    login_as(client, admin)
    res = _new_request(client, item)
    assert res.status_code == 403
    assert res.get_json()["code"] == "ERR_FORBIDDEN"


def test_create_validation_error(client, employee):
    login_as(client, employee)
    res = client.post("/requests/", json={"title": "x", "department": "Sales", "items": [], "colour": "red"})
    assert res.status_code == 400
    details = res.get_json()["details"]
    assert details["colour"] == "unknown field"


def test_list_is_scoped_per_role(client, created, employee, other_employee, manager, it_manager, admin, item):
    login_as(client, other_employee)
    _new_request(client, item, quantity=1, title="Y's pens")

    login_as(client, employee)
    rows = client.get("/requests/").get_json()["requests"]
    assert [r["id"] for r in rows] == [created["id"]]

    login_as(client, manager)
    body = client.get("/requests/").get_json()
    assert body["pagination"]["total"] == 2

    login_as(client, it_manager)
    assert client.get("/requests/").get_json()["requests"] == []

    login_as(client, admin)
    assert client.get("/requests/?search=pens").get_json()["pagination"]["total"] == 1
    assert client.get("/requests/?status=approved").get_json()["pagination"]["total"] == 0
    assert client.get("/requests/?status=bogus").status_code == 400


def test_list_pagination(client, manager, employee, item):
    login_as(client, employee)
    for n in range(3):
        _new_request(client, item, quantity=1, title=f"R{n}")
    body = client.get("/requests/?page=2&limit=2").get_json()
    assert body["pagination"] == {"page": 2, "limit": 2, "total": 3, "pages": 2}
    assert len(body["requests"]) == 1


def test_get_other_employees_request_is_forbidden(client, created, other_employee, it_manager):
    login_as(client, other_employee)
    assert client.get(f"/requests/{created['id']}").status_code == 403
    login_as(client, it_manager)
    assert client.get(f"/requests/{created['id']}").status_code == 403
    assert client.get("/requests/does-not-exist").status_code == 404


def test_approve_flow(client, created, manager):
    login_as(client, manager)
    pending = client.get("/requests/pending-approvals").get_json()["approvals"]
    assert [p["request"]["id"] for p in pending] == [created["id"]]

    res = client.post(f"/requests/{created['id']}/approve", json={"decision": "APPROVED"})
    assert res.status_code == 200
    assert res.get_json()["request"]["status"] == "APPROVED"

    again = client.post(f"/requests/{created['id']}/approve", json={"decision": "REJECTED", "comments": "no"})
    assert again.status_code == 409
    assert again.get_json()["code"] == "ERR_INVALID_STATE"

    assert client.get("/requests/pending-approvals").get_json()["approvals"] == []


def test_reject_requires_comments(client, created, manager):
    login_as(client, manager)
    res = client.post(f"/requests/{created['id']}/approve", json={"decision": "REJECTED"})
    assert res.status_code == 400
    assert res.get_json()["code"] == "ERR_COMMENTS_REQUIRED"

    res = client.post(f"/requests/{created['id']}/approve", json={"decision": "REJECTED", "comments": "budget"})
    body = res.get_json()["request"]
    assert body["status"] == "REJECTED"
    assert body["approvals"][0]["comments"] == "budget"


def test_employee_cannot_approve(client, created, employee):
    login_as(client, employee)
    res = client.post(f"/requests/{created['id']}/approve", json={"decision": "APPROVED"})
    assert res.status_code == 403


def test_update_by_other_employee_is_forbidden(client, created, other_employee, employee):
    login_as(client, other_employee)
    res = client.put(f"/requests/{created['id']}", json={"title": "hijacked"})
    assert res.status_code == 403

    login_as(client, employee)
    res = client.put(f"/requests/{created['id']}", json={"title": "More paper", "priority": "high"})
    assert res.status_code == 200
    assert res.get_json()["title"] == "More paper"
    assert res.get_json()["priority"] == "HIGH"


def test_item_lines_keep_total_in_sync(client, created, employee, cheap_item):
    login_as(client, employee)
    res = client.post(f"/requests/{created['id']}/items", json={"item_id": cheap_item.id, "quantity": 2})
    assert res.status_code == 201
    body = res.get_json()
    assert body["total_amount"] == "35.00"

    first_line = body["items"][0]["id"]
    body = client.delete(f"/requests/{created['id']}/items/{first_line}").get_json()
    assert body["total_amount"] == "5.00"
    assert len(body["items"]) == 1


def test_assign_approver_and_status_changes(client, created, manager, admin):
    login_as(client, manager)
    res = client.post(f"/requests/{created['id']}/approvers", json={"approver_id": admin.id})
    assert res.status_code == 201
    assert res.get_json()["level"] == 2

    res = client.post(f"/requests/{created['id']}/approve", json={"decision": "APPROVED"})
    assert res.get_json()["request"]["status"] == "PENDING"

    login_as(client, admin)
    res = client.post(f"/requests/{created['id']}/approve", json={"decision": "APPROVED"})
    assert res.get_json()["request"]["status"] == "APPROVED"

    res = client.post(f"/requests/{created['id']}/status", json={"status": "IN_PROGRESS"})
    assert res.get_json()["status"] == RequestStatus.IN_PROGRESS.value
    res = client.post(f"/requests/{created['id']}/status", json={"status": "PENDING"})
    assert res.status_code == 409


def test_delete_request(client, created, employee):
    login_as(client, employee)
    assert client.delete(f"/requests/{created['id']}").status_code == 200
    assert client.get(f"/requests/{created['id']}").status_code == 404
    log = AuditLog.query.filter_by(entity_id=created["id"], action="DELETE").one()
    assert log.performed_by == employee.id


def test_inactive_manager_is_skipped_for_new_requests(client, employee, item):
    make_user("old@company.com", Role.MANAGER, "Sales", status=UserStatus.INACTIVE)
    login_as(client, employee)
    body = _new_request(client, item).get_json()
    assert body["approvals"] == []
