"""Authentication endpoints and the JSON error envelope."""

from supplies.models import Role, User, UserStatus

from conftest import PASSWORD, make_user


def test_login_success_returns_user_and_dashboard(client, manager):
    res = client.post("/auth/login", json={"email": "MANAGER.SALES@company.com ", "password": PASSWORD})
    assert res.status_code == 200
    body = res.get_json()
    assert body["user"]["id"] == manager.id
    assert body["dashboard"] == "/dashboard/manager"
    assert manager.last_sign_in is not None

    me = client.get("/auth/me").get_json()
    assert me["user"]["email"] == manager.email


def test_login_bad_password(client, manager):
    res = client.post("/auth/login", json={"email": manager.email, "password": "wrong"})
    assert res.status_code == 401
    assert res.get_json() == {"error": "Invalid email or password", "code": "ERR_UNAUTHORIZED"}


def test_login_inactive_account(client):
    make_user("gone@company.com", Role.EMPLOYEE, "Sales", status=UserStatus.INACTIVE)
    res = client.post("/auth/login", json={"email": "gone@company.com", "password": PASSWORD})
    assert res.status_code == 403


def test_login_validation(client):
    res = client.post("/auth/login", json={"email": "a@b.c"})
    assert res.status_code == 400
    body = res.get_json()
    assert body["code"] == "ERR_VALIDATION"
    assert body["details"] == {"password": "required"}


def test_logout(client, employee):
    client.post("/auth/login", json={"email": employee.email, "password": PASSWORD})
    assert client.post("/auth/logout").status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_protected_routes_require_login(client):
    res = client.get("/requests/")
    assert res.status_code == 401
    assert res.get_json()["code"] == "ERR_UNAUTHORIZED"


def test_unknown_route_is_json_404(client):
    res = client.get("/nowhere")
    assert res.status_code == 404
    assert res.get_json()["code"] == "ERR_HTTP_404"


def test_csrf_token_endpoint(client):
    assert client.get("/auth/csrf-token").get_json()["csrf_token"]


def test_seed_admin_only_on_empty_database(client):
    res = client.post(
        "/auth/seed-admin",
        json={"email": "root@company.com", "password": "rootpass", "name": "Root"},
    )
    assert res.status_code == 201
    admin = User.query.filter_by(email="root@company.com").one()
    assert admin.role == Role.ADMIN
    assert admin.department == "Administration"

    again = client.post("/auth/seed-admin", json={"email": "x@company.com", "password": "rootpass"})
    assert again.status_code == 403


def test_seed_admin_password_length(client):
    res = client.post("/auth/seed-admin", json={"email": "root@company.com", "password": "123"})
    assert res.status_code == 400
    assert User.query.count() == 0
