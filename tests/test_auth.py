"""Tests for registration, login and role checks."""

from peopleos.core.auth import PERMISSION_DENIED
from tests.conftest import PASSWORD, auth_headers, create_employee, create_user
from peopleos.models.enums import UserRole


class TestRegister:

    def test_first_account_is_super_admin(self, client):
        resp = client.post("/api/auth/register", json={"email": "first@example.com", "password": PASSWORD})
        assert resp.status_code == 201
        assert "SUPER_ADMIN" in resp.json()["message"]

        second = client.post("/api/auth/register", json={"email": "second@example.com", "password": PASSWORD})
        assert second.status_code == 201
        assert "EMPLOYEE" in second.json()["message"]

    def test_duplicate_email_rejected(self, client):
        client.post("/api/auth/register", json={"email": "dup@example.com", "password": PASSWORD})
        resp = client.post("/api/auth/register", json={"email": "DUP@example.com", "password": PASSWORD})
        assert resp.status_code == 400

    def test_short_password_is_422(self, client):
        resp = client.post("/api/auth/register", json={"email": "a@example.com", "password": "short"})
        assert resp.status_code == 422


class TestLogin:

    def test_login_returns_token(self, client):
        create_user("login@example.com", UserRole.HR_ADMIN)
        resp = client.post("/api/auth/login", json={"email": "login@example.com", "password": PASSWORD})
        assert resp.status_code == 200
        data = resp.json()
        assert data["token_type"] == "bearer"
        assert data["role"] == "HR_ADMIN"

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
        assert me.status_code == 200
        assert me.json()["email"] == "login@example.com"

    def test_wrong_password(self, client):
        create_user("login@example.com", UserRole.EMPLOYEE)
        resp = client.post("/api/auth/login", json={"email": "login@example.com", "password": "not-the-password"})
        assert resp.status_code == 401

    def test_deactivated_account(self, client):
        create_user("gone@example.com", UserRole.EMPLOYEE, is_active=False)
        resp = client.post("/api/auth/login", json={"email": "gone@example.com", "password": PASSWORD})
        assert resp.status_code == 403


class TestAccessLevels:

    def test_missing_token_is_401(self, client):
        assert client.get("/api/auth/me").status_code == 401

    def test_garbage_token_is_401(self, client):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_employee_cannot_list_users(self, client, employee_headers):
        resp = client.get("/api/auth/users", headers=employee_headers)
        assert resp.status_code == 403
        assert resp.json()["detail"] == PERMISSION_DENIED

    def test_it_admin_can_list_users(self, client, it_headers):
        resp = client.get("/api/auth/users", headers=it_headers)
        assert resp.status_code == 200
        assert [u["email"] for u in resp.json()] == ["it@example.com"]

    def test_only_super_admin_changes_roles(self, client, hr_headers):
        target = create_user("someone@example.com", UserRole.EMPLOYEE)
        resp = client.put(f"/api/auth/users/{target}", json={"role": "MANAGER"}, headers=hr_headers)
        assert resp.status_code == 403

        root = auth_headers(create_user("root@example.com", UserRole.SUPER_ADMIN))
        resp = client.put(f"/api/auth/users/{target}", json={"role": "MANAGER"}, headers=root)
        assert resp.status_code == 200
        assert resp.json()["role"] == "MANAGER"


class TestEmployeeLink:

    def test_register_does_not_claim_employee_by_email(self, client):
        create_user("root@example.com", UserRole.SUPER_ADMIN)
        create_employee(personal_email="ada@example.com")
        client.post("/api/auth/register", json={"email": "ada@example.com", "password": PASSWORD})

        login = client.post("/api/auth/login", json={"email": "ada@example.com", "password": PASSWORD}).json()
        headers = {"Authorization": f"Bearer {login['access_token']}"}
        assert client.get("/api/auth/me", headers=headers).json()["employee_id"] is None
        assert client.get("/api/employees/me", headers=headers).status_code == 404

    def test_super_admin_links_and_unlinks(self, client, super_admin_headers, employee_id):
        target = create_user("ada@example.com", UserRole.EMPLOYEE)
        resp = client.put(f"/api/auth/users/{target}", json={"employee_id": employee_id}, headers=super_admin_headers)
        assert resp.json()["employee_id"] == employee_id

        resp = client.put(f"/api/auth/users/{target}", json={"employee_id": None}, headers=super_admin_headers)
        assert resp.status_code == 200
        assert resp.json()["employee_id"] is None

    def test_unknown_employee(self, client, super_admin_headers):
        target = create_user("ada@example.com", UserRole.EMPLOYEE)
        resp = client.put(f"/api/auth/users/{target}", json={"employee_id": 999}, headers=super_admin_headers)
        assert resp.status_code == 404


class TestUpdateUser:

    def test_null_role_and_activation_ignored(self, client, super_admin_headers):
        target = create_user("someone@example.com", UserRole.MANAGER)
        resp = client.put(
            f"/api/auth/users/{target}",
            json={"role": None, "is_active": None},
            headers=super_admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["role"] == "MANAGER"
        assert resp.json()["is_active"] is True

    def test_deactivate_keeps_role(self, client, super_admin_headers):
        target = create_user("someone@example.com", UserRole.MANAGER)
        resp = client.put(
            f"/api/auth/users/{target}",
            json={"role": None, "is_active": False},
            headers=super_admin_headers,
        )
        assert resp.json()["is_active"] is False
        assert resp.json()["role"] == "MANAGER"
