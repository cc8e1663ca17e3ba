"""Tests for employee records and self-service."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import select

from peopleos.db.postgres import get_db_session
from peopleos.models import AuditLog, Employee, utcnow
from peopleos.models.enums import ContractType, EmployeeStatus, UserRole
from tests.conftest import auth_headers, create_employee, create_user

ROUTES = "peopleos.api.routes.employee_routes"


@pytest.fixture
def outbound():
    with patch(f"{ROUTES}.send_outbound_event") as send:
        yield send


class TestListEmployees:

    def test_started_hires_become_active(self, client, hr_headers):
        create_employee(
            personal_email="due@example.com", status=EmployeeStatus.OFFER_SIGNED,
            start_date=utcnow() - timedelta(days=1),
        )
        create_employee(
            personal_email="later@example.com", full_name="Later", status=EmployeeStatus.HIRED_PENDING_START,
            start_date=utcnow() + timedelta(days=10),
        )

        data = client.get("/api/employees?status=ACTIVE", headers=hr_headers).json()
        assert [e["personal_email"] for e in data["employees"]] == ["due@example.com"]
        assert data["total"] == 1
        assert data["pages"] == 1

    def test_search_and_paging(self, client, hr_headers):
        for index in range(3):
            create_employee(full_name=f"Engineer {index}", personal_email=f"e{index}@example.com",
                            job_title="Software Engineer")
        create_employee(full_name="Sam Sales", personal_email="sam@example.com", job_title="Account Executive")

        data = client.get("/api/employees?search=engineer&limit=2&page=2", headers=hr_headers).json()
        assert data["total"] == 3
        assert data["pages"] == 2
        assert [e["full_name"] for e in data["employees"]] == ["Engineer 2"]

    def test_departments_and_managers(self, client, hr_headers):
        lead = create_employee(full_name="Lee Lead", personal_email="lee@example.com", job_title="Tech Lead",
                               department="Engineering")
        boss = create_employee(full_name="Bo Boss", personal_email="bo@example.com", department="Data")
        create_employee(full_name="Ivy", personal_email="ivy@example.com", manager_id=boss, department="Data")

        assert client.get("/api/employees/departments", headers=hr_headers).json() == ["Data", "Engineering"]
        managers = client.get("/api/employees/managers", headers=hr_headers).json()
        assert {m["id"] for m in managers} == {lead, boss}

        reports = client.get(f"/api/employees/{boss}/direct-reports", headers=hr_headers).json()
        assert [r["full_name"] for r in reports] == ["Ivy"]


class TestCreateAndUpdate:

    def test_create_queues_event(self, client, hr_headers, outbound):
        resp = client.post(
            "/api/employees",
            json={"full_name": "New Hire", "personal_email": "New@Example.com", "department": "Ops"},
            headers=hr_headers,
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "CANDIDATE"
        assert data["personal_email"] == "new@example.com"

        event, payload, _ = outbound.call_args.args
        assert event == "employee.created"
        assert payload["id"] == data["id"]

    def test_duplicate_email(self, client, hr_headers, employee_id):
        resp = client.post(
            "/api/employees", json={"full_name": "Copy", "personal_email": "ADA@example.com"}, headers=hr_headers
        )
        assert resp.status_code == 409

    def test_unknown_manager(self, client, hr_headers):
        resp = client.post(
            "/api/employees",
            json={"full_name": "X", "personal_email": "x@example.com", "manager_id": 999},
            headers=hr_headers,
        )
        assert resp.status_code == 404

    def test_own_manager_rejected(self, client, hr_headers, employee_id):
        resp = client.put(f"/api/employees/{employee_id}", json={"manager_id": employee_id}, headers=hr_headers)
        assert resp.status_code == 400

    def test_meta_is_merged(self, client, hr_headers, outbound):
        employee_id = create_employee(meta={"team": "Platform", "level": "L3"})
        data = client.put(
            f"/api/employees/{employee_id}", json={"meta": {"level": "L4"}}, headers=hr_headers
        ).json()
        assert data["meta"] == {"team": "Platform", "level": "L4"}
        assert outbound.call_args.args[0] == "employee.updated"

    def test_status_change_audited(self, client, hr_headers, employee_id, outbound):
        client.put(f"/api/employees/{employee_id}", json={"status": "ACTIVE"}, headers=hr_headers)
        with get_db_session() as db:
            actions = db.scalars(select(AuditLog.action)).all()
        assert "EMPLOYEE_STATUS_CHANGED" in actions

    def test_employee_cannot_create(self, client, employee_headers):
        resp = client.post(
            "/api/employees", json={"full_name": "X", "personal_email": "x@example.com"}, headers=employee_headers
        )
        assert resp.status_code == 403


class TestSelfService:

    def test_profile_without_employee(self, client, employee_headers):
        assert client.get("/api/employees/me", headers=employee_headers).status_code == 404

    def test_update_own_contact_details(self, client, employee_id):
        headers = auth_headers(create_user("ada@example.com", UserRole.EMPLOYEE, employee_id=employee_id))

        resp = client.put(
            "/api/employees/me",
            json={"phone": "+44 20 0000", "address_city": "London"},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["address_city"] == "London"

        with get_db_session() as db:
            assert db.get(Employee, employee_id).phone == "+44 20 0000"

    def test_cannot_change_own_title(self, client, employee_id):
        headers = auth_headers(create_user("ada@example.com", UserRole.EMPLOYEE, employee_id=employee_id))
        client.put("/api/employees/me", json={"job_title": "CEO"}, headers=headers)
        with get_db_session() as db:
            assert db.get(Employee, employee_id).job_title is None


class TestRecordAccess:

    @pytest.fixture
    def team(self):
        """A manager with one report, plus someone outside the team."""
        manager = create_employee(full_name="Boss", personal_email="boss@example.com", status=EmployeeStatus.ACTIVE)
        report = create_employee(
            full_name="Report", personal_email="report@example.com", status=EmployeeStatus.ACTIVE,
            manager_id=manager, salary_amount=250000, salary_currency="EUR", contract_type=ContractType.PERMANENT,
        )
        outsider = create_employee(full_name="Outsider", personal_email="out@example.com", status=EmployeeStatus.ACTIVE)
        return manager, report, outsider

    def test_list_is_hr_only(self, client, employee_headers, it_headers, hr_headers):
        assert client.get("/api/employees", headers=employee_headers).status_code == 403
        assert client.get("/api/employees", headers=it_headers).status_code == 403
        assert client.get("/api/employees", headers=hr_headers).status_code == 200

    def test_employee_denied_other_records(self, client, team):
        _, report, outsider = team
        headers = auth_headers(create_user("out@example.com", UserRole.EMPLOYEE, employee_id=outsider))
        resp = client.get(f"/api/employees/{report}", headers=headers)
        assert resp.status_code == 403
        assert "250000" not in resp.text
        assert client.get(f"/api/employees/{report}/direct-reports", headers=headers).status_code == 403

    def test_unlinked_user_denied(self, client, employee_headers, team):
        _, report, _ = team
        assert client.get(f"/api/employees/{report}", headers=employee_headers).status_code == 403

    def test_employee_sees_self_without_compensation(self, client, team):
        _, report, _ = team
        headers = auth_headers(create_user("report@example.com", UserRole.EMPLOYEE, employee_id=report))
        data = client.get(f"/api/employees/{report}", headers=headers).json()
        assert data["full_name"] == "Report"
        assert data["salary_amount"] is None
        assert data["salary_currency"] is None
        assert data["contract_type"] is None

    def test_manager_sees_direct_report(self, client, team):
        manager, report, outsider = team
        headers = auth_headers(create_user("boss@example.com", UserRole.MANAGER, employee_id=manager))
        resp = client.get(f"/api/employees/{report}", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["salary_amount"] is None
        assert client.get(f"/api/employees/{outsider}", headers=headers).status_code == 403

    def test_manager_role_required_for_reports(self, client, team):
        manager, report, _ = team
        headers = auth_headers(create_user("boss@example.com", UserRole.EMPLOYEE, employee_id=manager))
        assert client.get(f"/api/employees/{report}", headers=headers).status_code == 403

    def test_it_admin_sees_record_without_compensation(self, client, it_headers, team):
        _, report, _ = team
        resp = client.get(f"/api/employees/{report}", headers=it_headers)
        assert resp.status_code == 200
        assert resp.json()["salary_amount"] is None

    def test_hr_sees_compensation(self, client, hr_headers, team):
        _, report, _ = team
        data = client.get(f"/api/employees/{report}", headers=hr_headers).json()
        assert data["salary_amount"] == 250000
        assert data["salary_currency"] == "EUR"
        assert data["contract_type"] == "PERMANENT"
