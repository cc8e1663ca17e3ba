"""Tests for offboarding workflows."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import select

from peopleos.db.postgres import get_db_session
from peopleos.models import App, AppAccount, Employee, OffboardingWorkflow, utcnow
from peopleos.models.enums import AppAccountStatus, AppType, EmployeeStatus, UserRole, WorkflowStatus
from peopleos.services.offboarding_service import (
    ensure_default_templates,
    run_workflow_in_background,
    start_offboarding,
)
from tests.conftest import create_employee, create_user

ROUTES = "peopleos.api.routes.offboarding_routes"


@pytest.fixture(autouse=True)
def outbound():
    with patch(f"{ROUTES}.send_outbound_event") as send, \
            patch("peopleos.services.offboarding_service.send_outbound_event"):
        yield send


@pytest.fixture
def active_employee():
    return create_employee(status=EmployeeStatus.ACTIVE)


def add_account(employee_id: int, connected: bool = False) -> int:
    with get_db_session() as db:
        app = App(name="Ops Hook", type=AppType.WEBHOOK, is_connected=connected, config={})
        db.add(app)
        db.flush()
        db.add(AppAccount(employee_id=employee_id, app_id=app.id, status=AppAccountStatus.ACTIVE))
        return app.id


def start(client, hr_headers, **payload):
    resp = client.post("/api/offboarding/start", json=payload, headers=hr_headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestStartOffboarding:

    def test_end_date_required_unless_immediate(self, client, hr_headers, active_employee):
        resp = client.post("/api/offboarding/start", json={"employee_id": active_employee}, headers=hr_headers)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "End date is required unless offboarding is immediate"

    def test_scheduled_workflow(self, client, hr_headers, active_employee, outbound):
        with get_db_session() as db:
            ensure_default_templates(db)

        workflow = start(client, hr_headers, employee_id=active_employee, end_date="2031-05-30T17:00:00",
                         reason="Relocation")
        assert workflow["status"] == "PENDING"
        assert workflow["started_at"] is None
        assert [t["title"] for t in workflow["tasks"]] == [
            "Collect company equipment",
            "Revoke building/office access",
            "Transfer files and documents",
            "Exit interview",
            "Handover Docs",
        ]
        assert outbound.call_args.args[0] == "offboarding.started"

        with get_db_session() as db:
            employee = db.get(Employee, active_employee)
            assert employee.status == EmployeeStatus.OFFBOARDING
            assert employee.end_date.year == 2031

    def test_active_accounts_get_deprovision_tasks(self, client, hr_headers, active_employee):
        add_account(active_employee)
        workflow = start(client, hr_headers, employee_id=active_employee, is_immediate=True, extra_tasks=[])
        assert [t["title"] for t in workflow["tasks"]] == ["Deprovision Ops Hook account"]

    def test_immediate_runs_in_background(self, client, hr_headers, active_employee):
        with patch(f"{ROUTES}.run_workflow_in_background") as runner:
            workflow = start(client, hr_headers, employee_id=active_employee, is_immediate=True)
        assert workflow["status"] == "IN_PROGRESS"
        assert runner.call_args.args[0] == workflow["id"]

    def test_exited_employee(self, client, hr_headers):
        employee_id = create_employee(status=EmployeeStatus.EXITED)
        resp = client.post(
            "/api/offboarding/start", json={"employee_id": employee_id, "is_immediate": True}, headers=hr_headers
        )
        assert resp.status_code == 400

    def test_only_one_active_workflow(self, client, hr_headers, active_employee):
        start(client, hr_headers, employee_id=active_employee, end_date="2031-05-30T17:00:00")
        resp = client.post(
            "/api/offboarding/start", json={"employee_id": active_employee, "is_immediate": True}, headers=hr_headers
        )
        assert resp.status_code == 400


class TestTasksAndCompletion:

    def test_manual_tasks_complete_workflow(self, client, hr_headers, active_employee, outbound):
        workflow = start(client, hr_headers, employee_id=active_employee, end_date="2031-05-30T17:00:00",
                         extra_tasks=["Return badge", "Final payroll"])
        first, second = workflow["tasks"]

        client.post(f"/api/offboarding/tasks/{first['id']}/complete", json={"notes": "Done"}, headers=hr_headers)
        client.post(f"/api/offboarding/tasks/{second['id']}/skip", json={}, headers=hr_headers)

        data = client.get(f"/api/offboarding/workflows/{workflow['id']}", headers=hr_headers).json()
        assert data["status"] == "COMPLETED"
        assert outbound.call_args.args[0] == "offboarding.completed"
        with get_db_session() as db:
            assert db.get(Employee, active_employee).status == EmployeeStatus.EXITED

    def test_run_rejects_manual_task(self, client, hr_headers, active_employee):
        task = start(client, hr_headers, employee_id=active_employee, is_immediate=True)["tasks"][0]
        resp = client.post(f"/api/offboarding/tasks/{task['id']}/run", headers=hr_headers)
        assert resp.status_code == 400

    def test_run_deprovisions_account(self, client, hr_headers, active_employee):
        add_account(active_employee)
        with patch(f"{ROUTES}.run_workflow_in_background"):
            workflow = start(client, hr_headers, employee_id=active_employee, is_immediate=True, extra_tasks=[])

        task = workflow["tasks"][0]
        data = client.post(f"/api/offboarding/tasks/{task['id']}/run", headers=hr_headers).json()
        assert data["status"] == "SUCCESS"

        with get_db_session() as db:
            account = db.scalars(select(AppAccount)).one()
            assert account.status == AppAccountStatus.DISABLED
            assert db.get(OffboardingWorkflow, workflow["id"]).status == WorkflowStatus.COMPLETED

    def test_background_run_completes_and_announces(self, active_employee):
        add_account(active_employee)
        user_id = create_user("hr@example.com", UserRole.HR_ADMIN)
        actor = {"user_id": user_id, "email": "hr@example.com", "role": UserRole.HR_ADMIN.value}
        with get_db_session() as db:
            employee = db.get(Employee, active_employee)
            workflow_id = start_offboarding(db, employee, actor, end_date=None, is_immediate=True, extra_tasks=[]).id

        with patch("peopleos.services.offboarding_service.send_outbound_event") as send:
            run_workflow_in_background(workflow_id, actor)

        assert send.call_args.args[0] == "offboarding.completed"
        with get_db_session() as db:
            assert db.get(OffboardingWorkflow, workflow_id).status == WorkflowStatus.COMPLETED
            assert db.get(Employee, active_employee).status == EmployeeStatus.EXITED


class TestCancelAndSchedule:

    def test_cancel_restores_employee(self, client, hr_headers, active_employee):
        workflow = start(client, hr_headers, employee_id=active_employee, end_date="2031-05-30T17:00:00")
        data = client.post(f"/api/offboarding/workflows/{workflow['id']}/cancel", headers=hr_headers).json()
        assert data["status"] == "CANCELLED"
        with get_db_session() as db:
            employee = db.get(Employee, active_employee)
            assert employee.status == EmployeeStatus.ACTIVE
            assert employee.end_date is None

    def test_cannot_cancel_completed(self, client, hr_headers, active_employee):
        workflow = start(client, hr_headers, employee_id=active_employee, end_date="2031-05-30T17:00:00")
        with get_db_session() as db:
            db.get(OffboardingWorkflow, workflow["id"]).status = WorkflowStatus.COMPLETED
        resp = client.post(f"/api/offboarding/workflows/{workflow['id']}/cancel", headers=hr_headers)
        assert resp.status_code == 400

    def test_cancelled_workflow_tasks_locked(self, client, hr_headers, active_employee):
        workflow = start(client, hr_headers, employee_id=active_employee, end_date="2031-05-30T17:00:00")
        task = workflow["tasks"][0]
        client.post(f"/api/offboarding/workflows/{workflow['id']}/cancel", headers=hr_headers)

        resp = client.post(f"/api/offboarding/tasks/{task['id']}/complete", json={}, headers=hr_headers)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "This workflow is already closed"

    def test_run_scheduled(self, client, it_headers, hr_headers, active_employee):
        later = create_employee(full_name="Later", personal_email="later@example.com",
                                status=EmployeeStatus.ACTIVE)
        due = start(client, hr_headers, employee_id=active_employee,
                    end_date=(utcnow() - timedelta(hours=1)).isoformat())
        start(client, hr_headers, employee_id=later, end_date=(utcnow() + timedelta(days=3)).isoformat())

        scheduled = client.get("/api/offboarding/scheduled-today", headers=it_headers).json()
        assert [w["id"] for w in scheduled] == [due["id"]]

        ran = client.post("/api/offboarding/run-scheduled", headers=it_headers).json()
        assert [w["status"] for w in ran] == ["IN_PROGRESS"]
        assert ran[0]["started_at"] is not None
        assert client.get("/api/offboarding/scheduled-today", headers=it_headers).json() == []
