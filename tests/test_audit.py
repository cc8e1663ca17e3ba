"""Tests for the audit log."""

import pytest

from peopleos.db.postgres import get_db_session
from peopleos.services.audit_service import log_audit

ACTOR = {"user_id": 7, "email": "hr@example.com", "role": "HR_ADMIN"}


@pytest.fixture
def entries():
    with get_db_session() as db:
        log_audit(db, "EMPLOYEE_CREATED", "employee", 1, actor=ACTOR, metadata={"source": "manual"})
        log_audit(db, "EMPLOYEE_UPDATED", "employee", 1, actor=ACTOR)
        log_audit(db, "OFFER_SENT", "offer", 3)


class TestLogAudit:

    def test_system_action_has_no_actor(self, client, it_headers, entries):
        data = client.get("/api/audit?action=OFFER_SENT", headers=it_headers).json()
        assert len(data) == 1
        assert data[0]["actor_type"] == "system"
        assert data[0]["actor_email"] is None
        assert data[0]["resource_id"] == "3"


class TestListAuditLogs:

    def test_newest_first(self, client, hr_headers, entries):
        data = client.get("/api/audit", headers=hr_headers).json()
        assert [e["action"] for e in data] == ["OFFER_SENT", "EMPLOYEE_UPDATED", "EMPLOYEE_CREATED"]

    def test_filter_by_resource(self, client, hr_headers, entries):
        data = client.get("/api/audit?resource_type=employee&resource_id=1", headers=hr_headers).json()
        assert len(data) == 2
        created = data[-1]
        assert created["actor_id"] == 7
        assert created["metadata"] == {"source": "manual"}

    def test_paging(self, client, hr_headers, entries):
        data = client.get("/api/audit?limit=1&offset=1", headers=hr_headers).json()
        assert [e["action"] for e in data] == ["EMPLOYEE_UPDATED"]

    def test_limit_bounds(self, client, hr_headers):
        assert client.get("/api/audit?limit=0", headers=hr_headers).status_code == 422

    def test_requires_admin(self, client, employee_headers):
        assert client.get("/api/audit", headers=employee_headers).status_code == 403
