"""Tests for assessment templates, invites and results."""

from datetime import timedelta
from unittest.mock import patch

import pytest

from peopleos.db.postgres import get_db_session
from peopleos.models import CandidateAssessment, utcnow
from tests.conftest import create_candidate

ROUTES = "peopleos.api.routes.assessment_routes"


@pytest.fixture
def template(client, hr_headers):
    resp = client.post(
        "/api/assessments/templates",
        json={"name": "Python coding test", "type": "CODING_TEST", "duration_minutes": 90},
        headers=hr_headers,
    )
    assert resp.status_code == 201
    return resp.json()


@pytest.fixture
def assessment(client, hr_headers, template, job_id):
    candidate_id = create_candidate(job_id)
    resp = client.post(
        "/api/assessments",
        json={"candidate_id": candidate_id, "template_id": template["id"], "expires_in_days": 5},
        headers=hr_headers,
    )
    assert resp.status_code == 201
    return resp.json()


class TestTemplates:

    def test_display_name_and_sort_order(self, client, hr_headers, template):
        assert template["type_display_name"]
        assert template["sort_order"] == 1

        second = client.post(
            "/api/assessments/templates",
            json={"name": "Big Five", "type": "PERSONALITY_BIG5"},
            headers=hr_headers,
        ).json()
        assert second["sort_order"] == 2

    def test_filter_by_type(self, client, hr_headers, template):
        client.post(
            "/api/assessments/templates",
            json={"name": "Trial week", "type": "WORK_TRIAL", "work_trial": {"duration_days": 5}},
            headers=hr_headers,
        )
        names = [t["name"] for t in client.get(
            "/api/assessments/templates?type=WORK_TRIAL", headers=hr_headers
        ).json()]
        assert names == ["Trial week"]

    def test_soft_delete(self, client, hr_headers, template):
        client.delete(f"/api/assessments/templates/{template['id']}", headers=hr_headers)
        assert client.get("/api/assessments/templates", headers=hr_headers).json() == []
        inactive = client.get("/api/assessments/templates?is_active=false", headers=hr_headers).json()
        assert [t["id"] for t in inactive] == [template["id"]]


class TestCandidateAssessments:

    def test_create(self, assessment):
        assert assessment["status"] == "NOT_STARTED"
        assert assessment["candidate_name"] == "Grace Hopper"
        assert assessment["type"] == "CODING_TEST"
        assert assessment["expires_at"] is not None

    def test_duplicate_assignment(self, client, hr_headers, assessment):
        resp = client.post(
            "/api/assessments",
            json={"candidate_id": assessment["candidate_id"], "template_id": assessment["template_id"]},
            headers=hr_headers,
        )
        assert resp.status_code == 409

    def test_counts(self, client, hr_headers, assessment):
        counts = client.get("/api/assessments/counts", headers=hr_headers).json()
        assert counts["all"] == 1
        assert counts["CODING_TEST"] == 1
        assert counts["WORK_TRIAL"] == 0
        assert counts["pending"] == 1
        assert counts["status_NOT_STARTED"] == 1

    def test_search(self, client, hr_headers, assessment):
        assert len(client.get("/api/assessments?search=grace", headers=hr_headers).json()) == 1
        assert client.get("/api/assessments?search=nobody", headers=hr_headers).json() == []


class TestInvites:

    def test_invite_emails_candidate(self, client, hr_headers, assessment):
        with patch(f"{ROUTES}.send_email", return_value=True) as send:
            resp = client.post(f"/api/assessments/{assessment['id']}/invite", headers=hr_headers)

        data = resp.json()
        assert data["status"] == "INVITED"
        assert data["invite_url"].startswith("https://people.example.com/assessment/")

        to, subject, body = send.call_args.args
        assert to == "grace@example.com"
        assert subject == "Your Python coding test for Backend Engineer"
        assert data["invite_url"] in body

    def test_invite_without_email(self, client, hr_headers, assessment):
        with patch(f"{ROUTES}.send_email") as send:
            client.post(
                f"/api/assessments/{assessment['id']}/invite", json={"send_email": False}, headers=hr_headers
            )
        send.assert_not_called()

    def test_external_template_link(self, client, hr_headers, job_id):
        template = client.post(
            "/api/assessments/templates",
            json={"name": "Kandi", "type": "KANDI_IO", "external_url": "https://kandi.example.com/t/1"},
            headers=hr_headers,
        ).json()
        candidate_id = create_candidate(job_id, email="k@example.com")
        created = client.post(
            "/api/assessments", json={"candidate_id": candidate_id, "template_id": template["id"]}, headers=hr_headers
        ).json()

        link = client.get(f"/api/assessments/{created['id']}/link", headers=hr_headers).json()
        assert link["url"] == "https://kandi.example.com/t/1"
        assert link["token"]

    def test_public_view_starts_assessment(self, client, hr_headers, assessment):
        with patch(f"{ROUTES}.send_email", return_value=True):
            client.post(f"/api/assessments/{assessment['id']}/invite", headers=hr_headers)
        with get_db_session() as db:
            token = db.get(CandidateAssessment, assessment["id"]).invite_token

        data = client.get(f"/api/assessments/public/{token}").json()
        assert data["status"] == "IN_PROGRESS"
        assert data["started_at"] is not None

    def test_public_view_expired(self, client, assessment):
        with get_db_session() as db:
            record = db.get(CandidateAssessment, assessment["id"])
            record.expires_at = utcnow() - timedelta(days=1)
            token = record.invite_token

        assert client.get(f"/api/assessments/public/{token}").status_code == 401

    def test_unknown_token(self, client):
        assert client.get("/api/assessments/public/nope").status_code == 404


class TestResults:

    def test_record_result(self, client, hr_headers, assessment):
        resp = client.post(
            f"/api/assessments/{assessment['id']}/result",
            json={"score": 82, "recommendation": "HIRE", "summary": "Solid"},
            headers=hr_headers,
        )
        data = resp.json()
        assert data["status"] == "COMPLETED"
        assert data["score"] == 82
        assert data["completed_at"] is not None
        assert data["evaluated_by_id"] is not None

    def test_score_out_of_range(self, client, hr_headers, assessment):
        resp = client.post(f"/api/assessments/{assessment['id']}/result", json={"score": 120}, headers=hr_headers)
        assert resp.status_code == 422
