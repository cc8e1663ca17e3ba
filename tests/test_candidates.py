"""Tests for the cross-job candidate list, stage changes and AI analysis."""

from unittest.mock import MagicMock, patch

import pytest

from peopleos.db.postgres import get_db_session
from peopleos.models import Employee, Job, JobCandidate
from peopleos.models.enums import CandidateStage, DecisionStatus, JobStatus
from tests.conftest import create_candidate, create_job

ROUTES = "peopleos.api.routes.candidate_routes"


@pytest.fixture
def followups():
    """Capture the background work queued by stage changes."""
    with patch(f"{ROUTES}.send_stage_email") as stage_email, patch(f"{ROUTES}.run_hire_flow") as hire_flow:
        yield stage_email, hire_flow


class TestListCandidates:

    def test_closed_and_archived_hidden(self, client, hr_headers, job_id):
        create_candidate(job_id, email="open@example.com")
        create_candidate(job_id, email="rejected@example.com", stage=CandidateStage.REJECTED)
        create_candidate(job_id, email="gone@example.com", stage=CandidateStage.WITHDRAWN)
        create_candidate(job_id, email="old@example.com", stage=CandidateStage.ARCHIVED)

        data = client.get("/api/candidates", headers=hr_headers).json()
        assert [c["email"] for c in data["candidates"]] == ["open@example.com"]

        data = client.get("/api/candidates?include_archived=true", headers=hr_headers).json()
        assert {c["email"] for c in data["candidates"]} == {"open@example.com", "old@example.com"}

    def test_stage_counts_ignore_stage_filter(self, client, hr_headers, job_id):
        create_candidate(job_id, email="a@example.com")
        create_candidate(job_id, email="b@example.com", stage=CandidateStage.TECHNICAL)

        data = client.get("/api/candidates?stage=TECHNICAL", headers=hr_headers).json()
        assert data["total"] == 1
        counts = {c["stage"]: c["count"] for c in data["by_stage_counts"]}
        assert counts == {"APPLIED": 1, "TECHNICAL": 1}

    def test_search_and_job_title(self, client, hr_headers, job_id):
        create_candidate(job_id, name="Barbara Liskov", email="barbara@example.com", current_company="MIT")
        create_candidate(job_id, name="Someone Else", email="else@example.com")

        data = client.get("/api/candidates?search=mit", headers=hr_headers).json()
        assert [c["name"] for c in data["candidates"]] == ["Barbara Liskov"]
        assert data["candidates"][0]["job_title"] == "Backend Engineer"

    def test_sort_by_score_ascending(self, client, hr_headers, job_id):
        create_candidate(job_id, email="b@example.com", score=50)
        create_candidate(job_id, email="a@example.com", score=20)
        data = client.get("/api/candidates?sort_by=score&sort_order=asc", headers=hr_headers).json()
        assert [c["score"] for c in data["candidates"]] == [20, 50]


class TestCreateCandidate:

    def test_creates_general_application_job_and_employee(self, client, hr_headers):
        resp = client.post(
            "/api/candidates",
            json={"name": "Alan Turing", "email": "Alan@Example.com", "source": "linkedin"},
            headers=hr_headers,
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["job_title"] == "General Application"
        assert data["source"] == "OUTBOUND"
        assert data["outbound_channel"] == "LINKEDIN"

        with get_db_session() as db:
            employee = db.get(Employee, data["employee_id"])
            assert employee.personal_email == "alan@example.com"
            assert employee.job_title == "Candidate"
            assert employee.status.value == "CANDIDATE"

    def test_uses_newest_active_job(self, client, hr_headers):
        create_job(title="Old")
        newest = create_job(title="New")
        create_job(title="Draft", status=JobStatus.DRAFT)

        resp = client.post("/api/candidates", json={"name": "A", "email": "a@example.com"}, headers=hr_headers)
        assert resp.json()["job_id"] == newest

    def test_duplicate_email(self, client, hr_headers, job_id):
        create_candidate(job_id, email="dup@example.com")
        resp = client.post("/api/candidates", json={"name": "Dup", "email": "DUP@example.com"}, headers=hr_headers)
        assert resp.status_code == 409


class TestStageChanges:

    def test_stage_change_queues_email(self, client, hr_headers, job_id, followups):
        stage_email, hire_flow = followups
        candidate_id = create_candidate(job_id)

        resp = client.put(f"/api/candidates/{candidate_id}", json={"stage": "HR_SCREEN"}, headers=hr_headers)
        assert resp.status_code == 200
        stage_email.assert_called_once_with(candidate_id, CandidateStage.HR_SCREEN)
        hire_flow.assert_not_called()

    def test_offer_starts_hire_flow(self, client, hr_headers, job_id, followups):
        stage_email, hire_flow = followups
        candidate_id = create_candidate(job_id)

        client.put(f"/api/candidates/{candidate_id}", json={"stage": "OFFER"}, headers=hr_headers)
        hire_flow.assert_called_once_with(candidate_id)

    def test_other_updates_queue_nothing(self, client, hr_headers, job_id, followups):
        stage_email, _ = followups
        candidate_id = create_candidate(job_id)
        client.put(f"/api/candidates/{candidate_id}", json={"notes": "Strong"}, headers=hr_headers)
        stage_email.assert_not_called()

    def test_decision_records_who_and_when(self, client, hr_headers, job_id, followups):
        candidate_id = create_candidate(job_id)
        data = client.put(
            f"/api/candidates/{candidate_id}", json={"decision_status": "HIRE"}, headers=hr_headers
        ).json()
        assert data["decision_status"] == DecisionStatus.HIRE.value
        assert data["decision_at"] is not None
        assert data["decision_by_id"] is not None

    def test_bulk_stage_only_emails_moved_candidates(self, client, hr_headers, job_id, followups):
        stage_email, _ = followups
        moving = create_candidate(job_id, email="a@example.com")
        already = create_candidate(job_id, email="b@example.com", stage=CandidateStage.PANEL)

        resp = client.post(
            "/api/candidates/bulk-stage",
            json={"candidate_ids": [moving, already], "stage": "PANEL"},
            headers=hr_headers,
        )
        assert resp.json()["message"] == "Updated 2 candidate(s)"
        stage_email.assert_called_once_with(moving, CandidateStage.PANEL)

    def test_delete(self, client, hr_headers, job_id):
        candidate_id = create_candidate(job_id)
        assert client.delete(f"/api/candidates/{candidate_id}", headers=hr_headers).status_code == 200
        with get_db_session() as db:
            assert db.get(JobCandidate, candidate_id) is None
            assert db.get(Job, job_id) is not None


class TestResumeAndAnalysis:

    def test_upload_text_resume(self, client, hr_headers, job_id):
        candidate_id = create_candidate(job_id)
        with patch(f"{ROUTES}.ResumeTextService") as service:
            service.return_value.insert.return_value = "doc-1"
            resp = client.post(
                f"/api/candidates/{candidate_id}/resume",
                files={"file": ("cv.txt", b"Python, SQL and ten years of backend work", "text/plain")},
                headers=hr_headers,
            )
        assert resp.status_code == 201
        assert resp.json()["document_id"] == "doc-1"
        service.return_value.insert.assert_called_once()
        assert service.return_value.insert.call_args.args[0] == candidate_id

    def test_unsupported_resume_type(self, client, hr_headers, job_id):
        candidate_id = create_candidate(job_id)
        resp = client.post(
            f"/api/candidates/{candidate_id}/resume",
            files={"file": ("cv.exe", b"MZ", "application/octet-stream")},
            headers=hr_headers,
        )
        assert resp.status_code == 400

    def test_analysis_failure_is_502(self, client, hr_headers, job_id):
        candidate_id = create_candidate(job_id)
        service = MagicMock()
        service.analyze.return_value = {
            "success": False, "candidate_id": candidate_id, "version": None, "analysis": None,
            "error": "LLM unavailable",
        }
        with patch(f"{ROUTES}.CandidateAnalysisService", return_value=service):
            resp = client.post(f"/api/candidates/{candidate_id}/analyze", headers=hr_headers)
        assert resp.status_code == 502
        assert "LLM unavailable" in resp.json()["detail"]

    def test_analysis_success(self, client, hr_headers, job_id):
        candidate_id = create_candidate(job_id)
        service = MagicMock()
        service.analyze.return_value = {
            "success": True, "candidate_id": candidate_id, "version": 2,
            "analysis": {"overall_score": 77}, "error": None,
        }
        with patch(f"{ROUTES}.CandidateAnalysisService", return_value=service):
            resp = client.post(f"/api/candidates/{candidate_id}/analyze", headers=hr_headers)
        assert resp.status_code == 200
        assert resp.json()["version"] == 2
