"""Tests for jobs, the job pipeline and the public careers page."""

from peopleos.db.postgres import get_db_session
from peopleos.models import InterestFormTemplate, JobCandidate
from peopleos.models.enums import CandidateStage, JobStatus
from peopleos.services.pipeline import stage_breakdown
from tests.conftest import create_candidate, create_employee, create_job


def _create_default_flow(client, headers, stages=("Applied", "Screen", "Offer")):
    resp = client.post(
        "/api/hiring-flows",
        json={"name": "Default", "stages": list(stages), "is_default": True},
        headers=headers,
    )
    return resp.json()


class TestCreateJob:

    def test_uses_default_flow_latest_version(self, client, hr_headers):
        flow = _create_default_flow(client, hr_headers)
        resp = client.post("/api/jobs", json={"title": "Data Engineer"}, headers=hr_headers)
        assert resp.status_code == 201
        data = resp.json()
        assert data["hiring_flow_id"] == flow["id"]
        assert data["hiring_flow_stages"] == ["Applied", "Screen", "Offer"]
        assert data["status"] == "DRAFT"

    def test_requires_interest_form_when_forms_exist(self, client, hr_headers):
        with get_db_session() as db:
            db.add(InterestFormTemplate(name="General", is_active=True))

        resp = client.post("/api/jobs", json={"title": "Data Engineer"}, headers=hr_headers)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Select an interest form for this job."

    def test_unknown_hiring_manager(self, client, hr_headers):
        resp = client.post("/api/jobs", json={"title": "Data Engineer", "hiring_manager_id": 999}, headers=hr_headers)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Hiring manager not found"

    def test_followers(self, client, hr_headers):
        follower = create_employee()
        resp = client.post(
            "/api/jobs", json={"title": "Data Engineer", "follower_ids": [follower]}, headers=hr_headers
        )
        assert resp.json()["follower_ids"] == [follower]


class TestListJobs:

    def test_stats_and_breakdown(self, client, hr_headers):
        flow = _create_default_flow(client, hr_headers)
        job_id = create_job(hiring_flow_snapshot_id=flow["snapshots"][0]["id"])
        create_candidate(job_id, email="a@example.com", score=80)
        create_candidate(job_id, email="b@example.com", score=61, stage=CandidateStage.SHORTLISTED)
        create_candidate(job_id, email="c@example.com", stage=CandidateStage.HR_SCREEN)

        jobs = client.get("/api/jobs", headers=hr_headers).json()
        assert len(jobs) == 1
        stats = jobs[0]["stats"]
        assert stats["applicants"] == 3
        assert stats["in_review"] == 2
        assert stats["interviewing"] == 1
        assert stats["avg_score"] == 70
        assert stats["max_score"] == 80
        assert jobs[0]["stage_breakdown"] == {"Applied": 1, "Screen": 1, "Offer": 1}

    def test_counts(self, client, hr_headers):
        create_job(status=JobStatus.ACTIVE)
        create_job(status=JobStatus.DRAFT)
        create_job(status=JobStatus.DRAFT)
        counts = client.get("/api/jobs/counts", headers=hr_headers).json()
        assert counts == {"all": 3, "active": 1, "draft": 2, "paused": 0, "hired": 0}


class TestJobLifecycle:

    def test_pause_and_mark_hired(self, client, hr_headers, job_id):
        assert client.post(f"/api/jobs/{job_id}/pause", headers=hr_headers).json()["status"] == "PAUSED"
        assert client.post(f"/api/jobs/{job_id}/mark-hired", headers=hr_headers).json()["status"] == "HIRED"

    def test_delete_removes_candidates(self, client, hr_headers, job_id):
        candidate_id = create_candidate(job_id)
        assert client.delete(f"/api/jobs/{job_id}", headers=hr_headers).status_code == 200
        assert client.get(f"/api/jobs/{job_id}", headers=hr_headers).status_code == 404
        with get_db_session() as db:
            assert db.get(JobCandidate, candidate_id) is None

    def test_flow_outdated_flag(self, client, hr_headers):
        flow = _create_default_flow(client, hr_headers)
        job_id = client.post("/api/jobs", json={"title": "QA"}, headers=hr_headers).json()["id"]
        client.put(f"/api/hiring-flows/{flow['id']}", json={"stages": ["Applied", "Hired"]}, headers=hr_headers)

        detail = client.get(f"/api/jobs/{job_id}", headers=hr_headers).json()
        assert detail["flow_outdated"] is True
        assert detail["current_version"] == 1
        assert detail["latest_version"] == 2


class TestJobPipeline:

    def test_add_candidate_clears_unrelated_channels(self, client, hr_headers, job_id):
        resp = client.post(
            f"/api/jobs/{job_id}/candidates",
            json={
                "name": "Linus",
                "email": "Linus@Example.com",
                "source": "OUTBOUND",
                "outbound_channel": "GITHUB",
                "inbound_channel": "YC",
            },
            headers=hr_headers,
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["email"] == "linus@example.com"
        assert data["outbound_channel"] == "GITHUB"
        assert data["inbound_channel"] is None
        assert data["added_by_id"] is not None

    def test_candidates_sorted_by_score(self, client, hr_headers, job_id):
        create_candidate(job_id, email="low@example.com", score=10)
        create_candidate(job_id, email="none@example.com")
        create_candidate(job_id, email="high@example.com", score=90)

        data = client.get(f"/api/jobs/{job_id}/candidates", headers=hr_headers).json()
        assert [c["email"] for c in data["candidates"]] == [
            "high@example.com", "low@example.com", "none@example.com"
        ]
        assert data["counts"]["all"] == 3
        assert data["counts"]["applied"] == 3


class TestPublicJob:

    def test_private_job_hidden_unless_preview(self, client, job_id):
        assert client.get(f"/api/jobs/public/{job_id}").status_code == 404
        assert client.get(f"/api/jobs/public/{job_id}?preview=true").status_code == 200

    def test_apply(self, client):
        job_id = create_job(is_public=True)
        body = {"name": "Margaret", "email": "margaret@example.com", "linkedin_url": "linkedin.com/in/mh"}
        resp = client.post(f"/api/jobs/public/{job_id}/apply", json=body)
        assert resp.status_code == 201

        with get_db_session() as db:
            candidate = db.get(JobCandidate, resp.json()["candidate_id"])
            assert candidate.source.value == "INBOUND"
            assert candidate.inbound_channel.value == "PEOPLEOS"
            assert candidate.linkedin_url == "https://linkedin.com/in/mh"

        again = client.post(f"/api/jobs/public/{job_id}/apply", json={**body, "email": "MARGARET@example.com"})
        assert again.status_code == 409

    def test_apply_to_paused_job(self, client):
        job_id = create_job(is_public=True, status=JobStatus.PAUSED)
        resp = client.post(f"/api/jobs/public/{job_id}/apply", json={"name": "X", "email": "x@example.com"})
        assert resp.status_code == 404


class TestStageBreakdown:

    def test_flow_positions_map_to_pipeline_order(self):
        counts = {CandidateStage.APPLIED: 4, CandidateStage.SHORTLISTED: 2}
        assert stage_breakdown(["New", "Shortlist", "Chat"], counts) == {"New": 4, "Shortlist": 2, "Chat": 0}
