"""Tests for stage email templates and the stage email background task."""

from unittest.mock import patch

from peopleos.db.postgres import get_db_session
from peopleos.models import StageEmailTemplate
from peopleos.models.enums import CandidateStage
from peopleos.services.stage_email_service import send_stage_email
from tests.conftest import create_candidate


def add_template(stage: CandidateStage, **fields) -> int:
    values = {
        "stage": stage,
        "subject": "{candidate_name}: {stage}",
        "body": "Hi {candidate_name},\nYou moved to {stage} for {job_title}.",
        "is_active": True,
    }
    values.update(fields)
    with get_db_session() as db:
        template = StageEmailTemplate(**values)
        db.add(template)
        db.flush()
        return template.id


class TestStageEmailRoutes:

    def test_create_and_list_in_stage_order(self, client, hr_headers):
        for stage in ("PANEL", "APPLIED"):
            resp = client.post(
                "/api/stage-emails",
                json={"stage": stage, "subject": "Update", "body": "Hello {candidate_name}"},
                headers=hr_headers,
            )
            assert resp.status_code == 201

        stages = [t["stage"] for t in client.get("/api/stage-emails", headers=hr_headers).json()]
        assert stages == ["APPLIED", "PANEL"]

    def test_one_template_per_stage(self, client, hr_headers):
        add_template(CandidateStage.OFFER)
        resp = client.post(
            "/api/stage-emails",
            json={"stage": "OFFER", "subject": "Again", "body": "Body"},
            headers=hr_headers,
        )
        assert resp.status_code == 409

    def test_update_and_delete(self, client, hr_headers):
        template_id = add_template(CandidateStage.TRIAL)

        resp = client.put(f"/api/stage-emails/{template_id}", json={"is_active": False}, headers=hr_headers)
        assert resp.json()["is_active"] is False

        assert client.delete(f"/api/stage-emails/{template_id}", headers=hr_headers).status_code == 200
        assert client.delete(f"/api/stage-emails/{template_id}", headers=hr_headers).status_code == 404

    def test_requires_hr(self, client, employee_headers):
        assert client.get("/api/stage-emails", headers=employee_headers).status_code == 403


class TestSendStageEmail:

    def test_renders_and_sends(self, job_id):
        add_template(CandidateStage.HR_SCREEN)
        candidate_id = create_candidate(job_id)

        with patch("peopleos.services.stage_email_service.send_email", return_value=True) as send:
            assert send_stage_email(candidate_id, CandidateStage.HR_SCREEN) is True

        to, subject, body = send.call_args.args
        assert to == "grace@example.com"
        assert subject == "Grace Hopper: People Chat"
        assert "Backend Engineer" in body
        assert "<br>" in body

    def test_inactive_template_sends_nothing(self, job_id):
        add_template(CandidateStage.HR_SCREEN, is_active=False)
        candidate_id = create_candidate(job_id)

        with patch("peopleos.services.stage_email_service.send_email") as send:
            assert send_stage_email(candidate_id, CandidateStage.HR_SCREEN) is False
        send.assert_not_called()

    def test_missing_candidate(self):
        add_template(CandidateStage.PANEL)
        with patch("peopleos.services.stage_email_service.send_email") as send:
            assert send_stage_email(999, CandidateStage.PANEL) is False
        send.assert_not_called()
