"""Tests for the DeepSeek candidate analysis pipeline."""

from contextlib import contextmanager
from unittest.mock import patch

import pytest

from peopleos.db.postgres import get_db_session
from peopleos.models import JobCandidate
from peopleos.services.candidate_analysis_service import CandidateAnalysisService, validate_analysis
from tests.conftest import create_candidate

SERVICE = "peopleos.services.candidate_analysis_service"

MODEL_OUTPUT = {
    "summary": " Strong backend profile ",
    "strengths": ["Python", "", "SQL"],
    "overall_score": 104.6,
    "score_breakdown": {"technical_fit": "81", "culture_fit": None},
    "confidence": 70,
}


@pytest.fixture
def open_sessions():
    """Track sessions the service holds open."""
    sessions = []

    @contextmanager
    def tracked():
        with get_db_session() as db:
            sessions.append(db)
            try:
                yield db
            finally:
                sessions.remove(db)

    with patch(f"{SERVICE}.get_db_session", tracked):
        yield sessions


@pytest.fixture
def ai():
    with patch(f"{SERVICE}.get_deepseek_client") as factory, \
            patch(f"{SERVICE}.AnalysisDocumentService") as analyses, \
            patch(f"{SERVICE}.FormAnswerService") as answers, \
            patch(f"{SERVICE}.ResumeTextService") as resumes:
        client = factory.return_value
        client.model = "deepseek-chat"
        analyses.return_value.insert.return_value = 3
        answers.return_value.get_by_candidate.return_value = [
            {"answers": [{"question": "Why us?", "answer": "Great team"}]}
        ]
        resumes.return_value.get_by_candidate.return_value = {"resume_text": "Ten years of Python"}
        yield client, analyses.return_value


class TestAnalyze:

    def test_model_called_without_open_session(self, job_id, ai, open_sessions):
        client, analyses = ai
        seen = []

        def analyze_candidate(profile):
            seen.append((len(open_sessions), profile))
            return MODEL_OUTPUT

        client.analyze_candidate.side_effect = analyze_candidate
        candidate_id = create_candidate(job_id)

        result = CandidateAnalysisService().analyze(candidate_id)

        assert result["success"] is True
        assert result["version"] == 3
        open_count, profile = seen[0]
        assert open_count == 0
        assert "Candidate: Grace Hopper" in profile
        assert "Ten years of Python" in profile
        assert "- Why us?: Great team" in profile
        analyses.insert.assert_called_once_with(candidate_id, result["analysis"], model="deepseek-chat")

        with get_db_session() as db:
            assert db.get(JobCandidate, candidate_id).score == 100

    def test_model_failure_leaves_score(self, job_id, ai):
        client, analyses = ai
        client.analyze_candidate.side_effect = RuntimeError("LLM unavailable")
        candidate_id = create_candidate(job_id)

        result = CandidateAnalysisService().analyze(candidate_id)

        assert result["success"] is False
        assert result["error"] == "LLM unavailable"
        analyses.insert.assert_not_called()
        with get_db_session() as db:
            assert db.get(JobCandidate, candidate_id).score is None

    def test_unknown_candidate(self, ai):
        client, _ = ai
        result = CandidateAnalysisService().analyze(999)
        assert result["error"] == "Candidate not found"
        client.analyze_candidate.assert_not_called()


class TestValidateAnalysis:

    def test_scores_clamped_and_lists_cleaned(self):
        data = validate_analysis(MODEL_OUTPUT)
        assert data["summary"] == "Strong backend profile"
        assert data["strengths"] == ["Python", "SQL"]
        assert data["overall_score"] == 100
        assert data["score_breakdown"]["technical_fit"] == 81
        assert data["score_breakdown"]["culture_fit"] == 0
        assert data["concerns"] == []
