"""
Candidate Analysis Service - AI review of a candidate using DeepSeek.

PIPELINE:
1. Collect the candidate profile, job, resume text and interest form answers
2. Ask DeepSeek for a structured analysis
3. Validate the JSON output
4. Store it as a new version in MongoDB
5. Copy overall_score onto the candidate row

The relational score is the only thing AI writes back; the analysis
itself lives in MongoDB.
"""

import logging
from typing import Any, Dict, List

from peopleos.db.postgres import get_db_session
from peopleos.models import JobCandidate
from peopleos.services.deepseek_client import get_deepseek_client, DeepSeekClient
from peopleos.services.mongo_service import (
    AnalysisDocumentService,
    FormAnswerService,
    ResumeTextService,
)

logger = logging.getLogger(__name__)

SCORE_BREAKDOWN_KEYS = ("technical_fit", "culture_fit", "experience_match", "communication_skills")


# ============================================================
# JSON VALIDATION HELPERS
# ============================================================

def _clamp_score(value: Any) -> int:
    try:
        return max(0, min(100, int(round(float(value)))))
    except (ValueError, TypeError):
        return 0


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if v]


def validate_analysis(data: dict) -> dict:
    """
    Validate and sanitize the model output.
    Ensures every field exists with the right type and scores sit in 0-100.
    """
    breakdown = data.get("score_breakdown") or {}
    if not isinstance(breakdown, dict):
        breakdown = {}

    return {
        "summary": str(data.get("summary") or "").strip(),
        "strengths": _string_list(data.get("strengths")),
        "concerns": _string_list(data.get("concerns")),
        "recommendations": _string_list(data.get("recommendations")),
        "overall_score": _clamp_score(data.get("overall_score")),
        "score_breakdown": {key: _clamp_score(breakdown.get(key)) for key in SCORE_BREAKDOWN_KEYS},
        "confidence": _clamp_score(data.get("confidence")),
        "must_validate_points": _string_list(data.get("must_validate_points")),
        "next_stage_questions": _string_list(data.get("next_stage_questions")),
    }


def build_candidate_profile(candidate: JobCandidate, answers: List[dict], resume_text: str = None) -> str:
    """Flatten everything we know about the candidate into prompt text."""
    job = candidate.job
    lines = [
        f"Job title: {job.title}",
        f"Department: {job.department or 'n/a'}",
    ]
    if job.description:
        lines.append(f"Job description: {job.description[:3000]}")

    lines += [
        "",
        f"Candidate: {candidate.name}",
        f"Current role: {candidate.current_role or 'n/a'} at {candidate.current_company or 'n/a'}",
        f"Location: {candidate.location or 'n/a'}",
        f"Notice period: {candidate.notice_period or 'n/a'}",
    ]
    if candidate.linkedin_url:
        lines.append(f"LinkedIn: {candidate.linkedin_url}")
    if candidate.cover_letter:
        lines.append(f"Cover letter: {candidate.cover_letter[:3000]}")
    if resume_text:
        lines.append(f"Resume: {resume_text[:6000]}")

    if answers:
        lines.append("")
        lines.append("Interest form answers:")
        for submission in answers:
            for answer in submission.get("answers", []):
                lines.append(f"- {answer.get('question')}: {answer.get('answer')}")

    return "\n".join(lines)


# ============================================================
# ANALYSIS SERVICE
# ============================================================

class CandidateAnalysisService:
    """Runs and stores AI analyses for candidates."""

    def __init__(self):
        self.ai_client: DeepSeekClient = get_deepseek_client()
        self.analyses = AnalysisDocumentService()
        self.answers = FormAnswerService()
        self.resumes = ResumeTextService()

    def analyze(self, candidate_id: int) -> Dict[str, Any]:
        """
        Full analysis pipeline for one candidate.

        Returns:
            {
                "success": True/False,
                "candidate_id": 12,
                "version": 2,
                "analysis": {...},
                "error": None
            }
        """
        result = {
            "success": False,
            "candidate_id": candidate_id,
            "version": None,
            "analysis": None,
            "error": None,
        }

        try:
            with get_db_session() as db:
                candidate = db.get(JobCandidate, candidate_id)
                if candidate is None:
                    result["error"] = "Candidate not found"
                    return result

                answers = self.answers.get_by_candidate(candidate_id)
                resume = self.resumes.get_by_candidate(candidate_id)
                profile = build_candidate_profile(
                    candidate, answers, resume["resume_text"] if resume else None
                )

            # No session is held open during the model round trip
            analysis = validate_analysis(self.ai_client.analyze_candidate(profile))
            version = self.analyses.insert(candidate_id, analysis, model=self.ai_client.model)

            with get_db_session() as db:
                candidate = db.get(JobCandidate, candidate_id)
                if candidate is not None:
                    candidate.score = analysis["overall_score"]

            result.update(success=True, version=version, analysis=analysis)
            logger.info(f"Candidate {candidate_id} analysed (v{version}, score {analysis['overall_score']})")

        except Exception as e:
            logger.error(f"Candidate analysis failed for {candidate_id}: {e}")
            result["error"] = str(e)

        return result

    def list_versions(self, candidate_id: int) -> List[dict]:
        return self.analyses.list_versions(candidate_id)


def run_candidate_analysis(candidate_id: int) -> None:
    """Background task entry point."""
    CandidateAnalysisService().analyze(candidate_id)
