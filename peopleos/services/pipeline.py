"""
Candidate pipeline constants shared by jobs, candidates and analytics.
"""
from typing import Dict, List, Optional

from peopleos.models.enums import CandidateStage

STAGE_ORDER: List[CandidateStage] = list(CandidateStage)

STAGE_DISPLAY_NAMES: Dict[CandidateStage, str] = {
    CandidateStage.APPLIED: "Applied",
    CandidateStage.SHORTLISTED: "Short Listed",
    CandidateStage.HR_SCREEN: "People Chat",
    CandidateStage.TECHNICAL: "Coding Test",
    CandidateStage.TEAM_CHAT: "Team Chat",
    CandidateStage.ADVISOR_CHAT: "Advisor Chat",
    CandidateStage.PANEL: "Panel",
    CandidateStage.TRIAL: "Trial",
    CandidateStage.CEO_CHAT: "CEO Chat",
    CandidateStage.OFFER: "Offer",
    CandidateStage.HIRED: "Hired",
    CandidateStage.REJECTED: "Rejected",
    CandidateStage.WITHDRAWN: "Withdrawn",
    CandidateStage.ARCHIVED: "Archived",
}

IN_REVIEW_STAGES = {CandidateStage.APPLIED, CandidateStage.SHORTLISTED}
INTERVIEWING_STAGES = {CandidateStage.HR_SCREEN, CandidateStage.TECHNICAL, CandidateStage.PANEL}

# Any candidate in one of these reached at least a first interview
INTERVIEW_REACHED_STAGES = {
    CandidateStage.HR_SCREEN,
    CandidateStage.TECHNICAL,
    CandidateStage.PANEL,
    CandidateStage.TRIAL,
    CandidateStage.CEO_CHAT,
    CandidateStage.OFFER,
    CandidateStage.HIRED,
}
TRIAL_STAGES = {CandidateStage.TRIAL, CandidateStage.CEO_CHAT, CandidateStage.OFFER, CandidateStage.HIRED}
TRIAL_PASSED_STAGES = {CandidateStage.CEO_CHAT, CandidateStage.OFFER, CandidateStage.HIRED}

# Closed candidates never show in the cross-job candidate list
CLOSED_STAGES = {CandidateStage.REJECTED, CandidateStage.WITHDRAWN}

# Key of each stage in the per-job counts dict
STAGE_COUNT_KEYS: Dict[CandidateStage, str] = {
    CandidateStage.APPLIED: "applied",
    CandidateStage.SHORTLISTED: "short_listed",
    CandidateStage.HR_SCREEN: "hr_screen",
    CandidateStage.TECHNICAL: "technical",
    CandidateStage.PANEL: "panel",
    CandidateStage.OFFER: "offer",
    CandidateStage.HIRED: "hired",
    CandidateStage.REJECTED: "rejected",
}


def stage_info() -> List[dict]:
    return [{"stage": s, "display_name": STAGE_DISPLAY_NAMES[s]} for s in STAGE_ORDER]


def map_flow_stage(index: int) -> Optional[CandidateStage]:
    """The flow stage at position `index` counts candidates of the Nth pipeline stage."""
    if 0 <= index < len(STAGE_ORDER):
        return STAGE_ORDER[index]
    return None


def stage_breakdown(flow_stages: List[str], counts: Dict[CandidateStage, int]) -> Dict[str, int]:
    """Map each named flow stage onto the enum order and return its candidate count."""
    breakdown = {}
    for index, name in enumerate(flow_stages or []):
        stage = map_flow_stage(index)
        breakdown[name] = counts.get(stage, 0) if stage else 0
    return breakdown
