"""
Assessment Routes

Templates:
GET /assessments/templates - List templates (filters: is_active, type, team_id)
GET /assessments/templates/{template_id} - Get template
POST /assessments/templates - Create template (HR admin)
PUT /assessments/templates/{template_id} - Update template (HR admin)
DELETE /assessments/templates/{template_id} - Soft delete (HR admin)

Candidate assessments:
GET /assessments - List (filters: type, status, search, job_id)
GET /assessments/counts - Counts per type and status
GET /assessments/public/{token} - Candidate view by invite token (no auth)
GET /assessments/{assessment_id} - Get assessment
POST /assessments - Assign template to candidate (HR admin)
POST /assessments/{assessment_id}/invite - Issue link and email candidate (HR admin)
GET /assessments/{assessment_id}/link - Invite link, issuing a token if needed (HR admin)
POST /assessments/{assessment_id}/result - Record result (HR admin)
"""

import uuid
from datetime import timedelta
from typing import Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy import func, or_, select

from peopleos.core.auth import get_current_user, get_hr_admin
from peopleos.core.config import get_settings
from peopleos.db.postgres import get_db_session
from peopleos.models import AssessmentTemplate, CandidateAssessment, JobCandidate, utcnow
from peopleos.models.enums import AssessmentStatus, AssessmentType
from peopleos.schemas.schemas import (
    AssessmentResultInput,
    AssessmentTemplateCreate,
    AssessmentTemplateResponse,
    AssessmentTemplateUpdate,
    CandidateAssessmentCreate,
    CandidateAssessmentResponse,
    InviteLinkResponse,
    MessageResponse,
    SendInviteRequest,
)
from peopleos.services.audit_service import log_audit
from peopleos.services.email_service import send_email, text_to_html
from peopleos.utils.templating import render_placeholders

router = APIRouter(prefix="/assessments", tags=["Assessments"])
settings = get_settings()

PENDING_STATUSES = (AssessmentStatus.NOT_STARTED, AssessmentStatus.INVITED, AssessmentStatus.IN_PROGRESS)

DEFAULT_INVITE_SUBJECT = "Your {{assessment_name}} for {{job_title}}"
DEFAULT_INVITE_BODY = (
    "Hi {{candidate_name}},\n\n"
    "As the next step for the {{job_title}} role, please complete the {{assessment_name}}:\n"
    "{{invite_url}}\n\n"
    "The link expires on {{expires_at}}."
)


# ============================================================
# HELPERS
# ============================================================

def _get_template_or_404(db, template_id: int) -> AssessmentTemplate:
    template = db.get(AssessmentTemplate, template_id)
    if not template or not template.is_active:
        raise HTTPException(status_code=404, detail="Assessment template not found")
    return template


def _get_assessment_or_404(db, assessment_id: int) -> CandidateAssessment:
    assessment = db.get(CandidateAssessment, assessment_id)
    if not assessment:
        raise HTTPException(status_code=404, detail="Assessment not found")
    return assessment


def _assessment_response(assessment: CandidateAssessment) -> CandidateAssessmentResponse:
    candidate, template = assessment.candidate, assessment.template
    return CandidateAssessmentResponse(
        id=assessment.id,
        candidate_id=candidate.id,
        candidate_name=candidate.name,
        candidate_email=candidate.email,
        job_id=candidate.job_id,
        template_id=template.id,
        template_name=template.name,
        type=template.type,
        status=assessment.status,
        invite_url=assessment.invite_url,
        invited_at=assessment.invited_at,
        expires_at=assessment.expires_at,
        started_at=assessment.started_at,
        completed_at=assessment.completed_at,
        score=assessment.score,
        recommendation=assessment.recommendation,
        summary=assessment.summary,
        result_data=assessment.result_data,
        notes=assessment.notes,
        evaluated_at=assessment.evaluated_at,
        evaluated_by_id=assessment.evaluated_by_id,
        created_at=assessment.created_at,
    )


def new_invite_token() -> str:
    return uuid.uuid4().hex


def invite_url_for(template: AssessmentTemplate, token: str) -> str:
    """External platforms host their own test; everything else is served by us."""
    if template.external_url:
        return template.external_url
    return f"{settings.app_base_url.rstrip('/')}/assessment/{token}"


def invite_variables(assessment: CandidateAssessment) -> Dict[str, str]:
    candidate, template = assessment.candidate, assessment.template
    return {
        "candidate_name": candidate.name,
        "job_title": candidate.job.title if candidate.job else "",
        "assessment_name": template.name,
        "assessment_type": template.type.value,
        "invite_url": assessment.invite_url or "",
        "expires_at": assessment.expires_at.strftime("%B %d, %Y") if assessment.expires_at else "",
        "duration_minutes": str(template.duration_minutes or ""),
        "instructions": template.instructions or "",
    }


# ============================================================
# TEMPLATES
# ============================================================

@router.get("/templates", response_model=List[AssessmentTemplateResponse])
async def list_templates(
    is_active: bool = Query(True),
    type: Optional[AssessmentType] = Query(None),
    team_id: Optional[str] = Query(None, description="Also returns global templates"),
    user: dict = Depends(get_current_user)
):
    with get_db_session() as db:
        query = select(AssessmentTemplate).where(AssessmentTemplate.is_active.is_(is_active))
        if type:
            query = query.where(AssessmentTemplate.type == type)
        if team_id:
            query = query.where(or_(AssessmentTemplate.team_id == team_id, AssessmentTemplate.team_id.is_(None)))
        templates = db.scalars(
            query.order_by(AssessmentTemplate.sort_order, AssessmentTemplate.created_at.desc())
        ).all()
        return [AssessmentTemplateResponse.model_validate(t) for t in templates]


@router.get("/templates/{template_id}", response_model=AssessmentTemplateResponse)
async def get_template(template_id: int, user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        template = db.get(AssessmentTemplate, template_id)
        if not template:
            raise HTTPException(status_code=404, detail="Assessment template not found")
        return AssessmentTemplateResponse.model_validate(template)


@router.post("/templates", response_model=AssessmentTemplateResponse, status_code=201)
async def create_template(request: AssessmentTemplateCreate, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        fields = request.model_dump(exclude={"work_trial", "sort_order"})
        sort_order = request.sort_order
        if sort_order is None:
            sort_order = (db.scalar(select(func.max(AssessmentTemplate.sort_order))) or 0) + 1

        template = AssessmentTemplate(
            **fields,
            sort_order=sort_order,
            work_trial=request.work_trial.model_dump() if request.work_trial else None,
        )
        db.add(template)
        db.flush()
        log_audit(db, "ASSESSMENT_TEMPLATE_CREATED", "assessment_template", template.id, actor=admin,
                  metadata={"name": template.name, "type": template.type.value})
        return AssessmentTemplateResponse.model_validate(template)


@router.put("/templates/{template_id}", response_model=AssessmentTemplateResponse)
async def update_template(
    template_id: int,
    request: AssessmentTemplateUpdate,
    admin: dict = Depends(get_hr_admin)
):
    with get_db_session() as db:
        template = db.get(AssessmentTemplate, template_id)
        if not template:
            raise HTTPException(status_code=404, detail="Assessment template not found")

        changes = request.model_dump(exclude_unset=True)
        if "work_trial" in changes:
            template.work_trial = request.work_trial.model_dump() if request.work_trial else None
            changes.pop("work_trial")
        for field, value in changes.items():
            if field in ("name", "sort_order", "is_active") and value is None:
                continue
            setattr(template, field, value)

        db.flush()
        return AssessmentTemplateResponse.model_validate(template)


@router.delete("/templates/{template_id}", response_model=MessageResponse)
async def delete_template(template_id: int, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        template = _get_template_or_404(db, template_id)
        template.is_active = False
    return MessageResponse(message="Assessment template deleted")


# ============================================================
# CANDIDATE ASSESSMENTS
# ============================================================

@router.get("", response_model=List[CandidateAssessmentResponse])
async def list_assessments(
    type: Optional[AssessmentType] = Query(None),
    status: Optional[AssessmentStatus] = Query(None),
    search: Optional[str] = Query(None, description="Candidate name or email"),
    job_id: Optional[int] = Query(None),
    user: dict = Depends(get_current_user)
):
    with get_db_session() as db:
        query = (
            select(CandidateAssessment)
            .join(JobCandidate, CandidateAssessment.candidate_id == JobCandidate.id)
            .join(AssessmentTemplate, CandidateAssessment.template_id == AssessmentTemplate.id)
        )
        if type:
            query = query.where(AssessmentTemplate.type == type)
        if status:
            query = query.where(CandidateAssessment.status == status)
        if job_id:
            query = query.where(JobCandidate.job_id == job_id)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(or_(JobCandidate.name.ilike(pattern), JobCandidate.email.ilike(pattern)))

        assessments = db.scalars(query.order_by(CandidateAssessment.created_at.desc())).all()
        return [_assessment_response(a) for a in assessments]


@router.get("/counts", response_model=Dict[str, int])
async def get_counts(user: dict = Depends(get_current_user)):
    """all, one key per type, pending, and status_<STATUS> for every status."""
    with get_db_session() as db:
        by_type = dict(db.execute(
            select(AssessmentTemplate.type, func.count(CandidateAssessment.id))
            .join(AssessmentTemplate, CandidateAssessment.template_id == AssessmentTemplate.id)
            .group_by(AssessmentTemplate.type)
        ).all())
        by_status = dict(db.execute(
            select(CandidateAssessment.status, func.count(CandidateAssessment.id))
            .group_by(CandidateAssessment.status)
        ).all())

    counts = {"all": sum(by_status.values())}
    for assessment_type in AssessmentType:
        counts[assessment_type.value] = by_type.get(assessment_type, 0)
    counts["pending"] = sum(by_status.get(s, 0) for s in PENDING_STATUSES)
    for status in AssessmentStatus:
        counts[f"status_{status.value}"] = by_status.get(status, 0)
    return counts


@router.get("/public/{token}", response_model=CandidateAssessmentResponse)
async def get_public_assessment(token: str):
    """The candidate opened their link. First view moves INVITED to IN_PROGRESS."""
    with get_db_session() as db:
        assessment = db.scalar(select(CandidateAssessment).where(CandidateAssessment.invite_token == token))
        if not assessment:
            raise HTTPException(status_code=404, detail="Assessment not found")
        if assessment.expires_at and assessment.expires_at < utcnow():
            raise HTTPException(status_code=401, detail="This assessment link has expired")

        if assessment.status == AssessmentStatus.INVITED:
            assessment.status = AssessmentStatus.IN_PROGRESS
            assessment.started_at = utcnow()
        return _assessment_response(assessment)


@router.get("/{assessment_id}", response_model=CandidateAssessmentResponse)
async def get_assessment(assessment_id: int, user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        return _assessment_response(_get_assessment_or_404(db, assessment_id))


@router.post("", response_model=CandidateAssessmentResponse, status_code=201)
async def create_assessment(request: CandidateAssessmentCreate, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        candidate = db.get(JobCandidate, request.candidate_id)
        if not candidate:
            raise HTTPException(status_code=404, detail="Candidate not found")
        template = _get_template_or_404(db, request.template_id)

        exists = db.scalar(select(CandidateAssessment.id).where(
            CandidateAssessment.candidate_id == candidate.id,
            CandidateAssessment.template_id == template.id,
        ))
        if exists:
            raise HTTPException(status_code=409, detail="Assessment already exists for this candidate and template")

        assessment = CandidateAssessment(
            candidate=candidate,
            template=template,
            status=AssessmentStatus.NOT_STARTED,
            invite_token=new_invite_token(),
            expires_at=utcnow() + timedelta(days=request.expires_in_days),
            notes=request.notes,
        )
        db.add(assessment)
        db.flush()
        log_audit(db, "ASSESSMENT_CREATED", "candidate_assessment", assessment.id, actor=admin,
                  metadata={"candidate_id": candidate.id, "template_id": template.id})
        return _assessment_response(assessment)


@router.post("/{assessment_id}/invite", response_model=CandidateAssessmentResponse)
async def send_invite(
    assessment_id: int,
    background_tasks: BackgroundTasks,
    request: Optional[SendInviteRequest] = None,
    admin: dict = Depends(get_hr_admin)
):
    """Issue a fresh link, mark the assessment INVITED and email the candidate."""
    with get_db_session() as db:
        assessment = _get_assessment_or_404(db, assessment_id)
        template = assessment.template

        now = utcnow()
        valid_days = round((assessment.expires_at - assessment.created_at).total_seconds() / 86400) if assessment.expires_at else 7
        emailed = request.send_email if request else True
        token = new_invite_token()
        assessment.invite_token = token
        assessment.invite_url = invite_url_for(template, token)
        assessment.status = AssessmentStatus.INVITED
        assessment.invited_at = now
        assessment.expires_at = now + timedelta(days=max(valid_days, 1))

        if emailed:
            variables = invite_variables(assessment)
            subject = render_placeholders(template.email_subject or DEFAULT_INVITE_SUBJECT, variables)
            body = render_placeholders(template.email_body or DEFAULT_INVITE_BODY, variables)
            background_tasks.add_task(send_email, assessment.candidate.email, subject, text_to_html(body))

        log_audit(db, "ASSESSMENT_INVITE_SENT", "candidate_assessment", assessment.id, actor=admin,
                  metadata={"emailed": emailed})
        return _assessment_response(assessment)


@router.get("/{assessment_id}/link", response_model=InviteLinkResponse)
async def copy_link(assessment_id: int, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        assessment = _get_assessment_or_404(db, assessment_id)
        if not assessment.invite_token:
            assessment.invite_token = new_invite_token()
        if not assessment.invite_url:
            assessment.invite_url = invite_url_for(assessment.template, assessment.invite_token)
        return InviteLinkResponse(
            assessment_id=assessment.id, url=assessment.invite_url, token=assessment.invite_token
        )


@router.post("/{assessment_id}/result", response_model=CandidateAssessmentResponse)
async def record_result(assessment_id: int, request: AssessmentResultInput, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        assessment = _get_assessment_or_404(db, assessment_id)

        now = utcnow()
        assessment.score = request.score
        assessment.recommendation = request.recommendation
        assessment.summary = request.summary
        assessment.result_data = request.result_data
        assessment.status = request.status
        if request.notes is not None:
            assessment.notes = request.notes
        if request.status == AssessmentStatus.COMPLETED:
            assessment.completed_at = now
        assessment.evaluated_at = now
        assessment.evaluated_by_id = admin["user_id"]

        log_audit(db, "ASSESSMENT_RESULT_RECORDED", "candidate_assessment", assessment.id, actor=admin,
                  metadata={"status": request.status.value, "score": request.score})
        return _assessment_response(assessment)
