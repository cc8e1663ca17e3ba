"""
Candidate Routes

GET /candidates - All candidates across jobs (filter, search, sort, paginate)
POST /candidates - Create candidate + employee record (HR admin)
POST /candidates/bulk-stage - Move several candidates to one stage (HR admin)
PUT /candidates/{candidate_id} - Update candidate (HR admin)
DELETE /candidates/{candidate_id} - Delete candidate (HR admin)
POST /candidates/{candidate_id}/resume - Upload resume file (HR admin)
POST /candidates/{candidate_id}/analyze - Run AI analysis (HR admin)
GET /candidates/{candidate_id}/analyses - Analysis versions, newest first (HR admin)
"""

from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy import func, or_, select

from peopleos.core.auth import get_current_user, get_hr_admin
from peopleos.db.postgres import get_db_session
from peopleos.models import Employee, Job, JobCandidate, utcnow
from peopleos.models.enums import (
    CandidateSource,
    CandidateStage,
    EmployeeStatus,
    InboundChannel,
    JobStatus,
    OutboundChannel,
)
from peopleos.schemas.schemas import (
    BulkStageUpdate,
    CandidateAnalysisResponse,
    CandidateCreate,
    CandidateListResponse,
    CandidateResponse,
    CandidateUpdate,
    CandidateWithJob,
    MessageResponse,
    ResumeUploadResponse,
    StageCount,
)
from peopleos.services.audit_service import log_audit
from peopleos.services.candidate_analysis_service import CandidateAnalysisService
from peopleos.services.hire_flow_service import run_hire_flow
from peopleos.services.mongo_service import AnalysisDocumentService, ResumeTextService
from peopleos.services.pipeline import CLOSED_STAGES, STAGE_DISPLAY_NAMES
from peopleos.services.stage_email_service import send_stage_email
from peopleos.utils.file_upload import extract_text_from_file

router = APIRouter(prefix="/candidates", tags=["Candidates"])

# Form source -> (source, inbound channel, outbound channel)
SOURCE_MAP = {
    "linkedin": (CandidateSource.OUTBOUND, None, OutboundChannel.LINKEDIN),
    "job-board": (CandidateSource.OUTBOUND, None, OutboundChannel.JOB_BOARDS),
    "recruiter": (CandidateSource.RECRUITER, None, None),
    "referral": (CandidateSource.EXCELLER, None, None),
    "careers-page": (CandidateSource.INBOUND, InboundChannel.PEOPLEOS, None),
}

SORT_COLUMNS = {
    "score": JobCandidate.score,
    "applied_at": JobCandidate.applied_at,
    "name": JobCandidate.name,
    "updated_at": JobCandidate.updated_at,
}


def _get_candidate_or_404(db, candidate_id: int) -> JobCandidate:
    candidate = db.get(JobCandidate, candidate_id)
    if not candidate:
        raise HTTPException(status_code=404, detail="Candidate not found")
    return candidate


def _queue_stage_followups(background_tasks: BackgroundTasks, candidate_id: int, stage: CandidateStage) -> None:
    """Stage email for every move; the hire flow when a candidate reaches OFFER."""
    background_tasks.add_task(send_stage_email, candidate_id, stage)
    if stage == CandidateStage.OFFER:
        background_tasks.add_task(run_hire_flow, candidate_id)


def _with_job(candidate: JobCandidate) -> CandidateWithJob:
    return CandidateWithJob(
        **CandidateResponse.model_validate(candidate).model_dump(),
        job_title=candidate.job.title if candidate.job else None,
        job_department=candidate.job.department if candidate.job else None,
    )


# ============================================================
# LIST / CREATE
# ============================================================

@router.get("", response_model=CandidateListResponse)
async def get_all_candidates(
    stage: Optional[CandidateStage] = Query(None),
    source: Optional[CandidateSource] = Query(None),
    search: Optional[str] = Query(None),
    job_id: Optional[int] = Query(None),
    department: Optional[str] = Query(None),
    applied_from: Optional[datetime] = Query(None),
    applied_to: Optional[datetime] = Query(None),
    include_archived: bool = Query(False),
    sort_by: Literal["score", "applied_at", "name", "updated_at"] = Query("applied_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: dict = Depends(get_current_user)
):
    """
    Candidates across all jobs.

    REJECTED and WITHDRAWN are never listed; ARCHIVED only with include_archived.
    by_stage_counts covers every candidate matching the filters except the stage filter.
    """
    conditions = [JobCandidate.stage.not_in(CLOSED_STAGES)]
    if not include_archived:
        conditions.append(JobCandidate.stage != CandidateStage.ARCHIVED)
    if source:
        conditions.append(JobCandidate.source == source)
    if job_id:
        conditions.append(JobCandidate.job_id == job_id)
    if department:
        conditions.append(Job.department == department)
    if applied_from:
        conditions.append(JobCandidate.applied_at >= applied_from)
    if applied_to:
        conditions.append(JobCandidate.applied_at <= applied_to)
    if search:
        pattern = f"%{search.strip()}%"
        conditions.append(or_(
            JobCandidate.name.ilike(pattern),
            JobCandidate.email.ilike(pattern),
            JobCandidate.current_company.ilike(pattern),
            JobCandidate.current_role.ilike(pattern),
        ))

    with get_db_session() as db:
        by_stage = dict(db.execute(
            select(JobCandidate.stage, func.count(JobCandidate.id))
            .join(Job, JobCandidate.job_id == Job.id)
            .where(*conditions)
            .group_by(JobCandidate.stage)
        ).all())

        if stage:
            conditions.append(JobCandidate.stage == stage)

        total = db.scalar(
            select(func.count(JobCandidate.id)).join(Job, JobCandidate.job_id == Job.id).where(*conditions)
        )

        column = SORT_COLUMNS[sort_by]
        order = column.asc() if sort_order == "asc" else column.desc()
        if sort_by == "score":
            order = order.nulls_last()
        candidates = db.scalars(
            select(JobCandidate)
            .join(Job, JobCandidate.job_id == Job.id)
            .where(*conditions)
            .order_by(order, JobCandidate.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()

        return CandidateListResponse(
            candidates=[_with_job(c) for c in candidates],
            total=total,
            by_stage_counts=[
                StageCount(stage=s, display_name=STAGE_DISPLAY_NAMES[s], count=by_stage[s])
                for s in CandidateStage if by_stage.get(s)
            ],
        )


@router.post("", response_model=CandidateWithJob, status_code=201)
async def create_candidate(request: CandidateCreate, admin: dict = Depends(get_hr_admin)):
    """
    Add a candidate outside a job pipeline screen.

    Without job_id the newest ACTIVE job is used, creating a
    "General Application" job when there is none. An Employee record in
    CANDIDATE status is created (or reused by personal email) and linked.
    """
    email = request.email.lower()
    with get_db_session() as db:
        if db.scalar(select(JobCandidate.id).where(func.lower(JobCandidate.email) == email).limit(1)):
            raise HTTPException(status_code=409, detail="A candidate with this email address already exists.")

        if request.job_id is not None:
            job = db.get(Job, request.job_id)
            if not job:
                raise HTTPException(status_code=404, detail="Job not found")
        else:
            job = db.scalar(
                select(Job).where(Job.status == JobStatus.ACTIVE).order_by(Job.created_at.desc(), Job.id.desc())
            )
            if not job:
                job = Job(title="General Application", status=JobStatus.ACTIVE, locations=[])
                db.add(job)
                db.flush()

        source, inbound_channel, outbound_channel = SOURCE_MAP.get(
            request.source, (CandidateSource.EXCELLER, None, None)
        )

        employee = db.scalar(select(Employee).where(func.lower(Employee.personal_email) == email))
        if not employee:
            employee = Employee(
                full_name=request.name.strip(),
                personal_email=email,
                phone=request.phone,
                job_title="Candidate",
                location=request.location,
                status=EmployeeStatus.CANDIDATE,
            )
            db.add(employee)
            db.flush()

        candidate = JobCandidate(
            job_id=job.id,
            employee_id=employee.id,
            name=request.name.strip(),
            email=email,
            phone=request.phone,
            linkedin_url=request.linkedin_url,
            current_company=request.current_company,
            current_role=request.current_role,
            location=request.location,
            notes=request.notes,
            stage=CandidateStage.APPLIED,
            source=source,
            inbound_channel=inbound_channel,
            outbound_channel=outbound_channel,
            added_by_id=admin["user_id"] if source in (CandidateSource.OUTBOUND, CandidateSource.EXCELLER) else None,
        )
        db.add(candidate)
        db.flush()

        log_audit(db, "CANDIDATE_CREATED", "job_candidate", candidate.id, actor=admin,
                  metadata={"job_id": job.id, "employee_id": employee.id})
        return _with_job(candidate)


@router.post("/bulk-stage", response_model=MessageResponse)
async def bulk_update_candidate_stage(
    request: BulkStageUpdate,
    background_tasks: BackgroundTasks,
    admin: dict = Depends(get_hr_admin)
):
    with get_db_session() as db:
        candidates = db.scalars(
            select(JobCandidate).where(JobCandidate.id.in_(request.candidate_ids))
        ).all()
        moved = []
        for candidate in candidates:
            if candidate.stage != request.stage:
                moved.append(candidate.id)
            candidate.stage = request.stage

        log_audit(db, "CANDIDATES_BULK_STAGE", "job_candidate", None, actor=admin,
                  metadata={"candidate_ids": [c.id for c in candidates], "stage": request.stage.value})
        updated = len(candidates)

    for candidate_id in moved:
        _queue_stage_followups(background_tasks, candidate_id, request.stage)

    return MessageResponse(message=f"Updated {updated} candidate(s)")


# ============================================================
# SINGLE CANDIDATE
# ============================================================

@router.put("/{candidate_id}", response_model=CandidateResponse)
async def update_candidate(
    candidate_id: int,
    request: CandidateUpdate,
    background_tasks: BackgroundTasks,
    admin: dict = Depends(get_hr_admin)
):
    """
    Partial update.

    A stage change queues the stage email, and a move to OFFER also
    starts the hire flow (employee record + draft offer).
    """
    with get_db_session() as db:
        candidate = _get_candidate_or_404(db, candidate_id)
        changes = request.model_dump(exclude_unset=True)

        previous_stage = candidate.stage
        if changes.get("email"):
            changes["email"] = changes["email"].lower()

        if changes.get("decision_status") is not None:
            candidate.decision_at = utcnow()
            candidate.decision_by_id = admin["user_id"]

        for field, value in changes.items():
            if field in ("name", "email", "stage") and value is None:
                continue
            setattr(candidate, field, value)

        stage_changed = candidate.stage != previous_stage
        if stage_changed:
            log_audit(db, "CANDIDATE_STAGE_CHANGED", "job_candidate", candidate.id, actor=admin,
                      metadata={"from": previous_stage.value, "to": candidate.stage.value})
        db.flush()
        response = CandidateResponse.model_validate(candidate)

    if stage_changed:
        _queue_stage_followups(background_tasks, candidate_id, response.stage)

    return response


@router.delete("/{candidate_id}", response_model=MessageResponse)
async def delete_candidate(candidate_id: int, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        candidate = _get_candidate_or_404(db, candidate_id)
        job_id = candidate.job_id
        db.delete(candidate)
        log_audit(db, "CANDIDATE_DELETED", "job_candidate", candidate_id, actor=admin, metadata={"job_id": job_id})
    return MessageResponse(message="Candidate deleted")


# ============================================================
# RESUME + AI ANALYSIS
# ============================================================

@router.post("/{candidate_id}/resume", response_model=ResumeUploadResponse, status_code=201)
async def upload_resume(
    candidate_id: int,
    file: UploadFile = File(..., description="Resume file (PDF, DOCX, or TXT, max 5MB)"),
    admin: dict = Depends(get_hr_admin)
):
    """Extract the resume text and keep it for the AI analysis."""
    with get_db_session() as db:
        _get_candidate_or_404(db, candidate_id)

    text, filename = await extract_text_from_file(file)
    document_id = ResumeTextService().insert(candidate_id, text, filename)

    return ResumeUploadResponse(
        candidate_id=candidate_id, document_id=document_id, filename=filename, characters=len(text)
    )


@router.post("/{candidate_id}/analyze", response_model=CandidateAnalysisResponse)
def analyze_candidate(candidate_id: int, admin: dict = Depends(get_hr_admin)):
    """
    Analyse a candidate with DeepSeek.

    Uses the candidate profile, the job, stored interest-form answers and
    the latest resume. Each run is stored as a new version and the
    candidate score is set from overall_score.
    """
    with get_db_session() as db:
        _get_candidate_or_404(db, candidate_id)

    result = CandidateAnalysisService().analyze(candidate_id)
    if not result["success"]:
        raise HTTPException(status_code=502, detail=f"Analysis failed: {result['error']}")
    return CandidateAnalysisResponse(**result)


@router.get("/{candidate_id}/analyses", response_model=List[dict])
async def list_analyses(candidate_id: int, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        _get_candidate_or_404(db, candidate_id)
    return AnalysisDocumentService().list_versions(candidate_id)
