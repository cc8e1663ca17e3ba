"""
Job Routes

GET /jobs - List jobs with pipeline stats
GET /jobs/counts - Job counts per status
GET /jobs/{job_id} - Job details with flow version info
POST /jobs - Create job (HR admin)
PUT /jobs/{job_id} - Update job (HR admin)
DELETE /jobs/{job_id} - Delete job and its candidates (HR admin)
POST /jobs/{job_id}/pause - Pause job (HR admin)
POST /jobs/{job_id}/mark-hired - Mark job filled (HR admin)
PUT /jobs/{job_id}/webhook - Careers page / webhook settings (HR admin)
GET /jobs/{job_id}/candidates - Job pipeline
POST /jobs/{job_id}/candidates - Add candidate to job (HR admin)
GET /jobs/public/{job_id} - Public job page (no auth)
POST /jobs/public/{job_id}/apply - Public application (no auth)
"""

from collections import defaultdict
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select

from peopleos.core.auth import get_current_user, get_hr_admin
from peopleos.db.postgres import get_db_session
from peopleos.models import (
    Employee,
    HiringFlowSnapshot,
    HiringRubric,
    InterestFormTemplate,
    Job,
    JobCandidate,
)
from peopleos.models.enums import CandidateSource, CandidateStage, InboundChannel, JobStatus
from peopleos.schemas.schemas import (
    ApplicationResponse,
    ApplicationSubmit,
    CandidateAdd,
    CandidateResponse,
    JobCandidatesResponse,
    JobCounts,
    JobCreate,
    JobDetailResponse,
    JobListItem,
    JobResponse,
    JobStats,
    JobUpdate,
    MessageResponse,
    PublicJobResponse,
    StageInfo,
    WebhookSettingsUpdate,
)
from peopleos.services.audit_service import log_audit
from peopleos.services.hiring_flow_service import latest_snapshot, snapshot_for_new_job
from peopleos.services.pipeline import (
    IN_REVIEW_STAGES,
    INTERVIEWING_STAGES,
    STAGE_COUNT_KEYS,
    stage_breakdown,
    stage_info,
)

router = APIRouter(prefix="/jobs", tags=["Jobs"])

SELECT_INTEREST_FORM = "Select an interest form for this job."


# ============================================================
# HELPERS
# ============================================================

def _get_job_or_404(db, job_id: int) -> Job:
    job = db.get(Job, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


def _snapshot(db, job: Job) -> Optional[HiringFlowSnapshot]:
    if not job.hiring_flow_snapshot_id:
        return None
    return db.get(HiringFlowSnapshot, job.hiring_flow_snapshot_id)


def _job_fields(db, job: Job) -> dict:
    snapshot = _snapshot(db, job)
    return dict(
        id=job.id, title=job.title, department=job.department, employment_type=job.employment_type,
        status=job.status, priority=job.priority, deadline=job.deadline, hires_count=job.hires_count,
        salary_min=job.salary_min, salary_max=job.salary_max, currency=job.currency, equity=job.equity,
        locations=job.locations or [], description=job.description,
        hiring_flow_id=snapshot.flow_id if snapshot else None,
        hiring_flow_snapshot_id=job.hiring_flow_snapshot_id,
        hiring_flow_stages=snapshot.stages if snapshot else [],
        hiring_manager_id=job.hiring_manager_id, interest_form_id=job.interest_form_id,
        rubric_id=job.rubric_id, follower_ids=[f.id for f in job.followers],
        is_public=job.is_public, webhook_url=job.webhook_url,
        created_at=job.created_at, updated_at=job.updated_at,
    )


def _has_active_interest_forms(db) -> bool:
    return db.scalar(
        select(InterestFormTemplate.id).where(InterestFormTemplate.is_active.is_(True)).limit(1)
    ) is not None


def _check_references(db, fields: dict) -> None:
    if fields.get("hiring_manager_id") is not None and not db.get(Employee, fields["hiring_manager_id"]):
        raise HTTPException(status_code=404, detail="Hiring manager not found")
    if fields.get("interest_form_id") is not None:
        form = db.get(InterestFormTemplate, fields["interest_form_id"])
        if not form or not form.is_active:
            raise HTTPException(status_code=404, detail="Interest form not found")
    if fields.get("rubric_id") is not None and not db.get(HiringRubric, fields["rubric_id"]):
        raise HTTPException(status_code=404, detail="Hiring rubric not found")


def _followers(db, follower_ids: List[int]) -> List[Employee]:
    if not follower_ids:
        return []
    return db.scalars(select(Employee).where(Employee.id.in_(follower_ids))).all()


def _stage_counts(db, job_ids: List[int]) -> Dict[int, Dict[CandidateStage, int]]:
    counts = defaultdict(dict)
    if not job_ids:
        return counts
    rows = db.execute(
        select(JobCandidate.job_id, JobCandidate.stage, func.count(JobCandidate.id))
        .where(JobCandidate.job_id.in_(job_ids))
        .group_by(JobCandidate.job_id, JobCandidate.stage)
    ).all()
    for job_id, stage, count in rows:
        counts[job_id][stage] = count
    return counts


def _job_stats(counts: Dict[CandidateStage, int], scores: tuple) -> JobStats:
    avg_score, max_score = scores
    return JobStats(
        applicants=sum(counts.values()),
        in_review=sum(counts.get(s, 0) for s in IN_REVIEW_STAGES),
        interviewing=sum(counts.get(s, 0) for s in INTERVIEWING_STAGES),
        offer_stage=counts.get(CandidateStage.OFFER, 0),
        hired=counts.get(CandidateStage.HIRED, 0),
        avg_score=round(avg_score) if avg_score is not None else None,
        max_score=max_score,
    )


# ============================================================
# JOBS
# ============================================================

@router.get("", response_model=List[JobListItem])
async def list_jobs(
    status: Optional[JobStatus] = Query(None),
    department: Optional[str] = Query(None),
    user: dict = Depends(get_current_user)
):
    """List jobs, newest first, each with candidate stats and the flow stage breakdown."""
    with get_db_session() as db:
        query = select(Job).order_by(Job.created_at.desc(), Job.id.desc())
        if status:
            query = query.where(Job.status == status)
        if department:
            query = query.where(Job.department == department)
        jobs = db.scalars(query).all()

        job_ids = [j.id for j in jobs]
        counts = _stage_counts(db, job_ids)
        scores = {}
        if job_ids:
            scores = {
                job_id: (avg, mx) for job_id, avg, mx in db.execute(
                    select(JobCandidate.job_id, func.avg(JobCandidate.score), func.max(JobCandidate.score))
                    .where(JobCandidate.job_id.in_(job_ids), JobCandidate.score.is_not(None))
                    .group_by(JobCandidate.job_id)
                ).all()
            }

        items = []
        for job in jobs:
            fields = _job_fields(db, job)
            job_counts = counts.get(job.id, {})
            items.append(JobListItem(
                **fields,
                stats=_job_stats(job_counts, scores.get(job.id, (None, None))),
                stage_breakdown=stage_breakdown(fields["hiring_flow_stages"], job_counts),
            ))
        return items


@router.get("/counts", response_model=JobCounts)
async def get_counts(user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        by_status = dict(db.execute(select(Job.status, func.count(Job.id)).group_by(Job.status)).all())
    return JobCounts(
        all=sum(by_status.values()),
        active=by_status.get(JobStatus.ACTIVE, 0),
        draft=by_status.get(JobStatus.DRAFT, 0),
        paused=by_status.get(JobStatus.PAUSED, 0),
        hired=by_status.get(JobStatus.HIRED, 0),
    )


@router.get("/public/{job_id}", response_model=PublicJobResponse)
async def get_public_job(job_id: int, preview: bool = Query(False)):
    """Careers page view. Only public ACTIVE jobs unless previewing."""
    with get_db_session() as db:
        job = db.get(Job, job_id)
        if not job or (not preview and not (job.is_public and job.status == JobStatus.ACTIVE)):
            raise HTTPException(status_code=404, detail="Job not found or not publicly available")

        snapshot = _snapshot(db, job)
        return PublicJobResponse(
            id=job.id, title=job.title, department=job.department, employment_type=job.employment_type,
            locations=job.locations or [], description=job.description,
            salary_min=job.salary_min, salary_max=job.salary_max, currency=job.currency,
            status=job.status, interest_form_id=job.interest_form_id,
            stages=snapshot.stages if snapshot else [],
        )


@router.post("/public/{job_id}/apply", response_model=ApplicationResponse, status_code=201)
async def submit_application(job_id: int, request: ApplicationSubmit):
    email = request.email.lower()
    with get_db_session() as db:
        job = db.get(Job, job_id)
        if not job or not job.is_public or job.status != JobStatus.ACTIVE:
            raise HTTPException(status_code=404, detail="Job not found or not accepting applications")

        duplicate = db.scalar(
            select(JobCandidate.id).where(JobCandidate.job_id == job.id, func.lower(JobCandidate.email) == email)
        )
        if duplicate:
            raise HTTPException(status_code=409, detail="You have already applied to this position")

        candidate = JobCandidate(
            job_id=job.id,
            name=request.name.strip(),
            email=email,
            phone=request.phone,
            linkedin_url=request.linkedin_url,
            current_company=request.current_company,
            current_role=request.current_role,
            location=request.location,
            cover_letter=request.cover_letter,
            resume_url=request.resume_url,
            stage=CandidateStage.APPLIED,
            source=CandidateSource.INBOUND,
            inbound_channel=request.inbound_channel or InboundChannel.PEOPLEOS,
        )
        db.add(candidate)
        db.flush()
        log_audit(db, "CANDIDATE_APPLIED", "job_candidate", candidate.id, metadata={"job_id": job.id})
        candidate_id = candidate.id

    return ApplicationResponse(
        success=True, candidate_id=candidate_id, message="Application submitted successfully"
    )


@router.get("/{job_id}", response_model=JobDetailResponse)
async def get_job(job_id: int, user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        job = _get_job_or_404(db, job_id)
        snapshot = _snapshot(db, job)
        latest = latest_snapshot(db, snapshot.flow_id) if snapshot else None
        return JobDetailResponse(
            **_job_fields(db, job),
            flow_outdated=bool(snapshot and latest and latest.version > snapshot.version),
            latest_version=latest.version if latest else None,
            current_version=snapshot.version if snapshot else None,
        )


@router.post("", response_model=JobResponse, status_code=201)
async def create_job(request: JobCreate, admin: dict = Depends(get_hr_admin)):
    """Create a job on the latest version of its hiring flow (or the default flow)."""
    with get_db_session() as db:
        fields = request.model_dump(exclude={"hiring_flow_id", "follower_ids"})
        if fields["interest_form_id"] is None and _has_active_interest_forms(db):
            raise HTTPException(status_code=400, detail=SELECT_INTEREST_FORM)
        _check_references(db, fields)

        snapshot = snapshot_for_new_job(db, request.hiring_flow_id)
        job = Job(**fields, hiring_flow_snapshot_id=snapshot.id if snapshot else None)
        job.followers = _followers(db, request.follower_ids)
        db.add(job)
        db.flush()

        log_audit(db, "JOB_CREATED", "job", job.id, actor=admin, metadata={"title": job.title})
        return JobResponse(**_job_fields(db, job))


@router.put("/{job_id}", response_model=JobResponse)
async def update_job(job_id: int, request: JobUpdate, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        job = _get_job_or_404(db, job_id)
        changes = request.model_dump(exclude_unset=True)

        if "interest_form_id" in changes and changes["interest_form_id"] is None and _has_active_interest_forms(db):
            raise HTTPException(status_code=400, detail=SELECT_INTEREST_FORM)
        _check_references(db, changes)

        flow_id = changes.pop("hiring_flow_id", None)
        if flow_id is not None:
            snapshot = latest_snapshot(db, flow_id)
            if not snapshot:
                raise HTTPException(status_code=404, detail="Hiring flow not found")
            job.hiring_flow_snapshot_id = snapshot.id

        follower_ids = changes.pop("follower_ids", None)
        if follower_ids is not None:
            job.followers = _followers(db, follower_ids)

        for field, value in changes.items():
            if field in ("title", "currency", "employment_type", "locations", "status", "priority", "hires_count") \
                    and value is None:
                continue
            setattr(job, field, value)
        db.flush()

        log_audit(db, "JOB_UPDATED", "job", job.id, actor=admin, metadata={"fields": sorted(request.model_fields_set)})
        return JobResponse(**_job_fields(db, job))


@router.delete("/{job_id}", response_model=MessageResponse)
async def delete_job(job_id: int, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        job = _get_job_or_404(db, job_id)
        title = job.title
        db.delete(job)
        log_audit(db, "JOB_DELETED", "job", job_id, actor=admin, metadata={"title": title})
    return MessageResponse(message="Job deleted")


def _set_status(job_id: int, status: JobStatus, admin: dict) -> JobResponse:
    with get_db_session() as db:
        job = _get_job_or_404(db, job_id)
        job.status = status
        db.flush()
        log_audit(db, "JOB_STATUS_CHANGED", "job", job.id, actor=admin, metadata={"status": status.value})
        return JobResponse(**_job_fields(db, job))


@router.post("/{job_id}/pause", response_model=JobResponse)
async def pause_job(job_id: int, admin: dict = Depends(get_hr_admin)):
    return _set_status(job_id, JobStatus.PAUSED, admin)


@router.post("/{job_id}/mark-hired", response_model=JobResponse)
async def mark_hired(job_id: int, admin: dict = Depends(get_hr_admin)):
    return _set_status(job_id, JobStatus.HIRED, admin)


@router.put("/{job_id}/webhook", response_model=JobResponse)
async def update_webhook_settings(job_id: int, request: WebhookSettingsUpdate, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        job = _get_job_or_404(db, job_id)
        for field, value in request.model_dump(exclude_unset=True).items():
            if field == "is_public" and value is None:
                continue
            setattr(job, field, value)
        db.flush()
        return JobResponse(**_job_fields(db, job))


# ============================================================
# JOB PIPELINE
# ============================================================

@router.get("/{job_id}/candidates", response_model=JobCandidatesResponse)
async def list_candidates(job_id: int, user: dict = Depends(get_current_user)):
    """Candidates of a job, best scored first."""
    with get_db_session() as db:
        job = _get_job_or_404(db, job_id)
        candidates = db.scalars(
            select(JobCandidate)
            .where(JobCandidate.job_id == job.id)
            .order_by(JobCandidate.score.desc().nulls_last(), JobCandidate.applied_at.desc())
        ).all()

        by_stage = _stage_counts(db, [job.id]).get(job.id, {})
        counts = {"all": len(candidates)}
        for stage, key in STAGE_COUNT_KEYS.items():
            counts[key] = by_stage.get(stage, 0)

        snapshot = _snapshot(db, job)
        return JobCandidatesResponse(
            candidates=[CandidateResponse.model_validate(c) for c in candidates],
            counts=counts,
            stage_info=[StageInfo(**s) for s in stage_info()],
            hiring_flow_stages=snapshot.stages if snapshot else [],
        )


@router.post("/{job_id}/candidates", response_model=CandidateResponse, status_code=201)
async def add_candidate(job_id: int, request: CandidateAdd, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        job = _get_job_or_404(db, job_id)

        fields = request.model_dump()
        source = request.source
        if source != CandidateSource.INBOUND:
            fields["inbound_channel"] = None
        if source != CandidateSource.OUTBOUND:
            fields["outbound_channel"] = None
        fields["email"] = request.email.lower()

        candidate = JobCandidate(
            **fields,
            job_id=job.id,
            stage=CandidateStage.APPLIED,
            added_by_id=admin["user_id"] if source in (CandidateSource.OUTBOUND, CandidateSource.EXCELLER) else None,
        )
        db.add(candidate)
        db.flush()

        log_audit(db, "CANDIDATE_ADDED", "job_candidate", candidate.id, actor=admin,
                  metadata={"job_id": job.id, "source": source.value})
        return CandidateResponse.model_validate(candidate)
