"""
Hiring Flow Routes

GET /hiring-flows - Active flows with version/job statistics
GET /hiring-flows/default - The default flow (or null)
GET /hiring-flows/outdated-jobs - Jobs running on an older flow version
GET /hiring-flows/{flow_id} - Flow with all snapshots
GET /hiring-flows/{flow_id}/latest - Latest snapshot
GET /hiring-flows/{flow_id}/diff - Stage changes between the two newest versions
POST /hiring-flows - Create flow (HR admin)
PUT /hiring-flows/{flow_id} - Update flow, new version when stages change (HR admin)
DELETE /hiring-flows/{flow_id} - Soft delete (HR admin)
POST /hiring-flows/{flow_id}/set-default - Make default (HR admin)
POST /hiring-flows/{flow_id}/assign/{job_id} - Put a job on the latest version (HR admin)
POST /hiring-flows/jobs/{job_id}/upgrade - Upgrade a job to its flow's latest version (HR admin)
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select

from peopleos.core.auth import get_current_user, get_hr_admin
from peopleos.db.postgres import get_db_session
from peopleos.models import HiringFlow, HiringFlowSnapshot, Job, JobCandidate
from peopleos.schemas.schemas import (
    FlowDiffResponse,
    HiringFlowCreate,
    HiringFlowResponse,
    HiringFlowSnapshotResponse,
    HiringFlowSummary,
    HiringFlowUpdate,
    JobFlowUpgradeResponse,
    MessageResponse,
    OutdatedJobResponse,
)
from peopleos.services.audit_service import log_audit
from peopleos.services.hiring_flow_service import (
    add_snapshot,
    clear_other_defaults,
    default_flow,
    latest_snapshot,
    migrate_jobs,
    name_taken,
    outdated_jobs,
    stage_diff,
)

router = APIRouter(prefix="/hiring-flows", tags=["Hiring Flows"])

DUPLICATE_NAME = "A hiring flow with this name already exists"


def _get_flow_or_404(db, flow_id: int) -> HiringFlow:
    flow = db.get(HiringFlow, flow_id)
    if not flow or not flow.is_active:
        raise HTTPException(status_code=404, detail="Hiring flow not found")
    return flow


def _flow_response(flow: HiringFlow) -> HiringFlowResponse:
    response = HiringFlowResponse.model_validate(flow)
    response.snapshots = sorted(response.snapshots, key=lambda s: s.version, reverse=True)
    return response


@router.get("", response_model=List[HiringFlowSummary])
async def list_flows(user: dict = Depends(get_current_user)):
    """Active flows, default first, then by name."""
    with get_db_session() as db:
        flows = db.scalars(
            select(HiringFlow)
            .where(HiringFlow.is_active.is_(True))
            .order_by(HiringFlow.is_default.desc(), HiringFlow.name)
        ).all()

        summaries = []
        for flow in flows:
            latest = latest_snapshot(db, flow.id)
            latest_version = latest.version if latest else 0
            job_versions = db.execute(
                select(HiringFlowSnapshot.version)
                .join(Job, Job.hiring_flow_snapshot_id == HiringFlowSnapshot.id)
                .where(HiringFlowSnapshot.flow_id == flow.id)
            ).scalars().all()
            summaries.append(HiringFlowSummary(
                id=flow.id,
                name=flow.name,
                description=flow.description,
                is_default=flow.is_default,
                stages=latest.stages if latest else [],
                latest_version=latest_version,
                total_versions=len(flow.snapshots),
                total_jobs=len(job_versions),
                outdated_jobs=sum(1 for v in job_versions if v < latest_version),
            ))
        return summaries


@router.get("/default", response_model=Optional[HiringFlowResponse])
async def get_default_flow(user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        flow = default_flow(db)
        return _flow_response(flow) if flow else None


@router.get("/outdated-jobs", response_model=List[OutdatedJobResponse])
async def get_jobs_with_outdated_flow(
    flow_id: Optional[int] = Query(None),
    user: dict = Depends(get_current_user)
):
    with get_db_session() as db:
        jobs = outdated_jobs(db, flow_id)
        return [
            OutdatedJobResponse(
                id=job.id,
                title=job.title,
                status=job.status,
                snapshot_version=job.hiring_flow_snapshot.version,
                snapshot_stages=job.hiring_flow_snapshot.stages,
                candidate_count=db.scalar(
                    select(func.count(JobCandidate.id)).where(JobCandidate.job_id == job.id)
                ),
            )
            for job in jobs
        ]


@router.get("/{flow_id}", response_model=HiringFlowResponse)
async def get_flow(flow_id: int, user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        return _flow_response(_get_flow_or_404(db, flow_id))


@router.get("/{flow_id}/latest", response_model=HiringFlowSnapshotResponse)
async def get_latest_snapshot(flow_id: int, user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        snapshot = latest_snapshot(db, flow_id)
        if not snapshot:
            raise HTTPException(status_code=404, detail="No snapshot found for this flow")
        return HiringFlowSnapshotResponse.model_validate(snapshot)


@router.get("/{flow_id}/diff", response_model=FlowDiffResponse)
async def get_flow_diff(flow_id: int, user: dict = Depends(get_current_user)):
    """Compare the two newest versions of a flow."""
    with get_db_session() as db:
        _get_flow_or_404(db, flow_id)
        snapshots = db.scalars(
            select(HiringFlowSnapshot)
            .where(HiringFlowSnapshot.flow_id == flow_id)
            .order_by(HiringFlowSnapshot.version.desc())
            .limit(2)
        ).all()

        if len(snapshots) < 2:
            newest = snapshots[0] if snapshots else None
            return FlowDiffResponse(
                added=[], removed=[], unchanged=[],
                from_version=0,
                to_version=newest.version if newest else 0,
                from_stages=[],
                to_stages=newest.stages if newest else [],
            )

        new, old = snapshots
        return FlowDiffResponse(
            **stage_diff(old.stages, new.stages),
            from_version=old.version,
            to_version=new.version,
            from_stages=old.stages,
            to_stages=new.stages,
        )


@router.post("", response_model=HiringFlowResponse, status_code=201)
async def create_flow(request: HiringFlowCreate, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        if name_taken(db, request.name):
            raise HTTPException(status_code=409, detail=DUPLICATE_NAME)

        flow = HiringFlow(
            name=request.name.strip(),
            description=request.description,
            is_default=request.is_default,
        )
        db.add(flow)
        db.flush()
        if request.is_default:
            clear_other_defaults(db, flow.id)
        add_snapshot(db, flow, request.stages)

        log_audit(db, "HIRING_FLOW_CREATED", "hiring_flow", flow.id, actor=admin,
                  metadata={"name": flow.name, "stages": request.stages})
        return _flow_response(flow)


@router.put("/{flow_id}", response_model=HiringFlowResponse)
async def update_flow(flow_id: int, request: HiringFlowUpdate, admin: dict = Depends(get_hr_admin)):
    """
    Update a flow.

    Changing the stages writes a new version. With a stage_mapping, jobs on
    older versions are migrated to it and their candidates' custom stages renamed.
    """
    with get_db_session() as db:
        flow = _get_flow_or_404(db, flow_id)

        if request.name is not None:
            if name_taken(db, request.name, exclude_id=flow.id):
                raise HTTPException(status_code=409, detail=DUPLICATE_NAME)
            flow.name = request.name.strip()
        if request.description is not None:
            flow.description = request.description
        if request.is_default is not None:
            flow.is_default = request.is_default
            if request.is_default:
                clear_other_defaults(db, flow.id)

        moved = 0
        current = latest_snapshot(db, flow.id)
        if request.stages is not None and (current is None or current.stages != request.stages):
            snapshot = add_snapshot(db, flow, request.stages)
            if request.stage_mapping is not None:
                moved = migrate_jobs(db, flow.id, snapshot, request.stage_mapping)
        db.flush()

        log_audit(db, "HIRING_FLOW_UPDATED", "hiring_flow", flow.id, actor=admin,
                  metadata={"new_version": request.stages is not None, "jobs_migrated": moved})
        return _flow_response(flow)


@router.delete("/{flow_id}", response_model=MessageResponse)
async def delete_flow(flow_id: int, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        flow = _get_flow_or_404(db, flow_id)
        in_use = db.scalar(
            select(func.count(Job.id))
            .join(HiringFlowSnapshot, Job.hiring_flow_snapshot_id == HiringFlowSnapshot.id)
            .where(HiringFlowSnapshot.flow_id == flow.id)
        )
        if in_use:
            raise HTTPException(
                status_code=412,
                detail=f"Cannot delete this flow. {in_use} job(s) are using it."
            )

        flow.is_active = False
        flow.is_default = False
        log_audit(db, "HIRING_FLOW_DELETED", "hiring_flow", flow.id, actor=admin)

    return MessageResponse(message="Hiring flow deleted")


@router.post("/{flow_id}/set-default", response_model=HiringFlowResponse)
async def set_default_flow(flow_id: int, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        flow = _get_flow_or_404(db, flow_id)
        clear_other_defaults(db, flow.id)
        flow.is_default = True
        return _flow_response(flow)


@router.post("/{flow_id}/assign/{job_id}", response_model=JobFlowUpgradeResponse)
async def assign_to_job(flow_id: int, job_id: int, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        _get_flow_or_404(db, flow_id)
        job = db.get(Job, job_id)
        if not job:
            raise HTTPException(status_code=404, detail="Job not found")
        snapshot = latest_snapshot(db, flow_id)
        if not snapshot:
            raise HTTPException(status_code=404, detail="No snapshot found for this flow")

        job.hiring_flow_snapshot_id = snapshot.id
        return JobFlowUpgradeResponse(message="Hiring flow assigned", job_id=job.id, version=snapshot.version)


@router.post("/jobs/{job_id}/upgrade", response_model=JobFlowUpgradeResponse)
async def upgrade_job_flow(job_id: int, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        job = db.get(Job, job_id)
        if not job:
            raise HTTPException(status_code=404, detail="Job not found")
        if not job.hiring_flow_snapshot:
            raise HTTPException(status_code=412, detail="Job does not have an assigned hiring flow")

        current = job.hiring_flow_snapshot
        latest = latest_snapshot(db, current.flow_id)
        if latest.id == current.id:
            return JobFlowUpgradeResponse(
                message="Job is already on the latest flow version", job_id=job.id, version=current.version
            )

        job.hiring_flow_snapshot_id = latest.id
        log_audit(db, "JOB_FLOW_UPGRADED", "job", job.id, actor=admin,
                  metadata={"from_version": current.version, "to_version": latest.version})
        return JobFlowUpgradeResponse(message="Job updated to latest flow version", job_id=job.id, version=latest.version)
