"""
Hiring flow versioning.

A flow's stage list is never edited in place: every change writes a new
HiringFlowSnapshot and jobs keep pointing at the snapshot they were
created with until they are upgraded.
"""
import logging
from typing import Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from peopleos.models import HiringFlow, HiringFlowSnapshot, Job, JobCandidate

logger = logging.getLogger(__name__)

LEGACY_PREFIX = "Legacy: "


def latest_snapshot(db: Session, flow_id: int) -> Optional[HiringFlowSnapshot]:
    return db.scalar(
        select(HiringFlowSnapshot)
        .where(HiringFlowSnapshot.flow_id == flow_id)
        .order_by(HiringFlowSnapshot.version.desc())
        .limit(1)
    )


def default_flow(db: Session) -> Optional[HiringFlow]:
    return db.scalar(
        select(HiringFlow)
        .where(HiringFlow.is_default.is_(True), HiringFlow.is_active.is_(True))
        .order_by(HiringFlow.id)
    )


def clear_other_defaults(db: Session, flow_id: int) -> None:
    db.execute(
        update(HiringFlow).where(HiringFlow.id != flow_id, HiringFlow.is_default.is_(True)).values(is_default=False)
    )


def name_taken(db: Session, name: str, exclude_id: Optional[int] = None) -> bool:
    query = select(HiringFlow.id).where(
        func.lower(HiringFlow.name) == name.strip().lower(),
        HiringFlow.is_active.is_(True),
    )
    if exclude_id is not None:
        query = query.where(HiringFlow.id != exclude_id)
    return db.scalar(query.limit(1)) is not None


def add_snapshot(db: Session, flow: HiringFlow, stages: List[str]) -> HiringFlowSnapshot:
    current = latest_snapshot(db, flow.id) if flow.id else None
    snapshot = HiringFlowSnapshot(flow=flow, version=(current.version + 1) if current else 1, stages=list(stages))
    db.add(snapshot)
    db.flush()
    return snapshot


def snapshot_for_new_job(db: Session, flow_id: Optional[int]) -> Optional[HiringFlowSnapshot]:
    """Latest snapshot of the requested flow, else of the default flow."""
    if flow_id is not None:
        snapshot = latest_snapshot(db, flow_id)
        if snapshot is not None:
            return snapshot
    flow = default_flow(db)
    return latest_snapshot(db, flow.id) if flow else None


def migrate_jobs(
    db: Session, flow_id: int, target: HiringFlowSnapshot, stage_mapping: Dict[str, Optional[str]]
) -> int:
    """
    Move every job on an older snapshot of the flow onto `target`.

    Candidates whose custom stage was renamed get the new name; a stage
    mapped to None becomes "Legacy: <old>". Returns the number of jobs moved.
    """
    jobs = db.scalars(
        select(Job)
        .join(HiringFlowSnapshot, Job.hiring_flow_snapshot_id == HiringFlowSnapshot.id)
        .where(HiringFlowSnapshot.flow_id == flow_id, HiringFlowSnapshot.version < target.version)
    ).all()

    for job in jobs:
        job.hiring_flow_snapshot_id = target.id
        for old_stage, new_stage in stage_mapping.items():
            db.execute(
                update(JobCandidate)
                .where(JobCandidate.job_id == job.id, JobCandidate.custom_stage_name == old_stage)
                .values(custom_stage_name=new_stage if new_stage else f"{LEGACY_PREFIX}{old_stage}")
            )

    if jobs:
        logger.info(f"Moved {len(jobs)} job(s) of flow {flow_id} to version {target.version}")
    return len(jobs)


def outdated_jobs(db: Session, flow_id: Optional[int] = None) -> List[Job]:
    """Jobs whose snapshot is older than their flow's latest version."""
    latest = (
        select(HiringFlowSnapshot.flow_id, func.max(HiringFlowSnapshot.version).label("version"))
        .group_by(HiringFlowSnapshot.flow_id)
        .subquery()
    )
    query = (
        select(Job)
        .join(HiringFlowSnapshot, Job.hiring_flow_snapshot_id == HiringFlowSnapshot.id)
        .join(latest, latest.c.flow_id == HiringFlowSnapshot.flow_id)
        .where(HiringFlowSnapshot.version < latest.c.version)
        .order_by(Job.created_at.desc())
    )
    if flow_id is not None:
        query = query.where(HiringFlowSnapshot.flow_id == flow_id)
    return db.scalars(query).all()


def stage_diff(old: List[str], new: List[str]) -> Dict[str, List[str]]:
    old_set, new_set = set(old), set(new)
    return {
        "added": [s for s in new if s not in old_set],
        "removed": [s for s in old if s not in new_set],
        "unchanged": [s for s in new if s in old_set],
    }
