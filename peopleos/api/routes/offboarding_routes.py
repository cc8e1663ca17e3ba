"""
Offboarding Routes

GET /offboarding/templates - Task templates (admin)
GET /offboarding/workflows - List workflows (admin)
GET /offboarding/workflows/{workflow_id} - Workflow with tasks (admin)
POST /offboarding/start - Start offboarding an employee (HR admin)
POST /offboarding/workflows/{workflow_id}/cancel - Cancel (HR admin)
POST /offboarding/tasks/{task_id}/run - Deprovision the task's app (admin)
POST /offboarding/tasks/{task_id}/complete - Complete a manual task (admin)
POST /offboarding/tasks/{task_id}/skip - Skip a task (admin)
GET /offboarding/scheduled-today - Workflows due by end of today (admin)
POST /offboarding/run-scheduled - Start the workflows due today (admin)
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy import select

from peopleos.core.auth import get_admin, get_hr_admin
from peopleos.db.postgres import get_db_session
from peopleos.models import Employee, OffboardingTask, OffboardingTaskTemplate, OffboardingWorkflow, utcnow
from peopleos.models.enums import EmployeeStatus, TaskType, WorkflowStatus
from peopleos.schemas.schemas import (
    CompleteTaskRequest,
    OffboardingTaskTemplateResponse,
    OffboardingWorkflowResponse,
    SkipTaskRequest,
    StartOffboardingRequest,
    WorkflowTaskResponse,
)
from peopleos.services.integrations.base import employee_payload
from peopleos.services.integrations.outbound import send_outbound_event
from peopleos.services.offboarding_service import (
    cancel_workflow,
    check_and_complete_workflow,
    complete_manual_task,
    has_active_workflow,
    run_automated_tasks,
    run_task,
    run_workflow_in_background,
    scheduled_for_today,
    skip_task,
    start_offboarding,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/offboarding", tags=["Offboarding"])

CLOSED_WORKFLOW_STATUSES = (WorkflowStatus.COMPLETED, WorkflowStatus.CANCELLED)


def _get_workflow_or_404(db, workflow_id: int) -> OffboardingWorkflow:
    workflow = db.get(OffboardingWorkflow, workflow_id)
    if not workflow:
        raise HTTPException(status_code=404, detail="Offboarding workflow not found")
    return workflow


def _get_task_or_404(db, task_id: int) -> OffboardingTask:
    task = db.get(OffboardingTask, task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


def _get_open_task_or_404(db, task_id: int) -> OffboardingTask:
    """Tasks of a completed or cancelled workflow are read-only."""
    task = _get_task_or_404(db, task_id)
    if task.workflow.status in CLOSED_WORKFLOW_STATUSES:
        raise HTTPException(status_code=400, detail="This workflow is already closed")
    return task


def _workflow_response(workflow: OffboardingWorkflow) -> OffboardingWorkflowResponse:
    return OffboardingWorkflowResponse(
        id=workflow.id,
        employee_id=workflow.employee_id,
        employee_name=workflow.employee.full_name,
        status=workflow.status,
        is_immediate=workflow.is_immediate,
        scheduled_for=workflow.scheduled_for,
        end_date=workflow.end_date,
        reason=workflow.reason,
        started_at=workflow.started_at,
        completed_at=workflow.completed_at,
        created_at=workflow.created_at,
        tasks=[WorkflowTaskResponse.model_validate(t) for t in workflow.tasks],
    )


def _completed_event(workflow: OffboardingWorkflow) -> dict:
    return {"workflow_id": workflow.id, "employee": employee_payload(workflow.employee)}


def _after_task_change(db, task: OffboardingTask, background_tasks: BackgroundTasks, actor: dict) -> None:
    db.flush()
    workflow = task.workflow
    if check_and_complete_workflow(db, workflow, actor=actor):
        background_tasks.add_task(send_outbound_event, "offboarding.completed", _completed_event(workflow), actor)


# ============================================================
# TEMPLATES / WORKFLOWS
# ============================================================

@router.get("/templates", response_model=List[OffboardingTaskTemplateResponse])
async def list_task_templates(admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        templates = db.scalars(
            select(OffboardingTaskTemplate).order_by(OffboardingTaskTemplate.sort_order, OffboardingTaskTemplate.id)
        ).all()
        return [OffboardingTaskTemplateResponse.model_validate(t) for t in templates]


@router.get("/workflows", response_model=List[OffboardingWorkflowResponse])
async def list_workflows(
    status: Optional[WorkflowStatus] = Query(None),
    admin: dict = Depends(get_admin)
):
    query = select(OffboardingWorkflow).order_by(OffboardingWorkflow.created_at.desc(), OffboardingWorkflow.id.desc())
    if status:
        query = query.where(OffboardingWorkflow.status == status)
    with get_db_session() as db:
        return [_workflow_response(w) for w in db.scalars(query).all()]


@router.get("/workflows/{workflow_id}", response_model=OffboardingWorkflowResponse)
async def get_workflow(workflow_id: int, admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        return _workflow_response(_get_workflow_or_404(db, workflow_id))


@router.post("/start", response_model=OffboardingWorkflowResponse, status_code=201)
async def start(
    request: StartOffboardingRequest,
    background_tasks: BackgroundTasks,
    admin: dict = Depends(get_hr_admin)
):
    """
    Start offboarding.

    Immediate offboarding runs its automated tasks in the background once
    the response is sent; otherwise the workflow waits for its end date.
    """
    if not request.is_immediate and request.end_date is None:
        raise HTTPException(status_code=400, detail="End date is required unless offboarding is immediate")

    with get_db_session() as db:
        employee = db.get(Employee, request.employee_id)
        if not employee:
            raise HTTPException(status_code=404, detail="Employee not found")
        if employee.status == EmployeeStatus.EXITED:
            raise HTTPException(status_code=400, detail="Employee has already exited")
        if has_active_workflow(db, employee.id):
            raise HTTPException(status_code=400, detail="Employee already has an active offboarding workflow")

        workflow = start_offboarding(
            db,
            employee,
            admin,
            end_date=request.end_date,
            is_immediate=request.is_immediate,
            reason=request.reason,
            extra_tasks=request.extra_tasks,
        )
        response = _workflow_response(workflow)
        payload = {"workflow_id": workflow.id, "employee": employee_payload(employee)}
        workflow_id = workflow.id

    background_tasks.add_task(send_outbound_event, "offboarding.started", payload, admin)
    if request.is_immediate:
        background_tasks.add_task(run_workflow_in_background, workflow_id, admin)

    logger.info(f"Offboarding {workflow_id} started for employee {request.employee_id}")
    return response


@router.post("/workflows/{workflow_id}/cancel", response_model=OffboardingWorkflowResponse)
async def cancel(workflow_id: int, admin: dict = Depends(get_hr_admin)):
    with get_db_session() as db:
        workflow = _get_workflow_or_404(db, workflow_id)
        if workflow.status == WorkflowStatus.COMPLETED:
            raise HTTPException(status_code=400, detail="Cannot cancel completed offboarding")
        cancel_workflow(workflow)
        db.flush()
        return _workflow_response(workflow)


# ============================================================
# TASKS
# ============================================================

@router.post("/tasks/{task_id}/run", response_model=WorkflowTaskResponse)
async def run(task_id: int, background_tasks: BackgroundTasks, admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        task = _get_open_task_or_404(db, task_id)
        if task.type != TaskType.AUTOMATED:
            raise HTTPException(status_code=400, detail="Use complete_manual_task for manual tasks")
        run_task(db, task, actor=admin)
        _after_task_change(db, task, background_tasks, admin)
        return WorkflowTaskResponse.model_validate(task)


@router.post("/tasks/{task_id}/complete", response_model=WorkflowTaskResponse)
async def complete_task(
    task_id: int,
    request: CompleteTaskRequest,
    background_tasks: BackgroundTasks,
    admin: dict = Depends(get_admin)
):
    with get_db_session() as db:
        task = _get_open_task_or_404(db, task_id)
        complete_manual_task(task, admin, request.notes)
        _after_task_change(db, task, background_tasks, admin)
        return WorkflowTaskResponse.model_validate(task)


@router.post("/tasks/{task_id}/skip", response_model=WorkflowTaskResponse)
async def skip(
    task_id: int,
    request: SkipTaskRequest,
    background_tasks: BackgroundTasks,
    admin: dict = Depends(get_admin)
):
    with get_db_session() as db:
        task = _get_open_task_or_404(db, task_id)
        skip_task(task, admin, request.reason)
        _after_task_change(db, task, background_tasks, admin)
        return WorkflowTaskResponse.model_validate(task)


# ============================================================
# SCHEDULED
# ============================================================

@router.get("/scheduled-today", response_model=List[OffboardingWorkflowResponse])
async def get_scheduled_for_today(admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        return [_workflow_response(w) for w in scheduled_for_today(db)]


@router.post("/run-scheduled", response_model=List[OffboardingWorkflowResponse])
async def run_scheduled(background_tasks: BackgroundTasks, admin: dict = Depends(get_admin)):
    """Move today's PENDING workflows to IN_PROGRESS and run their automated tasks."""
    with get_db_session() as db:
        workflows = scheduled_for_today(db)
        completed = []
        for workflow in workflows:
            workflow.status = WorkflowStatus.IN_PROGRESS
            workflow.started_at = utcnow()
            if run_automated_tasks(db, workflow, actor=admin):
                completed.append(_completed_event(workflow))
        db.flush()
        response = [_workflow_response(w) for w in workflows]

    for payload in completed:
        background_tasks.add_task(send_outbound_event, "offboarding.completed", payload, admin)
    logger.info(f"Ran {len(response)} scheduled offboarding workflow(s)")
    return response
