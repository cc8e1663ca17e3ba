"""
Onboarding Routes

Task templates (admin):
GET /onboarding/templates - List templates in order
POST /onboarding/templates - Create template
PUT /onboarding/templates/{template_id} - Update template
DELETE /onboarding/templates/{template_id} - Delete and renumber
POST /onboarding/templates/{template_id}/move - Swap with neighbour (UP / DOWN)
POST /onboarding/templates/reset - Restore the default templates

Workflows:
GET /onboarding/workflows - List workflows (admin)
GET /onboarding/workflows/{workflow_id} - Workflow with tasks (admin)
GET /onboarding/employees/{employee_id}/workflow - Latest workflow of an employee (admin)
POST /onboarding/start-new - Set up a new hire and start onboarding (HR admin)
POST /onboarding/start - Start onboarding for a signed employee (HR admin)
POST /onboarding/tasks/{task_id}/run - Run an automated task (admin)
POST /onboarding/tasks/{task_id}/complete - Complete a manual task (admin)
POST /onboarding/tasks/{task_id}/skip - Skip a task (admin)
GET /onboarding/roster - Onboarding status sheet (admin)

Employee self-service (no auth, token in URL):
GET /onboarding/public/{token} - Profile and tasks
PUT /onboarding/public/{token}/info - Fill in personal details
GET /onboarding/catalog - Employee checklist
"""

import logging
import math
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from googleapiclient.errors import HttpError
from sqlalchemy import func, select

from peopleos.core.auth import get_admin, get_hr_admin
from peopleos.db.postgres import get_db_session
from peopleos.models import App, Employee, OnboardingTask, OnboardingTaskTemplate, OnboardingWorkflow, utcnow
from peopleos.models.enums import EmployeeStatus, TaskStatus, TaskType, WorkflowStatus
from peopleos.schemas.schemas import (
    CatalogTask,
    CompleteTaskRequest,
    EmployeeInfoUpdate,
    MessageResponse,
    MoveDirection,
    MoveTemplateRequest,
    OnboardingTaskTemplateCreate,
    OnboardingTaskTemplateResponse,
    OnboardingTaskTemplateUpdate,
    OnboardingWorkflowList,
    OnboardingWorkflowResponse,
    PublicOnboardingResponse,
    RosterRow,
    SelfServiceProfile,
    SkipTaskRequest,
    StartNewOnboardingRequest,
    StartOnboardingRequest,
    TaskTemplateKind,
    WorkflowTaskResponse,
)
from peopleos.services.google_sheets_service import GoogleSheetsService, SheetsNotConfigured
from peopleos.services.integrations.base import employee_payload
from peopleos.services.integrations.outbound import send_outbound_event
from peopleos.services.onboarding_service import (
    TASK_CATALOG,
    automation_type_for,
    check_and_complete_workflow,
    complete_manual_task,
    create_workflow,
    has_active_workflow,
    renumber_templates,
    reset_templates,
    run_automated_task,
    send_welcome_email,
    skip_task,
    workflow_progress,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onboarding", tags=["Onboarding"])

STARTABLE_STATUSES = (EmployeeStatus.OFFER_SIGNED, EmployeeStatus.HIRED_PENDING_START)
META_FIELDS = ("jira_board_id", "bonus", "probation_period", "probation_goals", "probation_goals_url")
CLOSED_WORKFLOW_STATUSES = (WorkflowStatus.COMPLETED, WorkflowStatus.CANCELLED)


# ============================================================
# HELPERS
# ============================================================

def _get_template_or_404(db, template_id: int) -> OnboardingTaskTemplate:
    template = db.get(OnboardingTaskTemplate, template_id)
    if not template:
        raise HTTPException(status_code=404, detail="Task template not found")
    return template


def _get_workflow_or_404(db, workflow_id: int) -> OnboardingWorkflow:
    workflow = db.get(OnboardingWorkflow, workflow_id)
    if not workflow:
        raise HTTPException(status_code=404, detail="Onboarding workflow not found")
    return workflow


def _get_task_or_404(db, task_id: int) -> OnboardingTask:
    task = db.get(OnboardingTask, task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


def _get_open_task_or_404(db, task_id: int) -> OnboardingTask:
    """Tasks of a completed or cancelled workflow are read-only."""
    task = _get_task_or_404(db, task_id)
    if task.workflow.status in CLOSED_WORKFLOW_STATUSES:
        raise HTTPException(status_code=400, detail="This workflow is already closed")
    return task


def _get_employee_or_404(db, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if not employee:
        raise HTTPException(status_code=404, detail="Employee not found")
    return employee


def _workflow_response(workflow: OnboardingWorkflow) -> OnboardingWorkflowResponse:
    return OnboardingWorkflowResponse(
        id=workflow.id,
        employee_id=workflow.employee_id,
        employee_name=workflow.employee.full_name,
        status=workflow.status,
        access_token=workflow.access_token,
        token_expires_at=workflow.token_expires_at,
        started_at=workflow.started_at,
        completed_at=workflow.completed_at,
        created_at=workflow.created_at,
        progress=workflow_progress(workflow.tasks),
        tasks=[WorkflowTaskResponse.model_validate(t) for t in workflow.tasks],
    )


def _template_app(db, app_id: Optional[int]) -> App:
    if app_id is None:
        raise HTTPException(status_code=400, detail="Select an integration app")
    app = db.get(App, app_id)
    if not app:
        raise HTTPException(status_code=404, detail="App not found")
    return app


def _set_kind(db, template: OnboardingTaskTemplate, kind: TaskTemplateKind, app_id: Optional[int]) -> None:
    if kind == TaskTemplateKind.INTEGRATION:
        app = _template_app(db, app_id)
        template.type = TaskType.AUTOMATED
        template.app_id = app.id
        template.app_type = app.type
        template.automation_type = automation_type_for(app.type)
    else:
        template.type = TaskType.MANUAL
        template.app_id = None
        template.app_type = None
        template.automation_type = None


def _start(db, employee: Employee, admin: dict) -> OnboardingWorkflow:
    if has_active_workflow(db, employee.id):
        raise HTTPException(status_code=400, detail="Employee already has an active onboarding workflow")
    return create_workflow(db, employee, actor=admin)


def _after_task_change(db, task, background_tasks: BackgroundTasks, actor: dict) -> None:
    """Run the completion check and announce a completed onboarding."""
    db.flush()
    workflow = task.workflow
    if check_and_complete_workflow(db, workflow, actor=actor):
        background_tasks.add_task(
            send_outbound_event,
            "onboarding.completed",
            {"workflow_id": workflow.id, "employee": employee_payload(workflow.employee)},
            actor,
        )


def _get_workflow_by_token(db, token: str) -> OnboardingWorkflow:
    workflow = db.scalar(select(OnboardingWorkflow).where(OnboardingWorkflow.access_token == token))
    if not workflow or workflow.status == WorkflowStatus.CANCELLED:
        raise HTTPException(status_code=404, detail="Invalid or expired link")
    if workflow.token_expires_at < utcnow():
        raise HTTPException(status_code=401, detail="This link has expired")
    return workflow


# ============================================================
# TASK TEMPLATES
# ============================================================

@router.get("/templates", response_model=List[OnboardingTaskTemplateResponse])
async def list_templates(admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        templates = db.scalars(
            select(OnboardingTaskTemplate).order_by(OnboardingTaskTemplate.sort_order, OnboardingTaskTemplate.id)
        ).all()
        return [OnboardingTaskTemplateResponse.model_validate(t) for t in templates]


@router.post("/templates", response_model=OnboardingTaskTemplateResponse, status_code=201)
async def create_template(request: OnboardingTaskTemplateCreate, admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        max_order = db.scalar(select(func.max(OnboardingTaskTemplate.sort_order))) or 0
        template = OnboardingTaskTemplate(
            title=request.title.strip(),
            description=request.description,
            sort_order=max_order + 1,
            is_active=True,
        )
        _set_kind(db, template, request.kind, request.app_id)
        db.add(template)
        db.flush()
        return OnboardingTaskTemplateResponse.model_validate(template)


@router.post("/templates/reset", response_model=List[OnboardingTaskTemplateResponse])
async def reset_to_defaults(admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        reset_templates(db)
        templates = db.scalars(select(OnboardingTaskTemplate).order_by(OnboardingTaskTemplate.sort_order)).all()
        return [OnboardingTaskTemplateResponse.model_validate(t) for t in templates]


@router.put("/templates/{template_id}", response_model=OnboardingTaskTemplateResponse)
async def update_template(
    template_id: int,
    request: OnboardingTaskTemplateUpdate,
    admin: dict = Depends(get_admin)
):
    """Switching kind sets or clears the app and automation fields."""
    with get_db_session() as db:
        template = _get_template_or_404(db, template_id)

        if request.title is not None:
            template.title = request.title.strip()
        if request.description is not None:
            template.description = request.description
        if request.is_active is not None:
            template.is_active = request.is_active
        if request.kind is not None:
            _set_kind(db, template, request.kind, request.app_id if request.app_id is not None else template.app_id)
        elif request.app_id is not None and template.type == TaskType.AUTOMATED:
            _set_kind(db, template, TaskTemplateKind.INTEGRATION, request.app_id)

        db.flush()
        return OnboardingTaskTemplateResponse.model_validate(template)


@router.delete("/templates/{template_id}", response_model=MessageResponse)
async def delete_template(template_id: int, admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        db.delete(_get_template_or_404(db, template_id))
        db.flush()
        renumber_templates(db)
    return MessageResponse(message="Task template deleted")


@router.post("/templates/{template_id}/move", response_model=List[OnboardingTaskTemplateResponse])
async def move_template(template_id: int, request: MoveTemplateRequest, admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        _get_template_or_404(db, template_id)
        renumber_templates(db)
        db.flush()

        templates = db.scalars(
            select(OnboardingTaskTemplate).order_by(OnboardingTaskTemplate.sort_order, OnboardingTaskTemplate.id)
        ).all()
        index = next(i for i, t in enumerate(templates) if t.id == template_id)
        neighbour = index - 1 if request.direction == MoveDirection.UP else index + 1
        if 0 <= neighbour < len(templates):
            current, other = templates[index], templates[neighbour]
            current.sort_order, other.sort_order = other.sort_order, current.sort_order
            templates[index], templates[neighbour] = other, current

        return [OnboardingTaskTemplateResponse.model_validate(t) for t in templates]


# ============================================================
# WORKFLOWS
# ============================================================

@router.get("/workflows", response_model=OnboardingWorkflowList)
async def list_workflows(
    status: Optional[WorkflowStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: dict = Depends(get_admin)
):
    conditions = [OnboardingWorkflow.status == status] if status else []
    with get_db_session() as db:
        total = db.scalar(select(func.count(OnboardingWorkflow.id)).where(*conditions))
        workflows = db.scalars(
            select(OnboardingWorkflow)
            .where(*conditions)
            .order_by(OnboardingWorkflow.created_at.desc(), OnboardingWorkflow.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return OnboardingWorkflowList(
            workflows=[_workflow_response(w) for w in workflows],
            total=total,
            page=page,
            pages=math.ceil(total / limit) if total else 0,
        )


@router.get("/workflows/{workflow_id}", response_model=OnboardingWorkflowResponse)
async def get_workflow(workflow_id: int, admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        return _workflow_response(_get_workflow_or_404(db, workflow_id))


@router.get("/employees/{employee_id}/workflow", response_model=Optional[OnboardingWorkflowResponse])
async def get_by_employee(employee_id: int, admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        workflow = db.scalar(
            select(OnboardingWorkflow)
            .where(OnboardingWorkflow.employee_id == employee_id)
            .order_by(OnboardingWorkflow.created_at.desc(), OnboardingWorkflow.id.desc())
        )
        return _workflow_response(workflow) if workflow else None


@router.post("/start-new", response_model=OnboardingWorkflowResponse, status_code=201)
async def start_new(
    request: StartNewOnboardingRequest,
    background_tasks: BackgroundTasks,
    admin: dict = Depends(get_hr_admin)
):
    """
    Record the hire details on the employee and start onboarding.

    The employee becomes HIRED_PENDING_START; probation and bonus details
    are kept in the employee meta.
    """
    with get_db_session() as db:
        employee = _get_employee_or_404(db, request.employee_id)
        if has_active_workflow(db, employee.id):
            raise HTTPException(status_code=400, detail="Employee already has an active onboarding workflow")
        if request.manager_id is not None and not db.get(Employee, request.manager_id):
            raise HTTPException(status_code=404, detail="Manager not found")

        employee.start_date = request.start_date
        employee.status = EmployeeStatus.HIRED_PENDING_START
        for field in ("manager_id", "department", "work_email", "job_title"):
            value = getattr(request, field)
            if value is not None:
                setattr(employee, field, value)

        meta_updates = {k: getattr(request, k) for k in META_FIELDS if getattr(request, k) is not None}
        if meta_updates:
            employee.meta = {**(employee.meta or {}), **meta_updates}
        db.flush()

        workflow = _start(db, employee, admin)
        response = _workflow_response(workflow)
        payload = {"workflow_id": workflow.id, "employee": employee_payload(employee)}
        welcome = (employee.personal_email, employee.full_name, workflow.access_token)

    background_tasks.add_task(send_welcome_email, *welcome)
    background_tasks.add_task(send_outbound_event, "onboarding.started", payload, admin)
    return response


@router.post("/start", response_model=OnboardingWorkflowResponse, status_code=201)
async def start(
    request: StartOnboardingRequest,
    background_tasks: BackgroundTasks,
    admin: dict = Depends(get_hr_admin)
):
    with get_db_session() as db:
        employee = _get_employee_or_404(db, request.employee_id)
        if employee.status not in STARTABLE_STATUSES:
            raise HTTPException(
                status_code=400,
                detail="Employee must be in OFFER_SIGNED or HIRED_PENDING_START status"
            )

        workflow = _start(db, employee, admin)
        response = _workflow_response(workflow)
        payload = {"workflow_id": workflow.id, "employee": employee_payload(employee)}
        welcome = (employee.personal_email, employee.full_name, workflow.access_token)

    background_tasks.add_task(send_welcome_email, *welcome)
    background_tasks.add_task(send_outbound_event, "onboarding.started", payload, admin)
    return response


# ============================================================
# TASKS
# ============================================================

@router.post("/tasks/{task_id}/run", response_model=WorkflowTaskResponse)
async def run_task(task_id: int, background_tasks: BackgroundTasks, admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        task = _get_open_task_or_404(db, task_id)
        if task.type != TaskType.AUTOMATED:
            raise HTTPException(status_code=400, detail="This is not an automated task")

        run_automated_task(db, task, actor=admin)
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
        if task.type != TaskType.MANUAL:
            raise HTTPException(status_code=400, detail="Only manual tasks can be completed by hand")
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
    """Skip a task. send_byod_agreement drafts the BYOD agreement offer."""
    with get_db_session() as db:
        task = _get_open_task_or_404(db, task_id)
        offer = skip_task(db, task, admin, request.reason, request.send_byod_agreement)
        if offer is not None:
            logger.info(f"BYOD agreement offer {offer.id} drafted for employee {offer.employee_id}")
        _after_task_change(db, task, background_tasks, admin)
        return WorkflowTaskResponse.model_validate(task)


# ============================================================
# ROSTER / CATALOG
# ============================================================

@router.get("/roster", response_model=List[RosterRow])
async def get_roster(admin: dict = Depends(get_admin)):
    """Rows of the onboarding status sheet (Status!A2:J)."""
    try:
        return GoogleSheetsService().fetch_onboarding_roster()
    except SheetsNotConfigured as e:
        raise HTTPException(status_code=503, detail=str(e))
    except HttpError as e:
        logger.error(f"Failed to read onboarding roster: {e}")
        raise HTTPException(status_code=502, detail="Failed to read the onboarding sheet")


@router.get("/catalog", response_model=List[CatalogTask])
async def task_catalog():
    return TASK_CATALOG


# ============================================================
# SELF-SERVICE (TOKEN)
# ============================================================

@router.get("/public/{token}", response_model=PublicOnboardingResponse)
async def get_by_token(token: str):
    with get_db_session() as db:
        workflow = _get_workflow_by_token(db, token)
        return PublicOnboardingResponse(
            workflow_id=workflow.id,
            status=workflow.status,
            token_expires_at=workflow.token_expires_at,
            employee=SelfServiceProfile.model_validate(workflow.employee),
            tasks=[WorkflowTaskResponse.model_validate(t) for t in workflow.tasks],
        )


@router.put("/public/{token}/info", response_model=SelfServiceProfile)
async def update_employee_info(token: str, request: EmployeeInfoUpdate):
    """The new hire fills in personal, bank and former employment details."""
    with get_db_session() as db:
        employee = _get_workflow_by_token(db, token).employee
        changes = request.model_dump(exclude_unset=True)

        for field, value in changes.items():
            setattr(employee, field, value)
        if any(k.startswith("former_") for k in changes):
            employee.former_employment_submitted_at = utcnow()

        db.flush()
        return SelfServiceProfile.model_validate(employee)
