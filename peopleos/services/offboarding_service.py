"""
Offboarding Service - exit workflows and access removal.

An immediate offboarding starts right away and runs its automated tasks
in the background; a scheduled one waits (PENDING) until its end date and
is picked up by run_scheduled.
"""
import logging
from datetime import datetime, time
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from peopleos.db.postgres import get_db_session
from peopleos.models import (
    App,
    AppAccount,
    Employee,
    OffboardingTask,
    OffboardingTaskTemplate,
    OffboardingWorkflow,
    utcnow,
)
from peopleos.models.enums import AppAccountStatus, AppType, EmployeeStatus, TaskStatus, TaskType, WorkflowStatus
from peopleos.services.audit_service import log_audit
from peopleos.services.integrations.base import employee_payload
from peopleos.services.integrations.outbound import send_outbound_event
from peopleos.services.integrations.provisioning import deprovision_employee

logger = logging.getLogger(__name__)

DEFAULT_OFFBOARDING_TASKS = [
    {"title": "Collect company equipment", "type": TaskType.MANUAL},
    {"title": "Revoke building/office access", "type": TaskType.MANUAL},
    {"title": "Transfer files and documents", "type": TaskType.MANUAL},
    {"title": "Exit interview", "type": TaskType.MANUAL},
    {"title": "Deprovision Google Workspace account", "type": TaskType.AUTOMATED,
     "automation_type": "deprovision_app", "app_type": AppType.GOOGLE_WORKSPACE},
    {"title": "Deprovision Slack account", "type": TaskType.AUTOMATED,
     "automation_type": "deprovision_app", "app_type": AppType.SLACK},
    {"title": "Remove from StandupNinja teams", "type": TaskType.AUTOMATED,
     "automation_type": "deprovision_app", "app_type": AppType.STANDUPNINJA},
]

DEFAULT_EXTRA_TASKS = ["Handover Docs"]

# FAILED counts as settled: someone has to follow up by hand
OPEN_TASK_STATUSES = {TaskStatus.PENDING, TaskStatus.IN_PROGRESS}
ACTIVE_WORKFLOW_STATUSES = (WorkflowStatus.PENDING, WorkflowStatus.IN_PROGRESS)


def ensure_default_templates(db: Session) -> int:
    if db.scalar(select(func.count(OffboardingTaskTemplate.id))):
        return 0
    for index, default in enumerate(DEFAULT_OFFBOARDING_TASKS, start=1):
        db.add(OffboardingTaskTemplate(
            title=default["title"],
            type=default["type"],
            automation_type=default.get("automation_type"),
            app_type=default.get("app_type"),
            sort_order=index,
            is_active=True,
        ))
    db.flush()
    logger.info("Seeded default offboarding task templates")
    return len(DEFAULT_OFFBOARDING_TASKS)


def has_active_workflow(db: Session, employee_id: int) -> bool:
    return db.scalar(
        select(OffboardingWorkflow.id).where(
            OffboardingWorkflow.employee_id == employee_id,
            OffboardingWorkflow.status.in_(ACTIVE_WORKFLOW_STATUSES),
        ).limit(1)
    ) is not None


def build_tasks(db: Session, employee: Employee, extra_tasks: Optional[List[str]] = None) -> List[OffboardingTask]:
    templates = db.scalars(
        select(OffboardingTaskTemplate)
        .where(OffboardingTaskTemplate.is_active.is_(True))
        .order_by(OffboardingTaskTemplate.sort_order)
    ).all()

    tasks = []
    covered_app_ids = set()
    for template in templates:
        app_id = None
        if template.type == TaskType.AUTOMATED:
            app = db.scalar(select(App).where(App.type == template.app_type).order_by(App.id))
            if app is None:
                continue
            app_id = app.id
            covered_app_ids.add(app.id)
        tasks.append(OffboardingTask(
            title=template.title,
            description=template.description,
            type=template.type,
            automation_type=template.automation_type,
            app_id=app_id,
            status=TaskStatus.PENDING,
        ))

    for title in (DEFAULT_EXTRA_TASKS if extra_tasks is None else extra_tasks):
        if title and title.strip():
            tasks.append(OffboardingTask(title=title.strip(), type=TaskType.MANUAL, status=TaskStatus.PENDING))

    accounts = db.scalars(
        select(AppAccount).where(
            AppAccount.employee_id == employee.id,
            AppAccount.status == AppAccountStatus.ACTIVE,
        )
    ).all()
    for account in accounts:
        if account.app_id in covered_app_ids:
            continue
        covered_app_ids.add(account.app_id)
        tasks.append(OffboardingTask(
            title=f"Deprovision {account.app.name} account",
            type=TaskType.AUTOMATED,
            automation_type="deprovision_app",
            app_id=account.app_id,
            status=TaskStatus.PENDING,
        ))

    for index, task in enumerate(tasks, start=1):
        task.sort_order = index
    return tasks


def start_offboarding(
    db: Session,
    employee: Employee,
    actor: dict,
    end_date: Optional[datetime],
    is_immediate: bool,
    reason: Optional[str] = None,
    extra_tasks: Optional[List[str]] = None,
) -> OffboardingWorkflow:
    now = utcnow()
    workflow = OffboardingWorkflow(
        employee_id=employee.id,
        status=WorkflowStatus.IN_PROGRESS if is_immediate else WorkflowStatus.PENDING,
        is_immediate=is_immediate,
        scheduled_for=now if is_immediate else end_date,
        end_date=end_date or (now if is_immediate else None),
        reason=reason,
        started_at=now if is_immediate else None,
        created_by_id=actor["user_id"],
    )
    workflow.tasks = build_tasks(db, employee, extra_tasks)
    db.add(workflow)

    employee.status = EmployeeStatus.OFFBOARDING
    employee.end_date = workflow.end_date
    db.flush()

    log_audit(db, "OFFBOARDING_STARTED", "offboarding_workflow", workflow.id, actor=actor,
              metadata={"employee_id": employee.id, "is_immediate": is_immediate, "reason": reason})
    return workflow


def run_task(db: Session, task: OffboardingTask, actor: Optional[dict] = None) -> OffboardingTask:
    """Deprovision the task's app account and record the outcome."""
    task.status = TaskStatus.IN_PROGRESS
    task.attempts = (task.attempts or 0) + 1
    db.flush()

    app = db.get(App, task.app_id) if task.app_id else None
    if app is None:
        task.status = TaskStatus.FAILED
        task.status_message = "No app linked to this task"
        return task

    result = deprovision_employee(db, task.workflow.employee, app, actor=actor)
    if result.success:
        task.status = TaskStatus.SUCCESS
        task.status_message = None
        task.completed_at = utcnow()
        task.completed_by_id = actor["user_id"] if actor else None
    else:
        task.status = TaskStatus.FAILED
        task.status_message = result.error
        logger.warning(f"Offboarding task {task.id} failed: {result.error}")
    return task


def complete_manual_task(task: OffboardingTask, actor: dict, notes: Optional[str] = None) -> OffboardingTask:
    task.status = TaskStatus.SUCCESS
    task.notes = notes
    task.completed_at = utcnow()
    task.completed_by_id = actor["user_id"]
    return task


def skip_task(task: OffboardingTask, actor: dict, reason: Optional[str] = None) -> OffboardingTask:
    task.status = TaskStatus.SKIPPED
    task.status_message = reason
    task.completed_at = utcnow()
    task.completed_by_id = actor["user_id"]
    return task


def check_and_complete_workflow(db: Session, workflow: OffboardingWorkflow, actor: Optional[dict] = None) -> bool:
    """Complete the workflow when no task is pending. Returns True if it just completed."""
    if workflow.status in (WorkflowStatus.COMPLETED, WorkflowStatus.CANCELLED):
        return False
    if any(task.status in OPEN_TASK_STATUSES for task in workflow.tasks):
        return False

    workflow.status = WorkflowStatus.COMPLETED
    workflow.completed_at = utcnow()
    workflow.employee.status = EmployeeStatus.EXITED
    log_audit(db, "OFFBOARDING_COMPLETED", "offboarding_workflow", workflow.id, actor=actor,
              metadata={"employee_id": workflow.employee_id})
    logger.info(f"Offboarding workflow {workflow.id} completed")
    return True


def cancel_workflow(workflow: OffboardingWorkflow) -> None:
    workflow.status = WorkflowStatus.CANCELLED
    workflow.employee.status = EmployeeStatus.ACTIVE
    workflow.employee.end_date = None


def end_of_today() -> datetime:
    return datetime.combine(utcnow().date(), time.max)


def scheduled_for_today(db: Session) -> List[OffboardingWorkflow]:
    return db.scalars(
        select(OffboardingWorkflow)
        .where(
            OffboardingWorkflow.status == WorkflowStatus.PENDING,
            OffboardingWorkflow.scheduled_for <= end_of_today(),
        )
        .order_by(OffboardingWorkflow.scheduled_for)
    ).all()


def run_automated_tasks(db: Session, workflow: OffboardingWorkflow, actor: Optional[dict] = None) -> bool:
    """Run every pending automated task, then check completion. Returns True if completed."""
    for task in workflow.tasks:
        if task.type == TaskType.AUTOMATED and task.status == TaskStatus.PENDING:
            run_task(db, task, actor)
    return check_and_complete_workflow(db, workflow, actor)


def run_workflow_in_background(workflow_id: int, actor: Optional[dict] = None) -> None:
    """Background task entry point for immediate offboarding."""
    try:
        with get_db_session() as db:
            workflow = db.get(OffboardingWorkflow, workflow_id)
            if workflow is None:
                logger.warning(f"Offboarding workflow {workflow_id} vanished before it could run")
                return
            completed = run_automated_tasks(db, workflow, actor)
            employee_data = employee_payload(workflow.employee)
    except Exception as e:
        logger.error(f"Offboarding workflow {workflow_id} failed in background: {e}")
        return

    if completed:
        send_outbound_event("offboarding.completed", {"workflow_id": workflow_id, "employee": employee_data}, actor)
