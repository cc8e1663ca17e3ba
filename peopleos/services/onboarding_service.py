"""
Onboarding Service - task templates, workflow creation and task execution.

WORKFLOW:
1. HR starts onboarding for a hired employee
2. Tasks are built from the active templates (automated ones only when
   the employee matches a provisioning rule of the target app)
3. Automated tasks call the integration connectors; manual ones are ticked off
4. When nothing is left open the workflow completes and the employee is ACTIVE
"""
import logging
import uuid
from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from peopleos.core.config import get_settings
from peopleos.models import (
    App,
    Employee,
    Offer,
    OfferEvent,
    OfferTemplate,
    OnboardingTask,
    OnboardingTaskTemplate,
    OnboardingWorkflow,
    utcnow,
)
from peopleos.models.enums import (
    AppType,
    EmployeeStatus,
    OfferStatus,
    TaskStatus,
    TaskType,
    WorkflowStatus,
)
from peopleos.services.audit_service import log_audit
from peopleos.services.email_service import send_email
from peopleos.services.integrations.provisioning import provision_employee
from peopleos.services.integrations.rules import has_matching_rule
from peopleos.utils.templating import render_template

logger = logging.getLogger(__name__)
settings = get_settings()

ACCESS_TOKEN_DAYS = 7

NOT_CONNECTED_MESSAGE = (
    "Application not connected. Connect it in Settings → Applications, then run again (or skip)."
)

DEFAULT_ONBOARDING_TASKS = [
    {"title": "Provision Google Workspace account", "type": TaskType.AUTOMATED,
     "automation_type": "provision_google", "app_type": AppType.GOOGLE_WORKSPACE},
    {"title": "Provision Slack account", "type": TaskType.AUTOMATED,
     "automation_type": "provision_slack", "app_type": AppType.SLACK},
    {"title": "Confirm laptop/hardware has been ordered", "type": TaskType.MANUAL},
    {"title": "Add to stand-up app", "type": TaskType.MANUAL},
    {"title": "Schedule orientation meeting", "type": TaskType.MANUAL},
    {"title": "Add to team calendar", "type": TaskType.MANUAL},
]

AUTOMATION_BY_APP_TYPE = {
    AppType.GOOGLE_WORKSPACE: "provision_google",
    AppType.SLACK: "provision_slack",
    AppType.STANDUPNINJA: "provision_standupninja",
}

APP_TYPE_BY_AUTOMATION = {v: k for k, v in AUTOMATION_BY_APP_TYPE.items()}

OPEN_TASK_STATUSES = {TaskStatus.PENDING, TaskStatus.IN_PROGRESS, TaskStatus.FAILED}
ACTIVE_WORKFLOW_STATUSES = (WorkflowStatus.PENDING, WorkflowStatus.IN_PROGRESS)


def automation_type_for(app_type: AppType) -> str:
    return AUTOMATION_BY_APP_TYPE.get(app_type, "provision_app")


# ============================================================
# TASK TEMPLATES
# ============================================================

def ensure_default_templates(db: Session) -> int:
    """Seed the default templates when the table is empty. Returns rows created."""
    if db.scalar(select(func.count(OnboardingTaskTemplate.id))):
        return 0
    for index, default in enumerate(DEFAULT_ONBOARDING_TASKS, start=1):
        db.add(OnboardingTaskTemplate(
            title=default["title"],
            type=default["type"],
            automation_type=default.get("automation_type"),
            app_type=default.get("app_type"),
            sort_order=index,
            is_active=True,
        ))
    db.flush()
    logger.info("Seeded default onboarding task templates")
    return len(DEFAULT_ONBOARDING_TASKS)


def reset_templates(db: Session) -> int:
    for template in db.scalars(select(OnboardingTaskTemplate)).all():
        db.delete(template)
    db.flush()
    return ensure_default_templates(db)


def renumber_templates(db: Session) -> None:
    templates = db.scalars(
        select(OnboardingTaskTemplate).order_by(OnboardingTaskTemplate.sort_order, OnboardingTaskTemplate.id)
    ).all()
    for index, template in enumerate(templates, start=1):
        template.sort_order = index


# ============================================================
# BUILDING TASKS
# ============================================================

def _app_for_template(db: Session, template: OnboardingTaskTemplate) -> Optional[App]:
    if template.app_id:
        return db.get(App, template.app_id)
    if template.app_type:
        return db.scalar(select(App).where(App.type == template.app_type).order_by(App.id))
    return None


def build_tasks(db: Session, employee: Employee) -> List[OnboardingTask]:
    """Unsaved OnboardingTask rows for an employee, in template order."""
    templates = db.scalars(
        select(OnboardingTaskTemplate)
        .where(OnboardingTaskTemplate.is_active.is_(True))
        .order_by(OnboardingTaskTemplate.sort_order)
    ).all()

    tasks = []
    covered_app_ids = set()
    for template in templates:
        app_id = None
        if template.type == TaskType.AUTOMATED:
            app = _app_for_template(db, template)
            if app is None or not has_matching_rule(employee, app.rules):
                continue
            app_id = app.id
            covered_app_ids.add(app.id)
        tasks.append(OnboardingTask(
            title=template.title,
            description=template.description,
            type=template.type,
            automation_type=template.automation_type,
            app_id=app_id,
            status=TaskStatus.PENDING,
        ))

    # Apps with a matching rule but no template still get a provisioning task
    apps = db.scalars(select(App).where(App.is_enabled.is_(True)).order_by(App.name)).all()
    for app in apps:
        if app.id in covered_app_ids or not has_matching_rule(employee, app.rules):
            continue
        tasks.append(OnboardingTask(
            title=f"Provision {app.name} access",
            type=TaskType.AUTOMATED,
            automation_type="provision_app",
            app_id=app.id,
            status=TaskStatus.PENDING,
        ))

    for index, task in enumerate(tasks, start=1):
        task.sort_order = index
    return tasks


# ============================================================
# WORKFLOWS
# ============================================================

def has_active_workflow(db: Session, employee_id: int) -> bool:
    return db.scalar(
        select(OnboardingWorkflow.id).where(
            OnboardingWorkflow.employee_id == employee_id,
            OnboardingWorkflow.status.in_(ACTIVE_WORKFLOW_STATUSES),
        ).limit(1)
    ) is not None


def welcome_link(token: str) -> str:
    return f"{settings.app_base_url}/welcome/{token}"


def send_welcome_email(to: str, full_name: str, token: str) -> bool:
    link = welcome_link(token)
    return send_email(
        to,
        f"Welcome to {settings.app_name}!",
        f"<p>Hi {full_name},</p>"
        "<p>We're excited to have you on board. Please complete your onboarding here:</p>"
        f'<p><a href="{link}">{link}</a></p>'
        f"<p>This link is valid for {ACCESS_TOKEN_DAYS} days.</p>",
    )


def create_workflow(db: Session, employee: Employee, actor: Optional[dict] = None) -> OnboardingWorkflow:
    """Create an IN_PROGRESS workflow with its tasks. The welcome email goes out after commit."""
    now = utcnow()
    workflow = OnboardingWorkflow(
        employee_id=employee.id,
        status=WorkflowStatus.IN_PROGRESS,
        access_token=uuid.uuid4().hex,
        token_expires_at=now + timedelta(days=ACCESS_TOKEN_DAYS),
        started_at=now,
        created_by_id=actor["user_id"] if actor else None,
    )
    workflow.tasks = build_tasks(db, employee)
    db.add(workflow)
    db.flush()

    log_audit(
        db, "ONBOARDING_STARTED", "onboarding_workflow", workflow.id, actor=actor,
        metadata={"employee_id": employee.id, "task_count": len(workflow.tasks)},
    )
    logger.info(f"Onboarding workflow {workflow.id} started for employee {employee.id}")
    return workflow


def workflow_progress(tasks) -> int:
    if not tasks:
        return 0
    done = sum(1 for t in tasks if t.status in (TaskStatus.SUCCESS, TaskStatus.SKIPPED))
    return round(done / len(tasks) * 100)


def check_and_complete_workflow(db: Session, workflow: OnboardingWorkflow, actor: Optional[dict] = None) -> bool:
    """Complete the workflow when no task is open. Returns True if it just completed."""
    if workflow.status in (WorkflowStatus.COMPLETED, WorkflowStatus.CANCELLED):
        return False
    if any(task.status in OPEN_TASK_STATUSES for task in workflow.tasks):
        return False

    workflow.status = WorkflowStatus.COMPLETED
    workflow.completed_at = utcnow()
    workflow.employee.status = EmployeeStatus.ACTIVE
    log_audit(db, "ONBOARDING_COMPLETED", "onboarding_workflow", workflow.id, actor=actor,
              metadata={"employee_id": workflow.employee_id})
    logger.info(f"Onboarding workflow {workflow.id} completed")
    return True


# ============================================================
# TASK EXECUTION
# ============================================================

def _resolve_app(db: Session, task: OnboardingTask) -> Optional[App]:
    app_type = APP_TYPE_BY_AUTOMATION.get(task.automation_type)
    if app_type is not None:
        if task.app_id:
            app = db.get(App, task.app_id)
            if app is not None and app.type == app_type:
                return app
        return db.scalar(select(App).where(App.type == app_type).order_by(App.id))
    return db.get(App, task.app_id) if task.app_id else None


def run_automated_task(db: Session, task: OnboardingTask, actor: Optional[dict] = None) -> OnboardingTask:
    """Dispatch an automated task to its integration and record the outcome."""
    task.status = TaskStatus.IN_PROGRESS
    task.attempts = (task.attempts or 0) + 1
    db.flush()

    employee = task.workflow.employee
    known = task.automation_type in APP_TYPE_BY_AUTOMATION or task.automation_type == "provision_app"

    if not known:
        success, error = False, f"Unknown automation type: {task.automation_type}"
    else:
        app = _resolve_app(db, task)
        if app is None:
            label = APP_TYPE_BY_AUTOMATION.get(task.automation_type, "the selected app")
            success, error = False, f"App {getattr(label, 'value', label)} is not configured"
        else:
            result = provision_employee(db, employee, app, actor=actor)
            success, error = result.success, result.error

    if success:
        task.status = TaskStatus.SUCCESS
        task.status_message = None
        task.completed_at = utcnow()
        task.completed_by_id = actor["user_id"] if actor else None
    elif error and "no active connection" in error.lower():
        task.status = TaskStatus.PENDING
        task.status_message = NOT_CONNECTED_MESSAGE
    else:
        task.status = TaskStatus.FAILED
        task.status_message = error
        logger.warning(f"Onboarding task {task.id} failed: {error}")
    db.flush()
    return task


def complete_manual_task(task: OnboardingTask, actor: dict, notes: Optional[str] = None) -> OnboardingTask:
    task.status = TaskStatus.SUCCESS
    task.notes = notes
    task.completed_at = utcnow()
    task.completed_by_id = actor["user_id"]
    return task


def skip_task(
    db: Session,
    task: OnboardingTask,
    actor: dict,
    reason: Optional[str] = None,
    send_byod_agreement: bool = False,
) -> Optional[Offer]:
    """Skip a task. Optionally drafts the BYOD agreement; returns that offer if one was created."""
    task.status = TaskStatus.SKIPPED
    task.status_message = reason
    task.completed_at = utcnow()
    task.completed_by_id = actor["user_id"]

    if not send_byod_agreement:
        return None

    employee = task.workflow.employee
    template = db.scalar(
        select(OfferTemplate)
        .where(OfferTemplate.is_active.is_(True), OfferTemplate.name.ilike("%byod%"))
        .order_by(OfferTemplate.id)
    )
    if template is None:
        logger.warning("No active BYOD offer template; agreement not created")
        return None

    variables = {
        "employee_name": employee.full_name,
        "department": employee.department or "N/A",
        "job_title": employee.job_title or "N/A",
        "device_model": "To be provided by employee",
        "signature_date": date.today().isoformat(),
    }
    offer = Offer(
        employee_id=employee.id,
        template_id=template.id,
        candidate_name=employee.full_name,
        candidate_email=employee.work_email or employee.personal_email,
        variables=variables,
        rendered_html=render_template(template.body_html, variables),
        status=OfferStatus.DRAFT,
        created_by_id=actor["user_id"],
    )
    offer.events.append(OfferEvent(
        type="created",
        description="BYOD agreement created during onboarding (device task skipped)",
    ))
    db.add(offer)
    db.flush()
    return offer


# ============================================================
# EMPLOYEE CHECKLIST
# ============================================================

TASK_CATALOG = [
    {"id": "todo_001", "section": "todo", "title": "Complete your profile and emergency contact",
     "applies_to": "all", "is_conditional": False},
    {"id": "todo_002", "section": "todo", "title": "Set up two-factor authentication on your work account",
     "applies_to": "all", "is_conditional": False},
    {"id": "todo_003", "section": "todo", "title": "Sign the bring-your-own-device undertaking",
     "notes": "Only if you use a personal laptop", "applies_to": "all", "is_conditional": True},
    {"id": "todo_004", "section": "todo", "title": "Take the personality test and share your result",
     "url": "https://www.16personalities.com/", "applies_to": "all", "is_conditional": False},
    {"id": "todo_005", "section": "todo", "title": "Submit bank details for payroll",
     "applies_to": "full_time", "is_conditional": True},
    {"id": "todo_006", "section": "todo", "title": "Submit your invoice details",
     "applies_to": "contract", "is_conditional": True},
    {"id": "todo_007", "section": "todo", "title": "Set up your email signature",
     "applies_to": "all", "is_conditional": False},
    {"id": "read_001", "section": "to_read", "title": "Employee handbook",
     "applies_to": "all", "is_conditional": False},
    {"id": "read_002", "section": "to_read", "title": "Leave and time-off policy",
     "applies_to": "full_time", "is_conditional": True},
    {"id": "read_003", "section": "to_read", "title": "Information security policy",
     "applies_to": "all", "is_conditional": False},
    {"id": "read_004", "section": "to_read", "title": "Company values",
     "applies_to": "all", "is_conditional": False},
    {"id": "watch_001", "section": "to_watch", "title": "Welcome message from the founders",
     "applies_to": "all", "is_conditional": False},
    {"id": "watch_002", "section": "to_watch", "title": "Product walkthrough",
     "applies_to": "all", "is_conditional": False},
]
