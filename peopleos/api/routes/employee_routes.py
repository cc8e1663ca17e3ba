"""
Employee Routes

GET /employees - List employees (HR admin, auto-activates started hires first)
GET /employees/me - Current user's employee profile
PUT /employees/me - Self-service update (contact, address, emergency contact)
GET /employees/departments - Unique departments
GET /employees/managers - Employees who manage or lead
GET /employees/active - All ACTIVE employees
GET /employees/{employee_id} - Employee details (admins, their manager, or themselves)
GET /employees/{employee_id}/direct-reports - Direct reports
POST /employees - Create employee (HR admin)
PUT /employees/{employee_id} - Update employee (HR admin)
"""

import logging
import math
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy import func, or_, select, update

from peopleos.core.auth import ADMIN_ROLES, HR_ADMIN_ROLES, PERMISSION_DENIED, get_current_user, get_hr_admin
from peopleos.db.postgres import get_db_session
from peopleos.models import Employee, utcnow
from peopleos.models.enums import EmployeeStatus, UserRole
from peopleos.schemas.schemas import (
    EmployeeBrief,
    EmployeeCreate,
    EmployeeListResponse,
    EmployeeResponse,
    EmployeeSelfUpdate,
    EmployeeUpdate,
)
from peopleos.services.audit_service import log_audit
from peopleos.services.integrations.base import employee_payload
from peopleos.services.integrations.outbound import send_outbound_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employees", tags=["Employees"])

STARTING_STATUSES = (EmployeeStatus.OFFER_SIGNED, EmployeeStatus.HIRED_PENDING_START)
COMPENSATION_FIELDS = ("salary_amount", "salary_currency", "contract_type")


def _get_employee_or_404(db, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if not employee:
        raise HTTPException(status_code=404, detail="Employee not found")
    return employee


def _check_can_view(user: dict, employee: Employee) -> None:
    """Admins see everyone, managers their direct reports, everyone else only themselves."""
    if user["role"] in ADMIN_ROLES:
        return
    own_id = user["employee_id"]
    if own_id is not None and own_id == employee.id:
        return
    if own_id is not None and user["role"] == UserRole.MANAGER and employee.manager_id == own_id:
        return
    raise HTTPException(status_code=403, detail=PERMISSION_DENIED)


def _visible_response(user: dict, employee: Employee) -> EmployeeResponse:
    response = EmployeeResponse.model_validate(employee)
    if user["role"] in HR_ADMIN_ROLES:
        return response
    return response.model_copy(update=dict.fromkeys(COMPENSATION_FIELDS))


def activate_started_employees(db) -> int:
    """Hires whose start date has passed become ACTIVE."""
    result = db.execute(
        update(Employee)
        .where(Employee.status.in_(STARTING_STATUSES), Employee.start_date.is_not(None), Employee.start_date <= utcnow())
        .values(status=EmployeeStatus.ACTIVE)
    )
    if result.rowcount:
        logger.info(f"Activated {result.rowcount} employee(s) whose start date has passed")
    return result.rowcount


def _check_manager(db, manager_id: Optional[int], employee_id: Optional[int] = None) -> None:
    if manager_id is None:
        return
    if manager_id == employee_id:
        raise HTTPException(status_code=400, detail="An employee cannot manage themselves")
    if not db.get(Employee, manager_id):
        raise HTTPException(status_code=404, detail="Manager not found")


def _email_taken(db, email: str, exclude_id: Optional[int] = None) -> bool:
    query = select(Employee.id).where(func.lower(Employee.personal_email) == email.lower())
    if exclude_id is not None:
        query = query.where(Employee.id != exclude_id)
    return db.scalar(query.limit(1)) is not None


# ============================================================
# LIST / LOOKUPS
# ============================================================

@router.get("", response_model=EmployeeListResponse)
async def list_employees(
    status: Optional[EmployeeStatus] = Query(None),
    department: Optional[str] = Query(None),
    manager_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: dict = Depends(get_hr_admin)
):
    with get_db_session() as db:
        activate_started_employees(db)

        conditions = []
        if status:
            conditions.append(Employee.status == status)
        if department:
            conditions.append(Employee.department == department)
        if manager_id:
            conditions.append(Employee.manager_id == manager_id)
        if search:
            pattern = f"%{search.strip()}%"
            conditions.append(or_(
                Employee.full_name.ilike(pattern),
                Employee.personal_email.ilike(pattern),
                Employee.work_email.ilike(pattern),
                Employee.job_title.ilike(pattern),
            ))

        total = db.scalar(select(func.count(Employee.id)).where(*conditions))
        employees = db.scalars(
            select(Employee)
            .where(*conditions)
            .order_by(Employee.full_name)
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()

        return EmployeeListResponse(
            employees=[EmployeeResponse.model_validate(e) for e in employees],
            total=total,
            page=page,
            pages=math.ceil(total / limit) if total else 0,
        )


@router.get("/me", response_model=EmployeeResponse)
async def get_my_profile(user: dict = Depends(get_current_user)):
    if not user["employee_id"]:
        raise HTTPException(status_code=404, detail="No employee profile linked")
    with get_db_session() as db:
        return EmployeeResponse.model_validate(_get_employee_or_404(db, user["employee_id"]))


@router.put("/me", response_model=EmployeeResponse)
async def update_self(request: EmployeeSelfUpdate, user: dict = Depends(get_current_user)):
    """Employees may only change their contact details."""
    if not user["employee_id"]:
        raise HTTPException(status_code=404, detail="No employee profile linked")
    with get_db_session() as db:
        employee = _get_employee_or_404(db, user["employee_id"])
        changes = request.model_dump(exclude_unset=True)
        for field, value in changes.items():
            setattr(employee, field, value)
        log_audit(db, "EMPLOYEE_SELF_UPDATED", "employee", employee.id, actor=user,
                  metadata={"fields": sorted(changes)})
        db.flush()
        return EmployeeResponse.model_validate(employee)


@router.get("/departments", response_model=List[str])
async def get_departments(user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        return db.scalars(
            select(Employee.department).where(Employee.department.is_not(None)).distinct().order_by(Employee.department)
        ).all()


@router.get("/managers", response_model=List[EmployeeBrief])
async def get_managers(user: dict = Depends(get_current_user)):
    """Anyone with direct reports, or whose title mentions manager or lead."""
    with get_db_session() as db:
        has_reports = select(Employee.manager_id).where(Employee.manager_id.is_not(None))
        managers = db.scalars(
            select(Employee)
            .where(or_(
                Employee.id.in_(has_reports),
                Employee.job_title.ilike("%manager%"),
                Employee.job_title.ilike("%lead%"),
            ))
            .where(Employee.status != EmployeeStatus.EXITED)
            .order_by(Employee.full_name)
        ).all()
        return [EmployeeBrief.model_validate(m) for m in managers]


@router.get("/active", response_model=List[EmployeeBrief])
async def get_all_active(user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        employees = db.scalars(
            select(Employee).where(Employee.status == EmployeeStatus.ACTIVE).order_by(Employee.full_name)
        ).all()
        return [EmployeeBrief.model_validate(e) for e in employees]


@router.get("/{employee_id}", response_model=EmployeeResponse)
async def get_employee(employee_id: int, user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        employee = _get_employee_or_404(db, employee_id)
        _check_can_view(user, employee)
        return _visible_response(user, employee)


@router.get("/{employee_id}/direct-reports", response_model=List[EmployeeBrief])
async def get_direct_reports(employee_id: int, user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        _check_can_view(user, _get_employee_or_404(db, employee_id))
        reports = db.scalars(
            select(Employee).where(Employee.manager_id == employee_id).order_by(Employee.full_name)
        ).all()
        return [EmployeeBrief.model_validate(r) for r in reports]


# ============================================================
# CREATE / UPDATE
# ============================================================

@router.post("", response_model=EmployeeResponse, status_code=201)
async def create_employee(
    request: EmployeeCreate,
    background_tasks: BackgroundTasks,
    admin: dict = Depends(get_hr_admin)
):
    with get_db_session() as db:
        if _email_taken(db, request.personal_email):
            raise HTTPException(status_code=409, detail="An employee with this email already exists")
        _check_manager(db, request.manager_id)

        fields = request.model_dump()
        fields["personal_email"] = request.personal_email.lower()
        employee = Employee(**fields, status=EmployeeStatus.CANDIDATE)
        db.add(employee)
        db.flush()

        log_audit(db, "EMPLOYEE_CREATED", "employee", employee.id, actor=admin,
                  metadata={"full_name": employee.full_name})
        response = EmployeeResponse.model_validate(employee)
        payload = employee_payload(employee)

    background_tasks.add_task(send_outbound_event, "employee.created", payload, admin)
    return response


@router.put("/{employee_id}", response_model=EmployeeResponse)
async def update_employee(
    employee_id: int,
    request: EmployeeUpdate,
    background_tasks: BackgroundTasks,
    admin: dict = Depends(get_hr_admin)
):
    """Partial update. meta is merged into the existing meta, not replaced."""
    with get_db_session() as db:
        employee = _get_employee_or_404(db, employee_id)
        changes = request.model_dump(exclude_unset=True)

        if changes.get("personal_email"):
            changes["personal_email"] = changes["personal_email"].lower()
            if _email_taken(db, changes["personal_email"], exclude_id=employee.id):
                raise HTTPException(status_code=409, detail="An employee with this email already exists")
        if "manager_id" in changes:
            _check_manager(db, changes["manager_id"], employee.id)

        previous_status = employee.status
        meta = changes.pop("meta", None)
        if meta is not None:
            employee.meta = {**(employee.meta or {}), **meta}

        for field, value in changes.items():
            if field in ("full_name", "personal_email", "status") and value is None:
                continue
            setattr(employee, field, value)

        if employee.status != previous_status:
            log_audit(db, "EMPLOYEE_STATUS_CHANGED", "employee", employee.id, actor=admin,
                      metadata={"from": previous_status.value, "to": employee.status.value})
        else:
            log_audit(db, "EMPLOYEE_UPDATED", "employee", employee.id, actor=admin,
                      metadata={"fields": sorted(request.model_fields_set)})

        db.flush()
        response = EmployeeResponse.model_validate(employee)
        payload = employee_payload(employee)

    background_tasks.add_task(send_outbound_event, "employee.updated", payload, admin)
    return response
