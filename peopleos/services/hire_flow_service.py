"""
Hire Flow Service - runs when a candidate is moved to the OFFER stage.

STEPS:
1. Find or create the Employee record for the candidate (status CANDIDATE)
2. Estimate a start date from the candidate's notice period
3. Draft an offer from the first active template, unless one is already open
"""
import logging
import re
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from peopleos.db.postgres import get_db_session
from peopleos.models import Employee, JobCandidate, Offer, OfferEvent, OfferTemplate, utcnow
from peopleos.models.enums import EmployeeStatus, EmploymentType, OfferStatus
from peopleos.services.audit_service import log_audit
from peopleos.utils.templating import render_template

logger = logging.getLogger(__name__)

DEFAULT_NOTICE_DAYS = 30
IMMEDIATE_NOTICE_DAYS = 7
OPEN_OFFER_STATUSES = (OfferStatus.DRAFT, OfferStatus.SENT, OfferStatus.SIGNED)

_NOTICE_PATTERN = re.compile(r"(\d+)\s*(day|week|month)", re.IGNORECASE)
_UNIT_DAYS = {"day": 1, "week": 7, "month": 30}

_EMPLOYMENT_TYPES = {
    "full-time": EmploymentType.FULL_TIME,
    "full_time": EmploymentType.FULL_TIME,
    "part-time": EmploymentType.PART_TIME,
    "part_time": EmploymentType.PART_TIME,
    "contract": EmploymentType.CONTRACTOR,
    "contractor": EmploymentType.CONTRACTOR,
}


def notice_period_days(notice_period: Optional[str]) -> int:
    """"2 weeks" -> 14, "immediate" -> 7, anything unreadable -> 30."""
    text = (notice_period or "").strip().lower()
    if not text:
        return DEFAULT_NOTICE_DAYS
    if "immediate" in text:
        return IMMEDIATE_NOTICE_DAYS
    match = _NOTICE_PATTERN.search(text)
    if not match:
        return DEFAULT_NOTICE_DAYS
    return int(match.group(1)) * _UNIT_DAYS[match.group(2).lower()]


def estimate_start_date(notice_period: Optional[str], today: Optional[datetime] = None) -> datetime:
    today = today or utcnow()
    return (today + timedelta(days=notice_period_days(notice_period))).replace(
        hour=0, minute=0, second=0, microsecond=0
    )


def employment_type_for(job_employment_type: Optional[str]) -> Optional[EmploymentType]:
    return _EMPLOYMENT_TYPES.get((job_employment_type or "").strip().lower())


def upsert_candidate_employee(db: Session, candidate: JobCandidate) -> Employee:
    """Find the candidate's Employee (by link, then personal email) or create one."""
    job = candidate.job
    employee = candidate.employee
    if employee is None:
        employee = db.scalar(
            select(Employee).where(func.lower(Employee.personal_email) == candidate.email.lower())
        )

    location = candidate.location or (job.locations[0] if job.locations else None)
    start_date = estimate_start_date(candidate.notice_period)

    if employee is None:
        employee = Employee(
            full_name=candidate.name,
            personal_email=candidate.email.lower(),
            phone=candidate.phone,
            status=EmployeeStatus.CANDIDATE,
        )
        db.add(employee)

    employee.job_title = job.title
    employee.department = job.department
    employee.location = location
    employee.employment_type = employment_type_for(job.employment_type) or employee.employment_type
    employee.start_date = start_date
    if candidate.salary_expectation is not None:
        employee.salary_amount = candidate.salary_expectation
        employee.salary_currency = candidate.salary_currency or job.currency
    db.flush()

    candidate.employee_id = employee.id
    return employee


def has_open_offer(db: Session, employee_id: int) -> bool:
    return db.scalar(
        select(Offer.id).where(Offer.employee_id == employee_id, Offer.status.in_(OPEN_OFFER_STATUSES)).limit(1)
    ) is not None


def offer_variables(candidate: JobCandidate, employee: Employee) -> dict:
    job = candidate.job
    salary = employee.salary_amount if employee.salary_amount is not None else job.salary_max
    return {
        "role": job.title,
        "candidate_name": candidate.name,
        "job_title": job.title,
        "department": job.department or "",
        "salary": f"{salary:,.0f}" if salary is not None else "",
        "currency": employee.salary_currency or job.currency,
        "location": employee.location or "",
        "start_date": employee.start_date.date().isoformat() if employee.start_date else "",
        "employment_type": job.employment_type,
    }


def draft_offer(db: Session, candidate: JobCandidate, employee: Employee) -> Optional[Offer]:
    if has_open_offer(db, employee.id):
        logger.info(f"Employee {employee.id} already has an open offer, none drafted")
        return None

    template = db.scalar(
        select(OfferTemplate).where(OfferTemplate.is_active.is_(True)).order_by(OfferTemplate.created_at)
    )
    if template is None:
        logger.warning("No active offer template; hire flow did not draft an offer")
        return None

    variables = offer_variables(candidate, employee)
    offer = Offer(
        employee_id=employee.id,
        candidate_id=candidate.id,
        template_id=template.id,
        candidate_name=candidate.name,
        candidate_email=candidate.email,
        variables=variables,
        rendered_html=render_template(template.body_html, variables),
        status=OfferStatus.DRAFT,
    )
    offer.events.append(OfferEvent(type="created", description="Offer drafted when candidate moved to Offer"))
    db.add(offer)
    db.flush()

    log_audit(db, "OFFER_CREATED", "offer", offer.id,
              metadata={"candidate_id": candidate.id, "employee_id": employee.id, "source": "hire_flow"})
    return offer


def run_hire_flow(candidate_id: int) -> None:
    """Background task entry point."""
    try:
        with get_db_session() as db:
            candidate = db.get(JobCandidate, candidate_id)
            if candidate is None:
                logger.warning(f"Hire flow skipped: candidate {candidate_id} not found")
                return
            employee = upsert_candidate_employee(db, candidate)
            offer = draft_offer(db, candidate, employee)
            logger.info(
                f"Hire flow for candidate {candidate_id}: employee {employee.id}, "
                f"offer {offer.id if offer else 'unchanged'}"
            )
    except Exception as e:
        logger.error(f"Hire flow failed for candidate {candidate_id}: {e}")
