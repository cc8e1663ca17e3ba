"""Tests for the hire flow run when a candidate reaches OFFER."""

from datetime import datetime

import pytest
from sqlalchemy import select

from peopleos.db.postgres import get_db_session
from peopleos.models import Employee, JobCandidate, Offer, OfferTemplate
from peopleos.models.enums import EmployeeStatus, EmploymentType, OfferStatus
from peopleos.services.hire_flow_service import (
    employment_type_for,
    estimate_start_date,
    notice_period_days,
    run_hire_flow,
)
from tests.conftest import create_candidate, create_employee, create_job


def add_offer_template(**fields) -> int:
    values = {
        "name": "Standard",
        "body_html": "<p>Dear {candidate_name}, we offer you the {role} role at {currency} {salary}.</p>",
        "is_active": True,
    }
    values.update(fields)
    with get_db_session() as db:
        template = OfferTemplate(**values)
        db.add(template)
        db.flush()
        return template.id


class TestNoticePeriod:

    @pytest.mark.parametrize("text,days", [
        ("2 weeks", 14),
        ("1 month", 30),
        ("10 days", 10),
        ("Immediate", 7),
        ("immediately available", 7),
        ("", 30),
        (None, 30),
        ("negotiable", 30),
    ])
    def test_notice_period_days(self, text, days):
        assert notice_period_days(text) == days

    def test_estimate_start_date_is_midnight(self):
        start = estimate_start_date("2 weeks", today=datetime(2024, 3, 1, 15, 30))
        assert start == datetime(2024, 3, 15)

    def test_employment_type(self):
        assert employment_type_for("Full-Time") == EmploymentType.FULL_TIME
        assert employment_type_for("contract") == EmploymentType.CONTRACTOR
        assert employment_type_for("internship") is None


class TestRunHireFlow:

    def test_creates_employee_and_draft_offer(self):
        add_offer_template()
        job_id = create_job(title="Data Engineer", department="Data", locations=["Berlin"], currency="EUR")
        candidate_id = create_candidate(job_id, notice_period="1 month", salary_expectation=90000)

        run_hire_flow(candidate_id)

        with get_db_session() as db:
            candidate = db.get(JobCandidate, candidate_id)
            employee = db.get(Employee, candidate.employee_id)
            assert employee.personal_email == "grace@example.com"
            assert employee.status == EmployeeStatus.CANDIDATE
            assert employee.job_title == "Data Engineer"
            assert employee.location == "Berlin"
            assert employee.employment_type == EmploymentType.FULL_TIME
            assert employee.salary_currency == "EUR"
            assert employee.start_date is not None

            offer = db.scalar(select(Offer).where(Offer.employee_id == employee.id))
            assert offer.status == OfferStatus.DRAFT
            assert offer.candidate_id == candidate_id
            assert offer.rendered_html == "<p>Dear Grace Hopper, we offer you the Data Engineer role at EUR 90,000.</p>"
            assert [e.type for e in offer.events] == ["created"]

    def test_reuses_employee_by_personal_email(self, job_id):
        add_offer_template()
        existing = create_employee(personal_email="grace@example.com", full_name="Grace H.")
        candidate_id = create_candidate(job_id)

        run_hire_flow(candidate_id)

        with get_db_session() as db:
            assert db.get(JobCandidate, candidate_id).employee_id == existing
            assert len(db.scalars(select(Employee)).all()) == 1

    def test_open_offer_not_duplicated(self, job_id):
        add_offer_template()
        candidate_id = create_candidate(job_id)

        run_hire_flow(candidate_id)
        run_hire_flow(candidate_id)

        with get_db_session() as db:
            assert len(db.scalars(select(Offer)).all()) == 1

    def test_without_template_only_employee(self, job_id):
        add_offer_template(is_active=False)
        candidate_id = create_candidate(job_id)

        run_hire_flow(candidate_id)

        with get_db_session() as db:
            assert db.get(JobCandidate, candidate_id).employee_id is not None
            assert db.scalars(select(Offer)).all() == []

    def test_unknown_candidate_is_ignored(self):
        run_hire_flow(404)
