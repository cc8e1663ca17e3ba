"""Tests for hiring analytics."""

from datetime import date, datetime

import pytest

from peopleos.models import JobCandidate, utcnow
from peopleos.models.enums import CandidateStage
from peopleos.services.analytics_service import (
    days_to_hire,
    month_range,
    quarter_range,
    rate,
    shift_month,
    trend_periods,
    week_start,
)
from tests.conftest import create_candidate, create_job


@pytest.fixture
def march_pipeline():
    """A small pipeline whose activity falls in March 2025."""
    job_id = create_job(created_at=datetime(2025, 1, 1))
    create_candidate(job_id, email="hired@example.com", stage=CandidateStage.HIRED, score=80,
                     applied_at=datetime(2025, 3, 1), updated_at=datetime(2025, 3, 11))
    create_candidate(job_id, email="trial@example.com", stage=CandidateStage.TRIAL,
                     applied_at=datetime(2025, 2, 20), updated_at=datetime(2025, 3, 5))
    create_candidate(job_id, email="tech@example.com", stage=CandidateStage.TECHNICAL,
                     applied_at=datetime(2025, 3, 10), updated_at=datetime(2025, 3, 12))
    # Hired at the very start of April, outside the March window
    create_candidate(job_id, email="april@example.com", stage=CandidateStage.HIRED, score=40,
                     applied_at=datetime(2025, 3, 20), updated_at=datetime(2025, 4, 1))
    return job_id


class TestPeriodHelpers:

    def test_month_range_rolls_over_year(self):
        assert month_range(2024, 12) == (datetime(2024, 12, 1), datetime(2025, 1, 1))

    def test_quarter_range(self):
        assert quarter_range(2025, 2) == (datetime(2025, 4, 1), datetime(2025, 7, 1))
        assert quarter_range(2025, 4) == (datetime(2025, 10, 1), datetime(2026, 1, 1))

    def test_week_start_is_monday(self):
        assert week_start(date(2025, 3, 13)) == datetime(2025, 3, 10)
        assert week_start(date(2025, 3, 10)) == datetime(2025, 3, 10)

    def test_shift_month(self):
        assert shift_month(2025, 1, -1) == (2024, 12)
        assert shift_month(2025, 11, 3) == (2026, 2)

    @pytest.mark.parametrize("part,whole,expected", [(1, 3, 33), (2, 3, 67), (5, 0, 0), (0, 4, 0)])
    def test_rate(self, part, whole, expected):
        assert rate(part, whole) == expected

    def test_days_to_hire_rounds_each_hire_up(self):
        candidates = [
            JobCandidate(applied_at=datetime(2025, 3, 1), updated_at=datetime(2025, 3, 3, 1)),
            JobCandidate(applied_at=datetime(2025, 3, 1), updated_at=datetime(2025, 3, 6)),
        ]
        assert days_to_hire(candidates) == 4
        assert days_to_hire([]) == 0

    def test_trend_period_labels(self):
        now = datetime(2025, 1, 15)
        assert [p[0] for p in trend_periods("monthly", 3, now)] == ["Nov 2024", "Dec 2024", "Jan 2025"]
        assert [p[0] for p in trend_periods("quarterly", 2, now)] == ["Q4 2024", "Q1 2025"]
        assert [p[0] for p in trend_periods("weekly", 2, datetime(2025, 3, 13))] == ["Mar 3", "Mar 10"]


class TestMonthlyAndQuarterly:

    def test_monthly_metrics(self, client, it_headers, march_pipeline):
        data = client.get("/api/analytics/monthly?year=2025&month=3", headers=it_headers).json()
        assert data == {
            "year": 2025,
            "month": 3,
            "no_of_trials": 2,
            "trial_pass_rate": 50,
            "interview_trial_rate": 67,
            "no_of_candidates_hired": 1,
            "hiring_velocity": 10,
            "total_applied": 3,
        }

    def test_empty_month(self, client, hr_headers):
        data = client.get("/api/analytics/monthly?year=2024&month=1", headers=hr_headers).json()
        assert data["no_of_trials"] == 0
        assert data["trial_pass_rate"] == 0

    def test_quarterly_metrics(self, client, hr_headers, march_pipeline):
        data = client.get("/api/analytics/quarterly?year=2025&quarter=1", headers=hr_headers).json()
        assert data["quality_of_hire"] == 80
        assert data["hiring_velocity"] == data["avg_time_to_hire"] == 10
        assert data["hiring_fill_rate"] == 0
        assert data["offers_sent"] == 0
        assert data["offer_acceptance_rate"] == 0

    def test_invalid_month(self, client, hr_headers):
        assert client.get("/api/analytics/monthly?month=13", headers=hr_headers).status_code == 422

    def test_requires_admin(self, client, employee_headers):
        assert client.get("/api/analytics/monthly", headers=employee_headers).status_code == 403


class TestWeeklyAndTrends:

    def test_weekly_by_role(self, client, hr_headers, job_id):
        create_candidate(job_id, score=75, applied_at=utcnow())
        rows = client.get("/api/analytics/weekly-by-role?weeks=2", headers=hr_headers).json()

        assert [r["role"] for r in rows] == ["Backend Engineer", "Backend Engineer"]
        assert rows[0]["applications"] == 0
        assert rows[1]["applications"] == 1
        assert rows[1]["qualified_cvs"] == 1
        assert rows[1]["week_start"] == week_start(utcnow().date()).date().isoformat()

    def test_trends_default_to_twelve_months(self, client, hr_headers, job_id):
        create_candidate(job_id, applied_at=utcnow())
        data = client.get("/api/analytics/trends?metric=applications", headers=hr_headers).json()
        assert data["granularity"] == "monthly"
        assert len(data["points"]) == 12
        assert data["points"][-1]["value"] == 1

    def test_unknown_metric(self, client, hr_headers):
        assert client.get("/api/analytics/trends?metric=revenue", headers=hr_headers).status_code == 422
