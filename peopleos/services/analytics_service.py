"""
Analytics Service - hiring metrics for the dashboard.

All periods are half-open [start, next_start) in UTC. Rates are whole
percentages; a zero denominator gives 0.
"""
import logging
import math
from datetime import date, datetime, timedelta
from typing import List, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from peopleos.models import Job, JobCandidate, Offer, utcnow
from peopleos.models.enums import CandidateStage, JobStatus, OfferStatus
from peopleos.services.pipeline import INTERVIEW_REACHED_STAGES, TRIAL_PASSED_STAGES, TRIAL_STAGES

logger = logging.getLogger(__name__)

QUALIFIED_SCORE = 60
SENT_OFFER_STATUSES = (OfferStatus.SENT, OfferStatus.VIEWED, OfferStatus.SIGNED, OfferStatus.DECLINED)
TREND_METRICS = ("hires", "applications", "interviews", "offers")
TREND_GRANULARITIES = ("monthly", "quarterly", "weekly")


# ============================================================
# PERIOD HELPERS
# ============================================================

def month_range(year: int, month: int) -> Tuple[datetime, datetime]:
    start = datetime(year, month, 1)
    next_start = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, next_start


def quarter_range(year: int, quarter: int) -> Tuple[datetime, datetime]:
    start, _ = month_range(year, (quarter - 1) * 3 + 1)
    next_start = datetime(year + 1, 1, 1) if quarter == 4 else datetime(year, quarter * 3 + 1, 1)
    return start, next_start


def week_start(day: date) -> datetime:
    """Monday 00:00 of the week containing `day`."""
    monday = day - timedelta(days=day.weekday())
    return datetime(monday.year, monday.month, monday.day)


def shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def rate(part: int, whole: int) -> int:
    return round(part / whole * 100) if whole else 0


def days_to_hire(candidates: List[JobCandidate]) -> int:
    """Average whole days (rounded up per hire) from application to hire."""
    if not candidates:
        return 0
    total = sum(
        math.ceil((c.updated_at - c.applied_at).total_seconds() / 86400) for c in candidates
    )
    return round(total / len(candidates))


# ============================================================
# QUERIES
# ============================================================

def _count(db: Session, model, *conditions) -> int:
    return db.scalar(select(func.count(model.id)).where(*conditions)) or 0


def _updated_in(start: datetime, end: datetime):
    return JobCandidate.updated_at >= start, JobCandidate.updated_at < end


def _applied_in(start: datetime, end: datetime):
    return JobCandidate.applied_at >= start, JobCandidate.applied_at < end


def _hires(db: Session, start: datetime, end: datetime) -> List[JobCandidate]:
    return db.scalars(
        select(JobCandidate).where(JobCandidate.stage == CandidateStage.HIRED, *_updated_in(start, end))
    ).all()


def monthly_metrics(db: Session, year: int, month: int) -> dict:
    start, end = month_range(year, month)

    trials = _count(db, JobCandidate, JobCandidate.stage.in_(TRIAL_STAGES), *_updated_in(start, end))
    trials_passed = _count(db, JobCandidate, JobCandidate.stage.in_(TRIAL_PASSED_STAGES), *_updated_in(start, end))
    interviewed = _count(
        db, JobCandidate, JobCandidate.stage.in_(INTERVIEW_REACHED_STAGES), *_updated_in(start, end)
    )
    hires = _hires(db, start, end)

    return {
        "year": year,
        "month": month,
        "no_of_trials": trials,
        "trial_pass_rate": rate(trials_passed, trials),
        "interview_trial_rate": rate(trials, interviewed),
        "no_of_candidates_hired": len(hires),
        "hiring_velocity": days_to_hire(hires),
        "total_applied": _count(db, JobCandidate, *_applied_in(start, end)),
    }


def quarterly_metrics(db: Session, year: int, quarter: int) -> dict:
    start, end = quarter_range(year, quarter)

    hires = _hires(db, start, end)
    scored = [c.score for c in hires if c.score is not None]
    velocity = days_to_hire(hires)

    open_jobs = _count(
        db, Job, Job.status.in_((JobStatus.ACTIVE, JobStatus.HIRED)), Job.created_at < end
    )
    filled_jobs = _count(
        db, Job, Job.status == JobStatus.HIRED, Job.updated_at >= start, Job.updated_at < end
    )

    offers_sent = _count(
        db, Offer, Offer.status.in_(SENT_OFFER_STATUSES), Offer.esign_sent_at >= start, Offer.esign_sent_at < end
    )
    offers_signed = _count(
        db, Offer, Offer.status == OfferStatus.SIGNED, Offer.esign_signed_at >= start, Offer.esign_signed_at < end
    )

    return {
        "year": year,
        "quarter": quarter,
        "hiring_velocity": velocity,
        "avg_time_to_hire": velocity,
        "quality_of_hire": round(sum(scored) / len(scored)) if scored else 0,
        "hiring_fill_rate": rate(filled_jobs, open_jobs),
        "offers_sent": offers_sent,
        "offers_signed": offers_signed,
        "offer_acceptance_rate": rate(offers_signed, offers_sent),
        "cost_per_hire": 0,
    }


def weekly_by_role(db: Session, weeks: int = 4, today: date = None) -> List[dict]:
    """Per job title and week (newest week last): applications, qualified CVs, interviews, hires."""
    today = today or utcnow().date()
    current = week_start(today)
    titles = db.scalars(
        select(Job.title)
        .where(Job.status.in_((JobStatus.ACTIVE, JobStatus.HIRED)))
        .distinct()
        .order_by(Job.title)
    ).all()

    rows = []
    for offset in range(weeks - 1, -1, -1):
        start = current - timedelta(weeks=offset)
        end = start + timedelta(weeks=1)
        for title in titles:
            of_role = JobCandidate.job_id.in_(select(Job.id).where(Job.title == title))
            rows.append({
                "role": title,
                "week_start": start.date(),
                "applications": _count(db, JobCandidate, of_role, *_applied_in(start, end)),
                "qualified_cvs": _count(
                    db, JobCandidate, of_role, JobCandidate.score >= QUALIFIED_SCORE, *_applied_in(start, end)
                ),
                "interviews": _count(
                    db, JobCandidate, of_role, JobCandidate.stage.in_(INTERVIEW_REACHED_STAGES),
                    *_updated_in(start, end),
                ),
                "hires": _count(
                    db, JobCandidate, of_role, JobCandidate.stage == CandidateStage.HIRED, *_updated_in(start, end)
                ),
            })
    return rows


# ============================================================
# TRENDS
# ============================================================

def trend_periods(granularity: str, periods: int, now: datetime = None) -> List[Tuple[str, datetime, datetime]]:
    """(label, start, next_start) for the last `periods` periods, oldest first."""
    now = now or utcnow()
    result = []
    for back in range(periods - 1, -1, -1):
        if granularity == "quarterly":
            current_quarter = (now.month - 1) // 3
            index = now.year * 4 + current_quarter - back
            year, quarter = index // 4, index % 4 + 1
            start, end = quarter_range(year, quarter)
            label = f"Q{quarter} {year}"
        elif granularity == "weekly":
            start = week_start(now.date()) - timedelta(weeks=back)
            end = start + timedelta(weeks=1)
            label = f"{start:%b} {start.day}"
        else:
            year, month = shift_month(now.year, now.month, -back)
            start, end = month_range(year, month)
            label = f"{start:%b %Y}"
        result.append((label, start, end))
    return result


def _trend_value(db: Session, metric: str, start: datetime, end: datetime) -> int:
    if metric == "applications":
        return _count(db, JobCandidate, *_applied_in(start, end))
    if metric == "interviews":
        return _count(db, JobCandidate, JobCandidate.stage.in_(INTERVIEW_REACHED_STAGES), *_updated_in(start, end))
    if metric == "offers":
        return _count(db, Offer, Offer.esign_sent_at >= start, Offer.esign_sent_at < end)
    return _count(db, JobCandidate, JobCandidate.stage == CandidateStage.HIRED, *_updated_in(start, end))


def hiring_trends(db: Session, metric: str = "hires", granularity: str = "monthly", periods: int = 12) -> dict:
    points = [
        {
            "label": label,
            "start": start,
            "end": end - timedelta(microseconds=1),
            "value": _trend_value(db, metric, start, end),
        }
        for label, start, end in trend_periods(granularity, periods)
    ]
    return {"metric": metric, "granularity": granularity, "points": points}
