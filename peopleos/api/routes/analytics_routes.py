"""
Analytics Routes (admin)

GET /analytics/monthly - Trial and hiring metrics for a month
GET /analytics/quarterly - Velocity, quality, fill rate and offers for a quarter
GET /analytics/weekly-by-role - Funnel per job title for the last N weeks
GET /analytics/trends - A metric over the last N periods
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from peopleos.core.auth import get_admin
from peopleos.db.postgres import get_db_session
from peopleos.models import utcnow
from peopleos.schemas.schemas import MonthlyMetrics, QuarterlyMetrics, TrendResponse, WeeklyRoleMetrics
from peopleos.services import analytics_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/monthly", response_model=MonthlyMetrics)
async def get_monthly(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    admin: dict = Depends(get_admin)
):
    """Defaults to the current month."""
    now = utcnow()
    with get_db_session() as db:
        return analytics_service.monthly_metrics(db, year or now.year, month or now.month)


@router.get("/quarterly", response_model=QuarterlyMetrics)
async def get_quarterly(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    quarter: Optional[int] = Query(None, ge=1, le=4),
    admin: dict = Depends(get_admin)
):
    now = utcnow()
    with get_db_session() as db:
        return analytics_service.quarterly_metrics(db, year or now.year, quarter or (now.month - 1) // 3 + 1)


@router.get("/weekly-by-role", response_model=List[WeeklyRoleMetrics])
async def get_weekly_by_role(weeks: int = Query(4, ge=1, le=12), admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        return analytics_service.weekly_by_role(db, weeks)


@router.get("/trends", response_model=TrendResponse)
async def get_trends(
    metric: str = Query("hires", pattern="^(hires|applications|interviews|offers)$"),
    granularity: str = Query("monthly", pattern="^(monthly|quarterly|weekly)$"),
    periods: int = Query(12, ge=1, le=24),
    admin: dict = Depends(get_admin)
):
    with get_db_session() as db:
        return analytics_service.hiring_trends(db, metric, granularity, periods)
