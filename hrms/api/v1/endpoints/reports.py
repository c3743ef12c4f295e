"""
Reporting endpoints — daily summaries, live status and the attendance
report, plus the health probe.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.api.v1.deps import get_current_active_user, get_db, require_admin
from hrms.core import timeutils
from hrms.core.exceptions import InvalidParameter
from hrms.models.user import User
from hrms.schemas.attendance import DailySummary, HealthResponse
from hrms.services import reports as service
from hrms.services.attendance import employee_for_user

router = APIRouter(tags=["reports"])
logger = logging.getLogger(__name__)


@router.get("/attendance/status", response_model=DailySummary)
async def attendance_status(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_active_user),
) -> DailySummary:
    """Today's summary for the signed-in employee, open session ticking."""
    employee = await employee_for_user(db, user.id)
    now = timeutils.utc_now()
    return await service.daily_summary(
        db, employee.id, timeutils.local_date(now), include_active=True, now=now
    )


@router.get("/attendance/summary/{employee_id}", response_model=DailySummary)
async def attendance_summary(
    employee_id: int,
    date: str | None = Query(default=None),
    live: bool = Query(default=False),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> DailySummary:
    """Daily summary for one employee (defaults to today)."""
    if date:
        day = timeutils.parse_day(date)
        if day is None:
            raise InvalidParameter("Invalid date parameter")
    else:
        day = timeutils.today()
    return await service.daily_summary(db, employee_id, day, include_active=live)


@router.get("/attendance/report", response_model=list[DailySummary])
async def attendance_report(
    employee_id: str | None = Query(default=None, alias="employeeId"),
    department: str | None = Query(default=None),
    date: str | None = Query(default=None),
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> list[DailySummary]:
    """Per-employee daily summaries for one date or a date range."""
    return await service.build_report(db, employee_id, department, date, start_date, end_date)


@router.get("/health", response_model=HealthResponse)
async def health(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """Public health check — DB connectivity."""
    result = HealthResponse(db=False)
    try:
        await db.execute(select(1))
        result.db = True
    except Exception as e:
        logger.error("Health check DB failure: %s", e)
    return result
