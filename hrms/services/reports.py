"""
Report aggregation: daily summaries for many employees over one day or a
date range.

Single-date reports produce one row per matching employee, including
``absent`` rows, and fall back to biometric taps for employees with no
attendance sessions that day. Range reports only summarise existing
attendance records, grouped per employee-day, and never scan biometric
logs.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.core import timeutils
from hrms.models.attendance import AttendanceRecord, BiometricEvent
from hrms.models.employee import Employee
from hrms.schemas.attendance import DailySummary
from hrms.services.attendance import (employee_ref, get_employee, parse_id,
                                      resolve_day_window)
from hrms.services.sessions import (SessionSource, select_day_sessions,
                                    sessions_from_records)
from hrms.services.summary import compute_daily_summary

logger = logging.getLogger(__name__)


async def _load_employees(
    db: AsyncSession, employee_id: int | None, department_id: int | None
) -> list[Employee]:
    query = select(Employee)
    if employee_id is not None:
        query = query.where(Employee.id == employee_id)
    if department_id is not None:
        query = query.where(Employee.department_id == department_id)
    result = await db.execute(query.order_by(Employee.id))
    return list(result.unique().scalars().all())


async def _day_summaries(
    db: AsyncSession,
    employees: list[Employee],
    day: date,
    include_active: bool = False,
    now: datetime | None = None,
) -> list[DailySummary]:
    day_str = day.isoformat()
    employee_ids = [e.id for e in employees]

    result = await db.execute(
        select(AttendanceRecord)
        .where(AttendanceRecord.employee_id.in_(employee_ids), AttendanceRecord.date == day_str)
        .order_by(AttendanceRecord.id)
    )
    records_by_employee: dict[int, list[AttendanceRecord]] = defaultdict(list)
    for record in result.scalars().all():
        records_by_employee[record.employee_id].append(record)

    # Biometric taps are only fetched for employees without record sessions.
    fallback_users = {
        e.user_id: e.id
        for e in employees
        if not sessions_from_records(records_by_employee.get(e.id, []))
    }
    events_by_employee: dict[int, list[BiometricEvent]] = defaultdict(list)
    if fallback_users:
        start, end = timeutils.day_bounds(day)
        ev_result = await db.execute(
            select(BiometricEvent).where(
                BiometricEvent.user_id.in_(list(fallback_users)),
                BiometricEvent.timestamp >= start,
                BiometricEvent.timestamp <= end,
            )
        )
        for event in ev_result.scalars().all():
            events_by_employee[fallback_users[event.user_id]].append(event)

    summaries = []
    for emp in employees:
        chosen = select_day_sessions(
            records_by_employee.get(emp.id, []),
            events_by_employee.get(emp.id, []),
        )
        summaries.append(
            compute_daily_summary(
                employee_ref(emp),
                day,
                chosen.sessions,
                source=chosen.source,
                include_active=include_active,
                now=now,
            )
        )
    return summaries


async def _range_summaries(
    db: AsyncSession,
    employees: list[Employee],
    window: tuple[date, date] | None,
) -> list[DailySummary]:
    employee_map = {e.id: e for e in employees}
    query = select(AttendanceRecord).where(AttendanceRecord.employee_id.in_(list(employee_map)))
    if window is not None:
        query = query.where(
            AttendanceRecord.date >= window[0].isoformat(),
            AttendanceRecord.date <= window[1].isoformat(),
        )
    result = await db.execute(query.order_by(AttendanceRecord.date, AttendanceRecord.id))

    grouped: dict[tuple[int, str], list[AttendanceRecord]] = defaultdict(list)
    for record in result.scalars().all():
        grouped[(record.employee_id, record.date)].append(record)

    summaries = []
    for (emp_id, day_str), records in grouped.items():
        report_date = timeutils.parse_day(day_str)
        if report_date is None:
            logger.warning("Skipping attendance with malformed date %r (employee %d)", day_str, emp_id)
            continue
        summaries.append(
            compute_daily_summary(
                employee_ref(employee_map[emp_id]),
                report_date,
                sessions_from_records(records),
                source=SessionSource.RECORDS,
            )
        )
    return summaries


def sort_summaries(summaries: list[DailySummary]) -> list[DailySummary]:
    """Newest date first, then employee name (case-insensitive)."""

    def _name(summary: DailySummary) -> str:
        user = summary.employee.user if summary.employee else None
        return (user.name or "").lower() if user else ""

    ordered = sorted(summaries, key=_name)
    ordered.sort(key=lambda s: s.date, reverse=True)
    return ordered


async def build_report(
    db: AsyncSession,
    employee_id: str | None = None,
    department: str | None = None,
    day: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> list[DailySummary]:
    """Attendance report for the selected employees and dates.

    All parameters are validated before the store is touched.
    """
    emp_id = parse_id(employee_id, "employeeId")
    dept_id = parse_id(department, "department")
    window = resolve_day_window(day, start_date, end_date)
    single_day = bool(day)

    employees = await _load_employees(db, emp_id, dept_id)
    if not employees:
        return []

    if single_day:
        summaries = await _day_summaries(db, employees, window[0])
    else:
        summaries = await _range_summaries(db, employees, window)
        # Rows are keyed by employee; re-check department on the joined metadata.
        if dept_id is not None:
            summaries = [
                s
                for s in summaries
                if s.employee and s.employee.department and s.employee.department.id == dept_id
            ]

    logger.info(
        "Attendance report: %d rows (%s, employees=%d)",
        len(summaries),
        "single day" if single_day else "range",
        len(employees),
    )
    return sort_summaries(summaries)


async def daily_summary(
    db: AsyncSession,
    employee_id: int,
    day: date,
    include_active: bool = False,
    now: datetime | None = None,
) -> DailySummary:
    """Summary of one employee-day, with biometric fallback."""
    employee = await get_employee(db, employee_id)
    summaries = await _day_summaries(db, [employee], day, include_active=include_active, now=now)
    return summaries[0]
