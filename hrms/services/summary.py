"""
Daily summary computation for one employee-day.

Status precedence: absent > in-progress > present > half-day.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime

from hrms.core import timeutils
from hrms.core.timeutils import iso
from hrms.schemas.attendance import DailySummary, EmployeeRef, SessionSummary
from hrms.services.sessions import (Session, SessionSource, chronological,
                                    completed_hours, live_hours)

PRESENT_MIN_HOURS = 4


def _round(value: float) -> float:
    return round(value, 2)


def _session_state(session: Session) -> str:
    if session.is_complete:
        return "completed"
    if session.is_open:
        return "open"
    return "orphaned"


def day_status(first_clock_in: datetime | None, has_open: bool, total_hours: float) -> str:
    if first_clock_in is None:
        return "absent"
    if has_open:
        return "in-progress"
    if total_hours >= PRESENT_MIN_HOURS:
        return "present"
    return "half-day"


def render_session(session: Session) -> SessionSummary:
    duration = session.duration_hours
    return SessionSummary(
        order=session.order,
        clock_in=iso(session.clock_in),
        clock_out=iso(session.clock_out),
        duration_hours=_round(duration) if duration is not None else None,
        state=_session_state(session),
    )


def compute_daily_summary(
    employee: EmployeeRef | None,
    report_date: date,
    sessions: Sequence[Session],
    source: SessionSource = SessionSource.RECORDS,
    include_active: bool = False,
    now: datetime | None = None,
) -> DailySummary:
    """Summarise reconciled sessions for one employee-day.

    ``total_hours`` only counts completed sessions. With ``include_active``
    the summary also carries ``live_total_hours``, which counts each
    open session up to ``now``.
    """
    sessions = chronological(sessions)
    clock_ins = [s.clock_in for s in sessions if s.clock_in is not None]
    first_clock_in = min(clock_ins) if clock_ins else None
    last_clock_out = next(
        (s.clock_out for s in reversed(sessions) if s.clock_out is not None),
        None,
    )
    has_open = any(s.is_open for s in sessions)
    total_hours = _round(completed_hours(sessions))

    live_total = None
    if include_active:
        live_total = _round(live_hours(sessions, now or timeutils.utc_now()))

    return DailySummary(
        employee=employee,
        date=report_date.isoformat(),
        first_clock_in=iso(first_clock_in),
        last_clock_out=iso(last_clock_out),
        session_count=sum(1 for s in sessions if s.is_complete),
        total_hours=total_hours,
        live_total_hours=live_total,
        status=day_status(first_clock_in, has_open, total_hours),
        source=source.value,
        sessions=[render_session(s) for s in sessions],
    )
