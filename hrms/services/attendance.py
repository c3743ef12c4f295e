"""
Attendance mutations and record listings.

Two write paths exist:
  - biometric check-in/out appends an immutable event per tap, guarded by
    the state machine against the user's latest event;
  - portal clock-in/out mutates the per-day attendance record, keyed by
    ``(employee_id, date)`` and serialised with a row lock.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrms.core import timeutils
from hrms.core.exceptions import (AlreadyClockedIn, AlreadyClockedOut,
                                  AttendanceError, EmployeeNotFound,
                                  InvalidParameter, NoClockInFound)
from hrms.models.attendance import (ATTENDANCE_STATUSES, AttendanceRecord,
                                    AttendanceSession, BiometricEvent)
from hrms.models.employee import Employee
from hrms.models.user import User
from hrms.schemas.attendance import (AttendanceRecordRead,
                                     AttendanceSessionRead, BiometricEventRead,
                                     DepartmentRef, EmployeeRef,
                                     ManualAttendanceCreate, UserRef)
from hrms.services.location import normalize_location
from hrms.services.sessions import completed_hours, record_sessions
from hrms.services.status_machine import evaluate_transition

logger = logging.getLogger(__name__)

RECENT_RECORDS_LIMIT = 100


# ── Serialisation ───────────────────────────────────────────────────
def employee_ref(employee: Employee | None) -> EmployeeRef | None:
    if employee is None:
        return None
    department = employee.department
    user = employee.user
    return EmployeeRef(
        id=employee.id,
        designation=employee.designation,
        department=DepartmentRef(id=department.id, name=department.name) if department else None,
        user=UserRef(id=user.id, name=user.name, email=user.email) if user else None,
    )


def event_read(event: BiometricEvent) -> BiometricEventRead:
    return BiometricEventRead(
        id=event.id,
        user_id=event.user_id,
        action=event.action,
        timestamp=timeutils.iso(event.timestamp),
        location=event.location,
    )


def record_read(record: AttendanceRecord, employee: Employee | None = None) -> AttendanceRecordRead:
    """Render a record in session shape, adapting legacy rows on the fly.

    ``total_hours`` is derived from the sessions when the stored value is
    unset; nothing is written back.
    """
    sessions = record_sessions(record)
    total = record.total_hours or completed_hours(sessions)
    return AttendanceRecordRead(
        id=record.id,
        employee_id=record.employee_id,
        employee=employee_ref(employee),
        date=record.date,
        sessions=[
            AttendanceSessionRead(
                clock_in=timeutils.iso(s.clock_in),
                clock_out=timeutils.iso(s.clock_out),
            )
            for s in sessions
        ],
        clock_in=timeutils.iso(sessions[0].clock_in) if sessions else None,
        clock_out=timeutils.iso(sessions[-1].clock_out) if sessions else None,
        total_hours=total,
        status=record.status,
        notes=record.notes,
        created_at=timeutils.iso(record.created_at),
    )


# ── Lookups ─────────────────────────────────────────────────────────
async def employee_for_user(db: AsyncSession, user_id: int) -> Employee:
    result = await db.execute(select(Employee).where(Employee.user_id == user_id))
    employee = result.scalar_one_or_none()
    if employee is None:
        raise EmployeeNotFound()
    return employee


async def get_employee(db: AsyncSession, employee_id: int) -> Employee:
    result = await db.execute(select(Employee).where(Employee.id == employee_id))
    employee = result.scalar_one_or_none()
    if employee is None:
        raise EmployeeNotFound()
    return employee


async def _lock_day_record(
    db: AsyncSession, employee_id: int, day: str
) -> AttendanceRecord | None:
    result = await db.execute(
        select(AttendanceRecord)
        .where(AttendanceRecord.employee_id == employee_id, AttendanceRecord.date == day)
        .with_for_update()
    )
    return result.scalar_one_or_none()


# ── Biometric check-in / check-out ──────────────────────────────────
async def record_biometric_event(
    db: AsyncSession,
    user_id: int,
    action: str,
    location: object = None,
) -> BiometricEvent:
    """Append a check-in/check-out tap after validating the sequence."""
    # Serialise taps per user; the latest event is the state.
    await db.execute(select(User.id).where(User.id == user_id).with_for_update())
    result = await db.execute(
        select(BiometricEvent)
        .where(BiometricEvent.user_id == user_id)
        .order_by(BiometricEvent.timestamp.desc(), BiometricEvent.id.desc())
        .limit(1)
    )
    last_event = result.scalar_one_or_none()

    now = timeutils.utc_now()
    decision = evaluate_transition(last_event, action, now)
    if not decision.allowed:
        await db.rollback()
        logger.info("Rejected %s for user %d: %s", action, user_id, decision.error.code)
        raise decision.error
    if decision.stale_checkin:
        logger.info("User %d checking in over a stale check-in from %s", user_id, last_event.timestamp)

    event = BiometricEvent(
        user_id=user_id,
        action=action,
        timestamp=now,
        location=normalize_location(location),
    )
    db.add(event)
    await db.commit()
    logger.info("Biometric %s recorded for user %d", action, user_id)
    return event


# ── Per-day record mutations ────────────────────────────────────────
def _adopt_legacy_pair(record: AttendanceRecord) -> None:
    """Give a legacy row a real session before it is extended."""
    if not record.sessions and record.clock_in is not None:
        record.sessions.append(
            AttendanceSession(position=1, clock_in=record.clock_in, clock_out=record.clock_out)
        )


def _insert_session(record: AttendanceRecord, session: AttendanceSession) -> None:
    """Add a session in clock-in order and renumber positions.

    An open session may only be the day's latest, so clock-out always
    closes ``sessions[-1]``.
    """
    _adopt_legacy_pair(record)
    ordered = sorted(
        [*record.sessions, session], key=lambda s: timeutils.ensure_utc(s.clock_in)
    )
    if any(s.clock_out is None for s in ordered[:-1]):
        raise InvalidParameter("An open session must be the latest session of the day")
    record.sessions.append(session)
    # Only positions change; collection membership is already recorded.
    record.sessions.sort(key=lambda s: timeutils.ensure_utc(s.clock_in))
    for position, s in enumerate(record.sessions, start=1):
        s.position = position


async def _mutate_day_record(
    db: AsyncSession,
    employee_id: int,
    day: str,
    apply: Callable[[AttendanceRecord | None], AttendanceRecord],
) -> AttendanceRecord:
    """Lock-read-modify-write of one employee-day record.

    A concurrent first insert for the same day loses on the unique key; the
    loser rolls back and re-applies once against the winner's row.
    """
    for attempt in (1, 2):
        record = await _lock_day_record(db, employee_id, day)
        try:
            record = apply(record)
        except AttendanceError:
            await db.rollback()
            raise
        db.add(record)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            if attempt == 2:
                raise
            logger.info("Concurrent write for employee %d on %s, retrying", employee_id, day)
            continue
        return record
    raise RuntimeError("unreachable")


async def clock_in(db: AsyncSession, user_id: int) -> AttendanceRecord:
    employee_id = (await employee_for_user(db, user_id)).id
    now = timeutils.utc_now()
    day = timeutils.local_date(now).isoformat()

    def apply(record: AttendanceRecord | None) -> AttendanceRecord:
        if record is None:
            return AttendanceRecord(
                employee_id=employee_id,
                date=day,
                status="present",
                total_hours=0.0,
                sessions=[AttendanceSession(position=1, clock_in=now, clock_out=None)],
            )
        sessions = record_sessions(record)
        if sessions and sessions[-1].is_open:
            raise AlreadyClockedIn()
        _insert_session(record, AttendanceSession(clock_in=now, clock_out=None))
        return record

    record = await _mutate_day_record(db, employee_id, day, apply)
    logger.info("Clock-in for employee %d on %s", employee_id, day)
    return record


async def clock_out(db: AsyncSession, user_id: int) -> AttendanceRecord:
    employee_id = (await employee_for_user(db, user_id)).id
    now = timeutils.utc_now()
    day = timeutils.local_date(now).isoformat()

    def apply(record: AttendanceRecord | None) -> AttendanceRecord:
        sessions = record_sessions(record) if record is not None else []
        if not sessions:
            raise NoClockInFound()
        if sessions[-1].clock_out is not None:
            raise AlreadyClockedOut()
        _adopt_legacy_pair(record)
        record.sessions[-1].clock_out = now
        record.total_hours = completed_hours(record_sessions(record))
        return record

    record = await _mutate_day_record(db, employee_id, day, apply)
    logger.info("Clock-out for employee %d on %s (%.2fh)", employee_id, day, record.total_hours)
    return record


async def manual_entry(db: AsyncSession, body: ManualAttendanceCreate) -> AttendanceRecord:
    """Admin entry of a day's attendance, appended to any existing record."""
    employee_id = (await get_employee(db, body.employee_id)).id

    day = timeutils.parse_day(body.date)
    if day is None:
        raise InvalidParameter("Invalid date parameter")
    status = body.status or "manual"
    if status not in ATTENDANCE_STATUSES:
        raise InvalidParameter(f"Invalid status. Must be one of: {', '.join(ATTENDANCE_STATUSES)}")

    start = _parse_optional_instant(body.clock_in, "clockIn")
    end = _parse_optional_instant(body.clock_out, "clockOut")
    if end is not None and start is None:
        raise InvalidParameter("clockOut requires clockIn")
    if start is not None and end is not None and end <= start:
        raise InvalidParameter("clockOut must be after clockIn")

    def apply(record: AttendanceRecord | None) -> AttendanceRecord:
        if record is None:
            record = AttendanceRecord(employee_id=employee_id, date=day.isoformat(), sessions=[])
        if start is not None:
            _insert_session(record, AttendanceSession(clock_in=start, clock_out=end))
        record.status = status
        record.notes = body.notes
        record.total_hours = completed_hours(record_sessions(record))
        return record

    record = await _mutate_day_record(db, employee_id, day.isoformat(), apply)
    logger.info("Manual attendance for employee %d on %s (%s)", employee_id, day.isoformat(), status)
    return record


def _parse_optional_instant(value: str | None, name: str):
    if value is None or not value.strip():
        return None
    parsed = timeutils.parse_instant(value)
    if parsed is None:
        raise InvalidParameter(f"Invalid {name} parameter")
    return parsed


# ── Listings ────────────────────────────────────────────────────────
def parse_id(value: str | None, name: str) -> int | None:
    """Validate an optional identifier query parameter."""
    if value is None or value == "":
        return None
    text = value.strip()
    if not text.isdigit() or int(text) <= 0:
        raise InvalidParameter(f"Invalid {name} parameter")
    return int(text)


def resolve_day_window(
    day: str | None, start_date: str | None, end_date: str | None
) -> tuple[date, date] | None:
    """Turn ``date`` or ``startDate``/``endDate`` into an inclusive day span.

    Returns ``None`` when no date filter was given.
    """
    if day:
        parsed = timeutils.parse_day(day)
        if parsed is None:
            raise InvalidParameter("Invalid date parameter")
        return parsed, parsed
    if start_date and end_date:
        start = timeutils.parse_day(start_date)
        end = timeutils.parse_day(end_date)
        if start is None or end is None:
            raise InvalidParameter("Invalid date range provided")
        if start > end:
            raise InvalidParameter("startDate must not be after endDate")
        return start, end
    if start_date or end_date:
        raise InvalidParameter("Both startDate and endDate are required when filtering by range")
    return None


def _with_employee(query):
    return query.options(selectinload(AttendanceRecord.employee))


async def list_recent_records(db: AsyncSession, limit: int = RECENT_RECORDS_LIMIT) -> list[AttendanceRecordRead]:
    result = await db.execute(
        _with_employee(select(AttendanceRecord))
        .order_by(AttendanceRecord.date.desc(), AttendanceRecord.created_at.desc())
        .limit(limit)
    )
    return [record_read(r, r.employee) for r in result.scalars().all()]


async def list_employee_records(
    db: AsyncSession,
    employee_id: int,
    day: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> list[AttendanceRecordRead]:
    window = resolve_day_window(day, start_date, end_date)
    query = _with_employee(select(AttendanceRecord)).where(
        AttendanceRecord.employee_id == employee_id
    )
    if window is not None:
        query = query.where(
            AttendanceRecord.date >= window[0].isoformat(),
            AttendanceRecord.date <= window[1].isoformat(),
        )
    result = await db.execute(query.order_by(AttendanceRecord.date.desc()))
    return [record_read(r, r.employee) for r in result.scalars().all()]


async def list_biometric_logs(
    db: AsyncSession,
    user_id: str | None,
    day: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    limit: str | None = None,
) -> list[BiometricEventRead]:
    """Biometric taps of one user, newest first."""
    if not user_id:
        raise InvalidParameter("userId is required")
    uid = parse_id(user_id, "userId")

    query = select(BiometricEvent).where(BiometricEvent.user_id == uid)
    window = resolve_day_window(day, start_date, end_date)
    if window is not None:
        start, _ = timeutils.day_bounds(window[0])
        _, end = timeutils.day_bounds(window[1])
        query = query.where(BiometricEvent.timestamp >= start, BiometricEvent.timestamp <= end)

    query = query.order_by(BiometricEvent.timestamp.desc(), BiometricEvent.id.desc())
    cap = _parse_limit(limit)
    if cap is not None:
        query = query.limit(cap)

    result = await db.execute(query)
    return [event_read(e) for e in result.scalars().all()]


def _parse_limit(value: str | None) -> int | None:
    """Positive row cap, or ``None`` when absent or not positive."""
    if value is None or not value.strip():
        return None
    try:
        limit = int(value.strip())
    except ValueError:
        raise InvalidParameter("Invalid limit parameter") from None
    return limit if limit > 0 else None
