"""
Attendance endpoints — biometric check-in/out, portal clock-in/out,
manual entries and record listings.

- Check-in/out and clock-in/out act on the authenticated user.
- Listing all records and manual entry require an admin / HR role.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.api.v1.deps import (PRIVILEGED_ROLES, get_current_active_user,
                              get_db, require_admin)
from hrms.models.user import User
from hrms.schemas.attendance import (AttendanceRecordRead, BiometricEventRead,
                                     CheckRequest, ManualAttendanceCreate)
from hrms.services import attendance as service

router = APIRouter(prefix="/attendance", tags=["attendance"])
logger = logging.getLogger(__name__)


# ── Biometric check-in / check-out ──────────────────────────────────
@router.post("/check-in", response_model=BiometricEventRead, status_code=201)
async def check_in(
    body: CheckRequest | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_active_user),
) -> BiometricEventRead:
    """Record a check-in tap, optionally with the device's location."""
    event = await service.record_biometric_event(
        db, user.id, "checkin", body.location if body else None
    )
    return service.event_read(event)


@router.post("/check-out", response_model=BiometricEventRead)
async def check_out(
    body: CheckRequest | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_active_user),
) -> BiometricEventRead:
    """Record a check-out tap."""
    event = await service.record_biometric_event(
        db, user.id, "checkout", body.location if body else None
    )
    return service.event_read(event)


@router.get("/logs", response_model=list[BiometricEventRead])
async def biometric_logs(
    user_id: str | None = Query(default=None, alias="userId"),
    date: str | None = Query(default=None),
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    limit: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_active_user),
) -> list[BiometricEventRead]:
    """Biometric taps for one user, newest first.

    Employees may only read their own log.
    """
    if user.role not in PRIVILEGED_ROLES and user_id not in (None, "", str(user.id)):
        raise HTTPException(status_code=403, detail="Not allowed to read other users' logs")
    return await service.list_biometric_logs(db, user_id, date, start_date, end_date, limit)


# ── Portal clock-in / clock-out ─────────────────────────────────────
@router.post("/clock-in", response_model=AttendanceRecordRead, status_code=201)
async def clock_in(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_active_user),
) -> AttendanceRecordRead:
    """Open a new session on today's attendance record."""
    record = await service.clock_in(db, user.id)
    return service.record_read(record)


@router.post("/clock-out", response_model=AttendanceRecordRead)
async def clock_out(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_active_user),
) -> AttendanceRecordRead:
    """Close the open session on today's attendance record."""
    record = await service.clock_out(db, user.id)
    return service.record_read(record)


# ── Records ─────────────────────────────────────────────────────────
@router.get("", response_model=list[AttendanceRecordRead])
async def list_attendance(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> list[AttendanceRecordRead]:
    """Latest attendance records, legacy rows shown in session shape."""
    return await service.list_recent_records(db)


@router.get("/employee/{employee_id}", response_model=list[AttendanceRecordRead])
async def attendance_by_employee(
    employee_id: int,
    date: str | None = Query(default=None),
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> list[AttendanceRecordRead]:
    return await service.list_employee_records(db, employee_id, date, start_date, end_date)


@router.post("/manual", response_model=AttendanceRecordRead, status_code=201)
async def manual_attendance(
    body: ManualAttendanceCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> AttendanceRecordRead:
    """Admin entry of attendance for an employee-day."""
    record = await service.manual_entry(db, body)
    return service.record_read(record)
