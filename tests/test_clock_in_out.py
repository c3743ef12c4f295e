"""Tests for the portal /attendance/clock-in and /clock-out endpoints."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from hrms.models.attendance import AttendanceRecord, AttendanceSession
from hrms.services import attendance as attendance_service

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_first_clock_in_creates_record(async_client: AsyncClient, make_employee, frozen_now):
    emp = await make_employee("Ada")
    resp = await async_client.post("/api/v1/attendance/clock-in", headers=emp.headers)
    assert resp.status_code == 201
    data = resp.json()
    assert data["employee_id"] == emp.employee_id
    assert data["date"] == "2026-03-02"
    assert data["status"] == "present"
    assert data["sessions"] == [{"clock_in": "2026-03-02T09:00:00.000Z", "clock_out": None}]
    assert data["total_hours"] == 0


@pytest.mark.asyncio
async def test_double_clock_in_rejected(async_client: AsyncClient, make_employee, frozen_now):
    emp = await make_employee("Ada")
    await async_client.post("/api/v1/attendance/clock-in", headers=emp.headers)
    frozen_now(T0 + timedelta(minutes=5))
    resp = await async_client.post("/api/v1/attendance/clock-in", headers=emp.headers)
    assert resp.status_code == 400
    assert resp.json()["code"] == "already_clocked_in"


@pytest.mark.asyncio
async def test_clock_out_without_record(async_client: AsyncClient, make_employee, frozen_now):
    emp = await make_employee("Ada")
    resp = await async_client.post("/api/v1/attendance/clock-out", headers=emp.headers)
    assert resp.status_code == 404
    assert resp.json()["code"] == "no_clock_in_found"


@pytest.mark.asyncio
async def test_multiple_sessions_accumulate_hours(async_client: AsyncClient, make_employee, frozen_now):
    emp = await make_employee("Ada")
    await async_client.post("/api/v1/attendance/clock-in", headers=emp.headers)
    frozen_now(T0 + timedelta(hours=3))
    first_out = await async_client.post("/api/v1/attendance/clock-out", headers=emp.headers)
    assert first_out.status_code == 200
    assert first_out.json()["total_hours"] == 3

    frozen_now(T0 + timedelta(hours=3, minutes=1))
    again = await async_client.post("/api/v1/attendance/clock-out", headers=emp.headers)
    assert again.status_code == 400
    assert again.json()["code"] == "already_clocked_out"

    frozen_now(T0 + timedelta(hours=4))
    assert (await async_client.post("/api/v1/attendance/clock-in", headers=emp.headers)).status_code == 201
    frozen_now(T0 + timedelta(hours=5, minutes=30))
    resp = await async_client.post("/api/v1/attendance/clock-out", headers=emp.headers)
    data = resp.json()
    assert len(data["sessions"]) == 2
    assert data["total_hours"] == 4.5
    assert data["clock_in"] == "2026-03-02T09:00:00.000Z"
    assert data["clock_out"] == "2026-03-02T14:30:00.000Z"


@pytest.mark.asyncio
async def test_new_day_starts_new_record(async_client: AsyncClient, make_employee, frozen_now, db_session):
    emp = await make_employee("Ada")
    await async_client.post("/api/v1/attendance/clock-in", headers=emp.headers)
    frozen_now(T0 + timedelta(days=1))
    resp = await async_client.post("/api/v1/attendance/clock-in", headers=emp.headers)
    assert resp.status_code == 201
    assert resp.json()["date"] == "2026-03-03"

    records = (await db_session.execute(select(AttendanceRecord))).scalars().all()
    assert sorted(r.date for r in records) == ["2026-03-02", "2026-03-03"]


@pytest.mark.asyncio
async def test_clock_out_on_legacy_record(async_client: AsyncClient, make_employee, frozen_now, session_factory):
    """A legacy open clock-in is closed by adopting it as a real session."""
    emp = await make_employee("Ada")
    async with session_factory() as session:
        session.add(
            AttendanceRecord(
                employee_id=emp.employee_id,
                date="2026-03-02",
                clock_in=T0 - timedelta(hours=1),
                status="present",
            )
        )
        await session.commit()

    blocked = await async_client.post("/api/v1/attendance/clock-in", headers=emp.headers)
    assert blocked.status_code == 400

    frozen_now(T0 + timedelta(hours=1))
    resp = await async_client.post("/api/v1/attendance/clock-out", headers=emp.headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["total_hours"] == 2
    assert data["sessions"] == [
        {"clock_in": "2026-03-02T08:00:00.000Z", "clock_out": "2026-03-02T10:00:00.000Z"}
    ]

    async with session_factory() as session:
        rows = (await session.execute(select(AttendanceSession))).scalars().all()
        assert len(rows) == 1


@pytest.mark.asyncio
async def test_clock_in_without_employee_record(async_client: AsyncClient, admin_headers, frozen_now):
    resp = await async_client.post("/api/v1/attendance/clock-in", headers=admin_headers)
    assert resp.status_code == 404
    assert resp.json()["code"] == "employee_not_found"


def _lock_misses_once():
    """Make the first day-record lookup miss, as if a concurrent insert won."""
    real_lock = attendance_service._lock_day_record
    calls = []

    async def _lock(db, employee_id, day):
        calls.append(day)
        if len(calls) == 1:
            return None
        return await real_lock(db, employee_id, day)

    return patch.object(attendance_service, "_lock_day_record", _lock), calls


@pytest.mark.asyncio
async def test_clock_in_retries_after_losing_insert_race(async_client: AsyncClient, make_employee, frozen_now, db_session):
    emp = await make_employee("Ada")
    await async_client.post("/api/v1/attendance/clock-in", headers=emp.headers)
    frozen_now(T0 + timedelta(hours=1))
    await async_client.post("/api/v1/attendance/clock-out", headers=emp.headers)

    frozen_now(T0 + timedelta(hours=2))
    flaky_lock, calls = _lock_misses_once()
    with flaky_lock:
        resp = await async_client.post("/api/v1/attendance/clock-in", headers=emp.headers)
    assert resp.status_code == 201
    assert len(calls) == 2
    assert resp.json()["sessions"] == [
        {"clock_in": "2026-03-02T09:00:00.000Z", "clock_out": "2026-03-02T10:00:00.000Z"},
        {"clock_in": "2026-03-02T11:00:00.000Z", "clock_out": None},
    ]

    records = (await db_session.execute(select(AttendanceRecord))).scalars().all()
    assert len(records) == 1


@pytest.mark.asyncio
async def test_manual_entry_retries_after_losing_insert_race(async_client: AsyncClient, make_employee, admin_headers, frozen_now):
    emp = await make_employee("Ada")
    await async_client.post("/api/v1/attendance/clock-in", headers=emp.headers)

    flaky_lock, calls = _lock_misses_once()
    with flaky_lock:
        resp = await async_client.post(
            "/api/v1/attendance/manual",
            json={
                "employeeId": emp.employee_id,
                "date": "2026-03-02",
                "clockIn": "2026-03-02T06:00:00Z",
                "clockOut": "2026-03-02T08:00:00Z",
            },
            headers=admin_headers,
        )
    assert resp.status_code == 201
    assert len(calls) == 2
    assert len(resp.json()["sessions"]) == 2


@pytest.mark.asyncio
async def test_clock_out_after_manual_entry_closes_open_session(async_client: AsyncClient, make_employee, admin_headers, frozen_now):
    emp = await make_employee("Ada")
    frozen_now(T0 + timedelta(hours=5))
    await async_client.post("/api/v1/attendance/clock-in", headers=emp.headers)

    manual = await async_client.post(
        "/api/v1/attendance/manual",
        json={
            "employeeId": emp.employee_id,
            "date": "2026-03-02",
            "clockIn": "2026-03-02T09:00:00Z",
            "clockOut": "2026-03-02T10:00:00Z",
        },
        headers=admin_headers,
    )
    assert manual.status_code == 201
    assert [s["clock_out"] for s in manual.json()["sessions"]] == ["2026-03-02T10:00:00.000Z", None]

    frozen_now(T0 + timedelta(hours=7))
    resp = await async_client.post("/api/v1/attendance/clock-out", headers=emp.headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["sessions"] == [
        {"clock_in": "2026-03-02T09:00:00.000Z", "clock_out": "2026-03-02T10:00:00.000Z"},
        {"clock_in": "2026-03-02T14:00:00.000Z", "clock_out": "2026-03-02T16:00:00.000Z"},
    ]
    assert data["total_hours"] == 3

    frozen_now(T0 + timedelta(hours=8))
    again = await async_client.post("/api/v1/attendance/clock-in", headers=emp.headers)
    assert again.status_code == 201
    assert [s["clock_out"] is None for s in again.json()["sessions"]] == [False, False, True]


@pytest.mark.asyncio
async def test_manual_session_cannot_overlap_open_session(async_client: AsyncClient, make_employee, admin_headers, frozen_now):
    emp = await make_employee("Ada")
    await async_client.post("/api/v1/attendance/clock-in", headers=emp.headers)

    resp = await async_client.post(
        "/api/v1/attendance/manual",
        json={
            "employeeId": emp.employee_id,
            "date": "2026-03-02",
            "clockIn": "2026-03-02T10:00:00Z",
            "clockOut": "2026-03-02T11:00:00Z",
        },
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_parameter"

    out = await async_client.post("/api/v1/attendance/clock-out", headers=emp.headers)
    assert out.status_code == 200
    assert len(out.json()["sessions"]) == 1
