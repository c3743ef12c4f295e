"""Pydantic schemas for attendance records, biometric events and reports."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

_CAMEL = {"alias_generator": to_camel, "populate_by_name": True}


# ── Biometric check-in / check-out ─────────────────────────────────
class CheckRequest(BaseModel):
    # Raw client geolocation; normalised server-side, never rejected.
    location: dict[str, Any] | None = None

    @field_validator("location", mode="before")
    @classmethod
    def _location(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else None


class BiometricEventRead(BaseModel):
    id: int
    user_id: int
    action: str
    timestamp: str
    location: dict[str, Any] | None = None


# ── Attendance records ─────────────────────────────────────────────
class DepartmentRef(BaseModel):
    id: int
    name: str | None = None


class UserRef(BaseModel):
    id: int
    name: str | None = None
    email: str | None = None


class EmployeeRef(BaseModel):
    id: int
    designation: str | None = None
    department: DepartmentRef | None = None
    user: UserRef | None = None


class AttendanceSessionRead(BaseModel):
    clock_in: str | None
    clock_out: str | None


class AttendanceRecordRead(BaseModel):
    id: int
    employee_id: int
    employee: EmployeeRef | None = None
    date: str
    sessions: list[AttendanceSessionRead]
    # First clock-in / last clock-out of the day, kept for older consumers
    clock_in: str | None = None
    clock_out: str | None = None
    total_hours: float
    status: str
    notes: str | None = None
    created_at: str | None = None


class ManualAttendanceCreate(BaseModel):
    employee_id: int
    date: str
    clock_in: str | None = None
    clock_out: str | None = None
    status: str | None = None
    notes: str | None = Field(default=None, max_length=500)

    model_config = _CAMEL


# ── Daily summary / report ─────────────────────────────────────────
class SessionSummary(BaseModel):
    order: int
    clock_in: str | None
    clock_out: str | None
    duration_hours: float | None
    state: str  # completed | open | orphaned

    model_config = _CAMEL


class DailySummary(BaseModel):
    employee: EmployeeRef | None
    date: str
    first_clock_in: str | None
    last_clock_out: str | None
    session_count: int
    total_hours: float
    live_total_hours: float | None = None
    status: str
    source: str
    sessions: list[SessionSummary]

    model_config = _CAMEL


# ── Health ─────────────────────────────────────────────────────────
class HealthResponse(BaseModel):
    db: bool
