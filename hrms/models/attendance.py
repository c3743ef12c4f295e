"""
Attendance models — per-day records, their sessions, and the raw
biometric event log.

Legacy rows carry a single flat ``clock_in``/``clock_out`` pair and no
session rows; they are adapted on read and never rewritten.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (JSON, Column, DateTime, Float, ForeignKey, Index,
                        Integer, String, UniqueConstraint)
from sqlalchemy.orm import relationship

from hrms.db.base import Base

ATTENDANCE_STATUSES = ("present", "absent", "half-day", "in-progress", "manual")
BIOMETRIC_ACTIONS = ("checkin", "checkout")


class AttendanceRecord(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("employee_id", "date", name="uq_attendance_emp_date"),
        Index("ix_attendance_employee_date", "employee_id", "date"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    employee_id: int = Column(Integer, ForeignKey("employees.id"), nullable=False)  # type: ignore[assignment]
    date: str = Column(String(10), nullable=False, index=True)  # type: ignore[assignment]  # YYYY-MM-DD
    # Legacy flat pair (pre-sessions schema)
    clock_in: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    clock_out: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    total_hours: float = Column(Float, nullable=False, default=0.0)  # type: ignore[assignment]
    status: str = Column(String(20), nullable=False, default="present")  # type: ignore[assignment]
    notes: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    employee = relationship("Employee", back_populates="attendances")
    sessions = relationship(
        "AttendanceSession",
        back_populates="record",
        order_by="AttendanceSession.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class AttendanceSession(Base):
    __tablename__ = "attendance_sessions"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    attendance_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("attendance.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: int = Column(Integer, nullable=False, default=1)  # type: ignore[assignment]
    clock_in: datetime = Column(DateTime(timezone=True), nullable=False)  # type: ignore[assignment]
    clock_out: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]

    record = relationship("AttendanceRecord", back_populates="sessions")


class BiometricEvent(Base):
    __tablename__ = "biometric_attendance"
    __table_args__ = (Index("ix_biometric_user_timestamp", "user_id", "timestamp"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)  # type: ignore[assignment]
    action: str = Column(String(10), nullable=False)  # type: ignore[assignment]  # checkin | checkout
    timestamp: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    location: dict | None = Column(JSON, nullable=True)  # type: ignore[assignment]
