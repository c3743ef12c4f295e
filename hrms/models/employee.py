"""
Organisation directory — departments and employees.

Only the fields the attendance reports join on are modelled here.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from hrms.db.base import Base


class Department(Base):
    __tablename__ = "departments"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(120), unique=True, nullable=False)  # type: ignore[assignment]


class Employee(Base):
    __tablename__ = "employees"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    department_id: int | None = Column(Integer, ForeignKey("departments.id"), nullable=True, index=True)  # type: ignore[assignment]
    designation: str = Column(String(120), nullable=False)  # type: ignore[assignment]
    status: str = Column(String(10), nullable=False, default="active", server_default="active")  # type: ignore[assignment]
    # active | inactive
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    user = relationship("User", lazy="joined")
    department = relationship("Department", lazy="joined")
    attendances = relationship(
        "AttendanceRecord",
        back_populates="employee",
        cascade="all, delete-orphan",
    )
