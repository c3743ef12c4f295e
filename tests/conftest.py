"""
Shared test fixtures for the attendance test suite.

Each test gets its own in-memory aiosqlite database; the app's DB
dependency is overridden to use it. Auth goes through real JWTs.
"""

import itertools
import os
import sys
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import AsyncGenerator
from unittest.mock import patch

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["TIMEZONE"] = "UTC"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"

from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hrms.api.v1.deps import get_db
from hrms.core.security import create_access_token
from hrms.db.base import Base
from hrms.main import app
from hrms.models.employee import Department, Employee
from hrms.models.user import User


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


def _headers(user_id: int) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def make_employee(session_factory):
    """Factory: create a user + employee (optionally in a department)."""
    counter = itertools.count(1)

    async def _make(name: str, department: str | None = None, role: str = "employee"):
        n = next(counter)
        async with session_factory() as session:
            dept = None
            if department:
                result = await session.execute(select(Department).where(Department.name == department))
                dept = result.scalar_one_or_none()
                if dept is None:
                    dept = Department(name=department)
                    session.add(dept)
            user = User(email=f"user{n}@example.com", name=name, role=role)
            session.add(user)
            await session.flush()
            employee = Employee(user_id=user.id, department=dept, designation="Engineer")
            session.add(employee)
            await session.commit()
            return SimpleNamespace(
                user_id=user.id,
                employee_id=employee.id,
                department_id=dept.id if dept else None,
                headers=_headers(user.id),
            )

    return _make


@pytest.fixture
async def admin_headers(session_factory) -> dict[str, str]:
    async with session_factory() as session:
        admin = User(email="hr@example.com", name="HR Admin", role="hr")
        session.add(admin)
        await session.commit()
        return _headers(admin.id)


@pytest.fixture
def frozen_now():
    """Patch the clock source; call with a datetime to move time."""
    with patch("hrms.core.timeutils.utc_now") as mocked:

        def _set(moment: datetime) -> datetime:
            mocked.return_value = moment
            return moment

        _set(utc(2026, 3, 2, 9, 0))
        yield _set
