"""
Domain errors and global exception handlers.

Handlers prevent stack-trace leakage to clients; every failure is rendered
as ``{"detail": ..., "success": false}``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


# ── Domain errors ───────────────────────────────────────────────────
class AttendanceError(Exception):
    """Base class for attendance failures surfaced to the caller."""

    status_code: int = 400
    code: str = "attendance_error"
    default_message: str = "Attendance request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidParameter(AttendanceError):
    code = "invalid_parameter"
    default_message = "Invalid parameter"


class InvalidSequence(AttendanceError):
    code = "invalid_sequence"
    default_message = "Cannot checkout without a prior checkin"


class AlreadyCheckedIn(AttendanceError):
    code = "already_checked_in"
    default_message = "Already checked in. Please checkout before checking in again."


class AlreadyCheckedOut(AttendanceError):
    code = "already_checked_out"
    default_message = "Already checked out. Please check in before checking out again."


class AlreadyClockedIn(AttendanceError):
    code = "already_clocked_in"
    default_message = "Already clocked in. Please clock out first."


class AlreadyClockedOut(AttendanceError):
    code = "already_clocked_out"
    default_message = "Already clocked out. Please clock in first."


class NoClockInFound(AttendanceError):
    status_code = 404
    code = "no_clock_in_found"
    default_message = "No clock-in record found"


class EmployeeNotFound(AttendanceError):
    status_code = 404
    code = "employee_not_found"
    default_message = "Employee record not found"


# ── Handlers ────────────────────────────────────────────────────────
async def _attendance_error_handler(_request: Request, exc: AttendanceError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code, "success": False},
    )


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "success": False},
        headers=getattr(exc, "headers", None),
    )


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Database integrity error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=409,
        content={"detail": "Database constraint violation", "success": False},
    )


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal database error", "success": False},
    )


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "success": False},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(AttendanceError, _attendance_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
