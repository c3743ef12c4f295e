"""
HRMS Attendance — application entry point.

This is the **only** file that assembles the app. All business logic
lives in the `services/`, `api/`, `models/`, and `core/` packages.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hrms.api.v1.api import api_router
from hrms.core.config import settings
from hrms.core.exceptions import register_exception_handlers
from hrms.db.base import Base
from hrms.db.session import engine

# Ensure all models are imported so metadata.create_all can see them
from hrms.models.attendance import (AttendanceRecord,  # noqa: F401
                                    AttendanceSession, BiometricEvent)
from hrms.models.employee import Department, Employee  # noqa: F401
from hrms.models.user import User  # noqa: F401

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    logger.info("%s v%s started (timezone %s)", settings.PROJECT_NAME, settings.VERSION, settings.TIMEZONE)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Attendance tracking, reconciliation and reporting",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return application


app = create_app()
