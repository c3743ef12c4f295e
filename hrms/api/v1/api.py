"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from hrms.api.v1.endpoints import attendance, reports

api_router = APIRouter()

# Reports first: /attendance/status etc. must not be shadowed
api_router.include_router(reports.router)

# Check-in/out, clock-in/out, records
api_router.include_router(attendance.router)
