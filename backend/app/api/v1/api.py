from fastapi import APIRouter

from backend.app.api.v1.endpoints import cron, dashboard, staff_shift

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(staff_shift.router, prefix="/staff/shift", tags=["staff-shift"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
api_router.include_router(cron.router, prefix="/cron", tags=["cron"])
