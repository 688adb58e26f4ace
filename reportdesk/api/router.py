"""Top-level API router."""

from fastapi import APIRouter

from reportdesk.api.routes.compiled_reports import router as compiled_reports_router
from reportdesk.api.routes.deadlines import router as deadlines_router
from reportdesk.api.routes.departments import router as departments_router
from reportdesk.api.routes.health import router as health_router
from reportdesk.api.routes.jobs import router as jobs_router
from reportdesk.api.routes.me import router as me_router
from reportdesk.api.routes.notifications import router as notifications_router
from reportdesk.api.routes.reports import router as reports_router
from reportdesk.api.routes.users import router as users_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(me_router)
api_router.include_router(users_router)
api_router.include_router(departments_router)
api_router.include_router(reports_router)
api_router.include_router(compiled_reports_router)
api_router.include_router(notifications_router)
api_router.include_router(deadlines_router)
api_router.include_router(jobs_router)
