"""Top-level API router."""

from fastapi import APIRouter

from crm_reporting.api.routes.activity_logs import router as activity_logs_router
from crm_reporting.api.routes.dashboards import router as dashboards_router
from crm_reporting.api.routes.exports import router as exports_router
from crm_reporting.api.routes.health import router as health_router
from crm_reporting.api.routes.insights import router as insights_router
from crm_reporting.api.routes.reports import router as reports_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(reports_router)
api_router.include_router(dashboards_router)
api_router.include_router(activity_logs_router)
api_router.include_router(exports_router)
api_router.include_router(insights_router)
