"""AI insight and sales forecast endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from crm_reporting.db.session import get_db_session
from crm_reporting.services.ai_provider import get_ai_provider
from crm_reporting.services.insights import AIInsightsProvider
from crm_reporting.services.reporting_service import CrmReportingService

router = APIRouter(prefix="/insights", tags=["insights"])


def _service(db: Session, provider: AIInsightsProvider) -> CrmReportingService:
    return CrmReportingService(db, provider=provider)


@router.post("/dashboard")
def generate_dashboard_insights(
    db: Session = Depends(get_db_session),
    provider: AIInsightsProvider = Depends(get_ai_provider),
) -> dict[str, object]:
    return _service(db, provider).dashboard_insights()


@router.post("/forecast")
def generate_sales_forecast(
    forecast_period: str | None = None,
    db: Session = Depends(get_db_session),
    provider: AIInsightsProvider = Depends(get_ai_provider),
) -> dict[str, object]:
    service = _service(db, provider)
    return service.sales_forecast(forecast_period=forecast_period)
