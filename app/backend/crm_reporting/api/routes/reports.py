"""Reporting endpoints for sales, lead and customer analytics."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from crm_reporting.db.session import get_db_session
from crm_reporting.services.reporting_service import ALL_OPTION, CrmReportingService
from crm_reporting.services.tables import SortDirection

router = APIRouter(prefix="/reports", tags=["reports"])


def _service(db: Session) -> CrmReportingService:
    return CrmReportingService(db)


@router.get("/sales-performance")
def report_sales_performance(
    period: str = "all_time",
    owner: str = ALL_OPTION,
    sort_key: str | None = None,
    direction: SortDirection = "ascending",
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.sales_performance_report(period=period, owner=owner, sort_key=sort_key, direction=direction)


@router.get("/lead-conversion-funnel")
def report_lead_conversion_funnel(db: Session = Depends(get_db_session)) -> dict[str, object]:
    return _service(db).lead_conversion_funnel_report()


@router.get("/deal-pipeline")
def report_deal_pipeline(db: Session = Depends(get_db_session)) -> dict[str, object]:
    return _service(db).deal_pipeline_report()


@router.get("/customer-activity")
def report_customer_activity(
    account_manager: str = ALL_OPTION,
    sort_key: str | None = None,
    direction: SortDirection = "ascending",
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.customer_activity_report(
        account_manager=account_manager,
        sort_key=sort_key,
        direction=direction,
    )


@router.get("/lead-source-effectiveness")
def report_lead_source_effectiveness(
    sort_key: str | None = None,
    direction: SortDirection = "ascending",
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.lead_source_effectiveness_report(sort_key=sort_key, direction=direction)
