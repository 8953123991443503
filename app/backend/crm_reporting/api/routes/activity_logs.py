"""Activity log listing endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from crm_reporting.db.session import get_db_session
from crm_reporting.services.activity_log import ActivityLogFilters
from crm_reporting.services.reporting_service import CrmReportingService

router = APIRouter(prefix="/activity-logs", tags=["activity-logs"])


def _service(db: Session) -> CrmReportingService:
    return CrmReportingService(db)


@router.get("")
def list_activity_logs(
    search: str = "",
    user_id: str = "",
    entity_type: str = "",
    activity_type: str = "",
    period: str | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    filters = ActivityLogFilters(
        search_term=search,
        user_id=user_id,
        entity_type=entity_type,
        activity_type=activity_type,
        period=period,
    )
    return service.activity_logs(filters=filters, page=page, page_size=page_size)
