"""Dashboard summary endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from crm_reporting.db.session import get_db_session
from crm_reporting.services.reporting_service import CrmReportingService

router = APIRouter(prefix="/dashboards", tags=["dashboards"])


def _service(db: Session) -> CrmReportingService:
    return CrmReportingService(db)


@router.get("/summary")
def get_dashboard_summary(
    assignee: str | None = None,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.dashboard_summary(assignee=assignee)
