"""Export endpoint for report datasets."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from crm_reporting.db.session import get_db_session
from crm_reporting.services.activity_log import ActivityLogFilters
from crm_reporting.services.reporting_service import ALL_OPTION, CrmReportingService

router = APIRouter(prefix="/exports", tags=["exports"])


def _service(db: Session) -> CrmReportingService:
    return CrmReportingService(db)


@router.get("/{report_key}")
def export_report(
    report_key: str,
    format: str = Query(default="csv"),
    period: str = "all_time",
    owner: str = ALL_OPTION,
    account_manager: str = ALL_OPTION,
    search: str = "",
    user_id: str = "",
    entity_type: str = "",
    activity_type: str = "",
    log_period: str | None = None,
    db: Session = Depends(get_db_session),
) -> Response:
    """Download a report table.

    ``period`` and ``owner`` apply to sales-performance, ``account_manager`` to
    customer-activity, and ``search``/``user_id``/``entity_type``/
    ``activity_type``/``log_period`` to activity-log.
    """

    service = _service(db)
    exported = service.export_report(
        report_key=report_key,
        format_name=format,
        period=period,
        owner=owner,
        account_manager=account_manager,
        filters=ActivityLogFilters(
            search_term=search,
            user_id=user_id,
            entity_type=entity_type,
            activity_type=activity_type,
            period=log_period,
        ),
    )
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )
