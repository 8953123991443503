"""Report, dashboard, activity-log, export and AI insight service layer."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from crm_reporting.core.config import get_settings
from crm_reporting.core.errors import (
    CrmReportingError,
    EmptyExportSet,
    InvalidPeriod,
    ProviderError,
    ProviderUnavailable,
)
from crm_reporting.models.entities import Customer, Deal, DealStage, EntityActivityLog, Lead, LeadStatus, Task
from crm_reporting.repositories.crm_repository import CrmRepository
from crm_reporting.services.activity_log import ActivityLogFilters, filter_activity_logs, sort_activity_logs
from crm_reporting.services.aggregation import (
    ChartDataItem,
    Number,
    drop_zero_buckets,
    group_by_month,
    group_by_source,
    unique_account_managers,
    unique_deal_owners,
)
from crm_reporting.services.charts import (
    EMERALD,
    FUNNEL_PIE_COLORS,
    VIOLET,
    bar_chart,
    chart_to_dict,
    line_chart,
    pie_chart,
)
from crm_reporting.services.export import (
    EXPORT_FORMATS,
    ExportColumn,
    ExportFilePayload,
    render_export,
    summarize_details,
    to_export_rows,
)
from crm_reporting.services.funnel import (
    SourceEffectivenessRow,
    build_deal_pipeline,
    build_lead_funnel,
    build_source_effectiveness,
    deal_stage_of,
    lead_status_of,
    percent,
)
from crm_reporting.services.insights import (
    AIInsightsProvider,
    build_forecast_request,
    build_insights_request,
    parse_forecast_text,
    split_insights,
)
from crm_reporting.services.periods import REPORT_PERIOD_LABELS, DateRange, ReportPeriod, in_range, resolve_period
from crm_reporting.services.records import field_value, plain_value, to_amount, to_datetime
from crm_reporting.services.tables import ITEMS_PER_PAGE_OPTIONS, SortDirection, paginate, sort_records
from crm_reporting.services.tasks import select_my_tasks

logger = logging.getLogger(__name__)

ALL_OPTION = "all"
Q2 = Decimal("0.01")
NEW_LEAD_WINDOW = timedelta(days=30)
RECENT_ACTIVITY_LIMIT = 10

SALES_PERFORMANCE_COLUMNS = (
    ExportColumn("Deal Name", "deal_name"),
    ExportColumn("Owner", "owner"),
    ExportColumn("Value", "value"),
    ExportColumn("Currency", "currency"),
    ExportColumn("Close Date", "close_date"),
    ExportColumn("Stage", "stage"),
)
SOURCE_EFFECTIVENESS_COLUMNS = (
    ExportColumn("Source", "source"),
    ExportColumn("Total Leads", "total_leads"),
    ExportColumn("Deals Created", "deals_created"),
    ExportColumn("Lead to Deal Rate (%)", lambda row: _q2(row.lead_to_deal_rate)),
    ExportColumn("Won Deals", "won_deals"),
    ExportColumn("Lead to Won Deal Rate (%)", lambda row: _q2(row.lead_to_won_deal_rate)),
    ExportColumn("Total Won Value", "total_won_value"),
)
CUSTOMER_ACTIVITY_COLUMNS = (
    ExportColumn("Customer Name", "name"),
    ExportColumn("Company", "company"),
    ExportColumn("Total Revenue", "total_revenue"),
    ExportColumn("Account Manager", "account_manager"),
    ExportColumn("Last Purchase", "last_purchase_date"),
    ExportColumn("Won Deals", "won_deals_count"),
)
SALES_SORT_KEYS = ("deal_name", "owner", "value", "currency", "close_date", "stage")
CUSTOMER_SORT_KEYS = ("name", "company", "total_revenue", "account_manager", "last_purchase_date", "won_deals_count")
SOURCE_SORT_KEYS = (
    "source",
    "total_leads",
    "deals_created",
    "lead_to_deal_rate",
    "won_deals",
    "lead_to_won_deal_rate",
    "total_won_value",
)
ACTIVITY_LOG_COLUMNS = (
    ExportColumn("Timestamp", "timestamp"),
    ExportColumn("User", "user_name"),
    ExportColumn("Activity Type", "activity_type"),
    ExportColumn("Description", "description"),
    ExportColumn("Entity Type", "entity_type"),
    ExportColumn("Entity ID", "entity_id"),
    ExportColumn("Details", "details"),
)


@dataclass(slots=True)
class CustomerActivityRow:
    id: str
    name: str
    company: str | None
    total_revenue: Decimal | None
    account_manager: str | None
    last_purchase_date: date | None
    won_deals_count: int


def _q2(value: Number) -> Decimal:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(Q2)


def _money(value: Number | None) -> str | None:
    if value is None:
        return None
    return str(_q2(value))


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _chart_value(value: Number) -> int | float:
    # Chart values stay numeric; tables and totals carry the cent strings.
    if isinstance(value, int):
        return value
    return float(_q2(value))


def _chart(chart: Any) -> dict[str, object]:
    return chart_to_dict(chart, serialize_value=_chart_value)


def _sum_values(deals: Sequence[Any]) -> Number:
    return sum((to_amount(field_value(deal, "value")) for deal in deals), Decimal("0"))


class CrmReportingService:
    """Service composing the report engine over Entity Store snapshots."""

    def __init__(self, db: Session, provider: AIInsightsProvider | None = None) -> None:
        self.db = db
        self.repo = CrmRepository(db)
        self.settings = get_settings()
        self.provider = provider

    # ---------- Errors ----------
    @staticmethod
    def to_http_error(error: CrmReportingError) -> HTTPException:
        if isinstance(error, InvalidPeriod):
            return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=error.message)
        if isinstance(error, EmptyExportSet):
            return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=error.message)
        if isinstance(error, ProviderUnavailable):
            return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=error.message)
        if isinstance(error, ProviderError):
            return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=error.message)
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error.message)

    def _resolve_period(self, period: str, now: datetime | None) -> DateRange:
        try:
            return resolve_period(period, now=now)
        except InvalidPeriod as exc:
            raise self.to_http_error(exc) from exc

    @staticmethod
    def _sort_table(
        rows: Sequence[Any],
        sort_key: str | None,
        direction: SortDirection,
        allowed_keys: Sequence[str],
    ) -> list[Any]:
        if sort_key is None:
            return list(rows)
        if sort_key not in allowed_keys:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"sort_key must be one of: {', '.join(allowed_keys)}.",
            )
        return sort_records(rows, sort_key, direction)

    # ---------- Serialization ----------
    @staticmethod
    def _serialize_deal(deal: Deal) -> dict[str, object]:
        return {
            "id": deal.id,
            "deal_name": deal.deal_name,
            "owner": deal.owner,
            "value": _money(deal.value),
            "currency": deal.currency,
            "close_date": _iso(deal.close_date),
            "stage": plain_value(deal.stage),
            "customer_id": deal.customer_id,
            "lead_id": deal.lead_id,
        }

    @staticmethod
    def _serialize_task(task: Task) -> dict[str, object]:
        return {
            "id": task.id,
            "title": task.title,
            "due_date": _iso(task.due_date),
            "status": plain_value(task.status),
            "priority": plain_value(task.priority),
            "related_type": task.related_type,
            "related_name": task.related_name,
        }

    @staticmethod
    def _serialize_log(log: EntityActivityLog) -> dict[str, object]:
        return {
            "id": log.id,
            "timestamp": _iso(log.timestamp),
            "entity_id": log.entity_id,
            "entity_type": plain_value(log.entity_type),
            "user_id": log.user_id,
            "user_name": log.user_name,
            "activity_type": plain_value(log.activity_type),
            "description": log.description,
            "details": log.details or None,
            "details_summary": summarize_details(log.details),
        }

    @staticmethod
    def _serialize_source_row(row: SourceEffectivenessRow) -> dict[str, object]:
        return {
            "source": row.source,
            "total_leads": row.total_leads,
            "deals_created": row.deals_created,
            "lead_to_deal_rate": str(_q2(row.lead_to_deal_rate)),
            "won_deals": row.won_deals,
            "lead_to_won_deal_rate": str(_q2(row.lead_to_won_deal_rate)),
            "total_won_value": _money(row.total_won_value),
        }

    # ---------- Reports ----------
    def _sales_performance_deals(self, period: str, owner: str, now: datetime | None) -> list[Deal]:
        date_range = self._resolve_period(period, now)
        return [
            deal
            for deal in self.repo.list_deals()
            if deal_stage_of(deal) is DealStage.CLOSED_WON
            and in_range(deal.close_date, date_range)
            and (owner == ALL_OPTION or deal.owner == owner)
        ]

    def sales_performance_report(
        self,
        *,
        period: str = ReportPeriod.ALL_TIME.value,
        owner: str = ALL_OPTION,
        sort_key: str | None = None,
        direction: SortDirection = "ascending",
        now: datetime | None = None,
    ) -> dict[str, object]:
        deals = self._sales_performance_deals(period, owner, now)
        table = self._sort_table(deals, sort_key, direction, SALES_SORT_KEYS)
        title = "Monthly Sales (All Reps)" if owner == ALL_OPTION else f"Monthly Sales for {owner}"
        return {
            "period": period,
            "period_label": REPORT_PERIOD_LABELS[ReportPeriod(period)],
            "owner": owner,
            "owner_options": unique_deal_owners(self.repo.list_deals()),
            "currency": self.settings.default_currency,
            "total_revenue": _money(_sum_values(deals)),
            "deal_count": len(deals),
            "chart_title": title,
            "chart": _chart(bar_chart(group_by_month(deals))),
            "deals": [self._serialize_deal(deal) for deal in table],
        }

    def lead_conversion_funnel_report(self) -> dict[str, object]:
        leads = self.repo.list_leads()
        return {
            "total_leads": len(leads),
            "chart": _chart(pie_chart(build_lead_funnel(leads), colors=FUNNEL_PIE_COLORS)),
        }

    def deal_pipeline_report(self) -> dict[str, object]:
        summary = build_deal_pipeline(self.repo.list_deals())
        return {
            "currency": self.settings.default_currency,
            "active_pipeline_value": _money(summary.active_pipeline_value),
            "total_closed_won_value": _money(summary.total_closed_won_value),
            "chart": _chart(bar_chart(summary.chart, color=VIOLET)),
            "stages": [
                {
                    "stage": stage.stage.value,
                    "deal_count": stage.deal_count,
                    "total_value": _money(stage.total_value),
                }
                for stage in summary.stages
            ],
        }

    def _customer_activity_rows(self, account_manager: str) -> list[CustomerActivityRow]:
        won_counts: dict[str, int] = {}
        for deal in self.repo.list_deals():
            if deal.customer_id and deal_stage_of(deal) is DealStage.CLOSED_WON:
                won_counts[deal.customer_id] = won_counts.get(deal.customer_id, 0) + 1

        return [
            CustomerActivityRow(
                id=customer.id,
                name=customer.name,
                company=customer.company,
                total_revenue=customer.total_revenue,
                account_manager=customer.account_manager,
                last_purchase_date=customer.last_purchase_date,
                won_deals_count=won_counts.get(customer.id, 0),
            )
            for customer in self._customers()
            if account_manager == ALL_OPTION or customer.account_manager == account_manager
        ]

    def _customers(self) -> list[Customer]:
        return self.repo.list_customers()

    def customer_activity_report(
        self,
        *,
        account_manager: str = ALL_OPTION,
        sort_key: str | None = None,
        direction: SortDirection = "ascending",
    ) -> dict[str, object]:
        rows = self._sort_table(
            self._customer_activity_rows(account_manager),
            sort_key,
            direction,
            CUSTOMER_SORT_KEYS,
        )
        return {
            "account_manager": account_manager,
            "account_manager_options": unique_account_managers(self._customers()),
            "customers": [
                {
                    "id": row.id,
                    "name": row.name,
                    "company": row.company,
                    "total_revenue": _money(row.total_revenue),
                    "account_manager": row.account_manager,
                    "last_purchase_date": _iso(row.last_purchase_date),
                    "won_deals_count": row.won_deals_count,
                }
                for row in rows
            ],
        }

    def lead_source_effectiveness_report(
        self,
        *,
        sort_key: str | None = None,
        direction: SortDirection = "ascending",
    ) -> dict[str, object]:
        rows = build_source_effectiveness(self.repo.list_leads(), self.repo.list_deals())
        chart_items = drop_zero_buckets([ChartDataItem(name=row.source, value=row.total_leads) for row in rows])
        # The chart keeps the most-leads-first order; only the table is re-sorted.
        table = self._sort_table(rows, sort_key, direction, SOURCE_SORT_KEYS)
        return {
            "rows": [self._serialize_source_row(row) for row in table],
            "chart": _chart(bar_chart(chart_items, color=EMERALD)),
        }

    # ---------- Dashboard ----------
    def dashboard_summary(self, *, assignee: str | None = None, now: datetime | None = None) -> dict[str, object]:
        current = now or datetime.now()
        leads: list[Lead] = self.repo.list_leads()
        deals: list[Deal] = self.repo.list_deals()

        won_deals = [deal for deal in deals if deal_stage_of(deal) is DealStage.CLOSED_WON]
        new_lead_cutoff = current - NEW_LEAD_WINDOW
        new_leads = [
            lead
            for lead in leads
            if lead_status_of(lead) is LeadStatus.NEW
            or ((created := to_datetime(lead.created_at)) is not None and created > new_lead_cutoff)
        ]
        lead_ids = {lead.id for lead in leads}
        won_from_leads = sum(1 for deal in won_deals if deal.lead_id in lead_ids)

        recent_logs = sort_activity_logs(self.repo.list_activity_logs())[:RECENT_ACTIVITY_LIMIT]
        my_tasks = select_my_tasks(self.repo.list_tasks(), assignee, today=current) if assignee else []

        return {
            "currency": self.settings.default_currency,
            "stats": {
                "total_revenue": _money(_sum_values(won_deals)),
                "new_leads": len(new_leads),
                "deals_closed": len(won_deals),
                "lead_to_won_deal_rate": str(_q2(percent(won_from_leads, len(leads)))),
            },
            "sales_chart": _chart(line_chart(group_by_month(won_deals))),
            "lead_sources_chart": _chart(pie_chart(group_by_source(leads))),
            "recent_activity": [self._serialize_log(log) for log in recent_logs],
            "my_tasks": [self._serialize_task(task) for task in my_tasks],
        }

    # ---------- Activity log ----------
    def activity_logs(
        self,
        *,
        filters: ActivityLogFilters,
        page: int = 1,
        page_size: int | None = None,
        now: datetime | None = None,
    ) -> dict[str, object]:
        size = page_size or self.settings.activity_log_page_size
        if size not in ITEMS_PER_PAGE_OPTIONS:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"page_size must be one of: {', '.join(str(option) for option in ITEMS_PER_PAGE_OPTIONS)}.",
            )
        logs = self._filtered_logs(filters, now)
        result = paginate(logs, page, size)
        return {
            "items": [self._serialize_log(log) for log in result.page_items],
            "page": result.page,
            "page_size": result.page_size,
            "total_items": result.total_items,
            "total_pages": result.total_pages,
        }

    def _filtered_logs(self, filters: ActivityLogFilters, now: datetime | None) -> list[EntityActivityLog]:
        try:
            selected = filter_activity_logs(self.repo.list_activity_logs(), filters, now=now)
        except InvalidPeriod as exc:
            raise self.to_http_error(exc) from exc
        return sort_activity_logs(selected)

    # ---------- Exports ----------
    def export_report(
        self,
        *,
        report_key: str,
        format_name: str,
        period: str = ReportPeriod.ALL_TIME.value,
        owner: str = ALL_OPTION,
        account_manager: str = ALL_OPTION,
        filters: ActivityLogFilters | None = None,
        now: datetime | None = None,
    ) -> ExportFilePayload:
        normalized_key = report_key.strip().lower()
        normalized_format = format_name.strip().lower()
        if normalized_format not in EXPORT_FORMATS:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="format must be one of: csv, xlsx.",
            )

        current = now or datetime.now()
        report_dispatch: dict[str, Callable[[], tuple[list[dict[str, str]], str]]] = {
            "sales-performance": lambda: (
                to_export_rows(self._sales_performance_deals(period, owner, now), SALES_PERFORMANCE_COLUMNS),
                "sales_performance_report",
            ),
            "lead-source-effectiveness": lambda: (
                to_export_rows(
                    build_source_effectiveness(self.repo.list_leads(), self.repo.list_deals()),
                    SOURCE_EFFECTIVENESS_COLUMNS,
                ),
                "lead_source_effectiveness_report",
            ),
            "customer-activity": lambda: (
                to_export_rows(self._customer_activity_rows(account_manager), CUSTOMER_ACTIVITY_COLUMNS),
                "customer_activity_report",
            ),
            "activity-log": lambda: (
                to_export_rows(self._filtered_logs(filters or ActivityLogFilters(), now), ACTIVITY_LOG_COLUMNS),
                f"activity_log_export_{current.date().isoformat()}",
            ),
        }
        build_rows = report_dispatch.get(normalized_key)
        if build_rows is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Unknown report_key for export.",
            )

        rows, basename = build_rows()
        try:
            exported = render_export(rows, basename, normalized_format)
        except EmptyExportSet as exc:
            logger.info("Export %s requested with no rows", normalized_key)
            raise self.to_http_error(exc) from exc

        logger.info("Exported %s as %s with %d rows", normalized_key, normalized_format, len(rows))
        return exported

    # ---------- AI insights ----------
    def _provider(self) -> AIInsightsProvider:
        if self.provider is None:
            from crm_reporting.services.ai_provider import OpenAIInsightsProvider

            self.provider = OpenAIInsightsProvider.from_settings(self.settings)
        return self.provider

    def dashboard_insights(self) -> dict[str, object]:
        request = build_insights_request(self.repo.list_leads(), self.repo.list_deals())
        try:
            text = self._provider().generate_insights(request)
        except (ProviderUnavailable, ProviderError) as exc:
            raise self.to_http_error(exc) from exc
        return {"text": text, "paragraphs": split_insights(text)}

    def sales_forecast(self, *, forecast_period: str | None = None, now: datetime | None = None) -> dict[str, object]:
        request = build_forecast_request(
            self.repo.list_leads(),
            self.repo.list_deals(),
            now=now,
            forecast_period=forecast_period or self.settings.forecast_period,
        )
        try:
            result = self._provider().generate_forecast(request)
        except (ProviderUnavailable, ProviderError) as exc:
            raise self.to_http_error(exc) from exc
        summary = parse_forecast_text(result.forecast_text)
        return {
            "forecast_text": result.forecast_text,
            "forecasted_revenue": summary.forecasted_revenue,
            "confidence_level": summary.confidence_level,
            "key_factors": summary.key_factors,
        }
