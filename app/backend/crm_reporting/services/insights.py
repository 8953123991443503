"""Payloads exchanged with the AI insight and forecast provider.

Builders here summarize entity snapshots into the small request shapes the
provider consumes. Parsers turn the provider's loose text back into
structured fields for the API.
"""

from __future__ import annotations

import calendar
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Protocol

from crm_reporting.models.entities import DealStage
from crm_reporting.services.aggregation import ChartDataItem, Number, group_by_month, group_by_source
from crm_reporting.services.funnel import CLOSED_STAGES, deal_stage_of
from crm_reporting.services.records import field_value, to_amount, to_datetime

INSIGHT_SALES_MONTHS = 6
FORECAST_HISTORY_MONTHS = 6
FORECAST_DEAL_LIMIT = 50
RECENT_LEAD_DAYS = 30


@dataclass(frozen=True, slots=True)
class DealStats:
    total_deals: int
    open_deals: int
    average_deal_value: Number


@dataclass(frozen=True, slots=True)
class InsightsRequest:
    sales_data: list[ChartDataItem]
    lead_sources: list[ChartDataItem]
    deal_stats: DealStats | None = None


@dataclass(frozen=True, slots=True)
class HistoricalWonDeal:
    value: Number
    close_date: date | None
    currency: str


@dataclass(frozen=True, slots=True)
class OpenDealSnapshot:
    value: Number
    stage: str
    expected_close_date: date | None
    currency: str


@dataclass(frozen=True, slots=True)
class ForecastRequest:
    historical_won_deals: list[HistoricalWonDeal]
    open_deals: list[OpenDealSnapshot]
    recent_lead_volume: int
    forecast_period: str


@dataclass(frozen=True, slots=True)
class ForecastResult:
    forecast_text: str


@dataclass(frozen=True, slots=True)
class ForecastSummary:
    forecasted_revenue: str | None
    confidence_level: str | None
    key_factors: list[str] = field(default_factory=list)


class AIInsightsProvider(Protocol):
    """Capability the reporting service needs from a generative model."""

    def generate_insights(self, request: InsightsRequest) -> str: ...

    def generate_forecast(self, request: ForecastRequest) -> ForecastResult: ...


def _months_before(day: date, months: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def _close_day(deal: Any) -> date | None:
    moment = to_datetime(field_value(deal, "close_date"))
    return moment.date() if moment is not None else None


def build_insights_request(leads: Sequence[Any], deals: Sequence[Any]) -> InsightsRequest:
    """Last six monthly won-sales buckets, lead sources and deal statistics."""

    won_deals = [deal for deal in deals if deal_stage_of(deal) is DealStage.CLOSED_WON]
    sales_data = group_by_month(won_deals)[-INSIGHT_SALES_MONTHS:]

    total_value = sum((to_amount(field_value(deal, "value")) for deal in deals), 0)
    deal_stats = DealStats(
        total_deals=len(deals),
        open_deals=sum(1 for deal in deals if deal_stage_of(deal) not in CLOSED_STAGES),
        average_deal_value=total_value / len(deals) if deals else 0,
    )
    return InsightsRequest(sales_data=sales_data, lead_sources=group_by_source(leads), deal_stats=deal_stats)


def build_forecast_request(
    leads: Iterable[Any],
    deals: Sequence[Any],
    now: datetime | None = None,
    forecast_period: str = "next quarter",
) -> ForecastRequest:
    current = now or datetime.now()
    today = current.date()
    history_start = _months_before(today, FORECAST_HISTORY_MONTHS)

    historical: list[HistoricalWonDeal] = []
    open_deals: list[OpenDealSnapshot] = []
    for deal in deals:
        stage = deal_stage_of(deal)
        close_day = _close_day(deal)
        value = to_amount(field_value(deal, "value"))
        currency = field_value(deal, "currency") or ""
        if stage is DealStage.CLOSED_WON:
            if close_day is not None and history_start <= close_day <= today:
                historical.append(HistoricalWonDeal(value=value, close_date=close_day, currency=currency))
        elif stage not in CLOSED_STAGES:
            open_deals.append(
                OpenDealSnapshot(value=value, stage=stage.value, expected_close_date=close_day, currency=currency)
            )
    historical.sort(key=lambda deal: deal.close_date, reverse=True)

    lead_cutoff = datetime.combine(today - timedelta(days=RECENT_LEAD_DAYS), datetime.min.time())
    recent_lead_volume = 0
    for lead in leads:
        created = to_datetime(field_value(lead, "created_at"))
        if created is not None and created >= lead_cutoff:
            recent_lead_volume += 1

    return ForecastRequest(
        historical_won_deals=historical[:FORECAST_DEAL_LIMIT],
        open_deals=open_deals[:FORECAST_DEAL_LIMIT],
        recent_lead_volume=recent_lead_volume,
        forecast_period=forecast_period,
    )


def split_insights(text: str) -> list[str]:
    """Split insight text into paragraphs on blank lines."""

    return [paragraph.strip() for paragraph in re.split(r"\n\s*\n", text.strip()) if paragraph.strip()]


_REVENUE_LINE = re.compile(r"^[*#\s]*forecasted revenue[*\s]*:[*\s]*(?P<value>.*)$", re.IGNORECASE)
_CONFIDENCE_LINE = re.compile(r"^[*#\s]*confidence level[*\s]*:[*\s]*(?P<value>.*)$", re.IGNORECASE)


def parse_forecast_text(text: str) -> ForecastSummary:
    """Pick the labelled lines and ``- `` bullets out of a forecast reply.

    Missing labels come back as ``None``; nothing here raises.
    """

    revenue: str | None = None
    confidence: str | None = None
    factors: list[str] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if revenue is None and (match := _REVENUE_LINE.match(line)):
            revenue = match.group("value").strip() or None
        elif confidence is None and (match := _CONFIDENCE_LINE.match(line)):
            confidence = match.group("value").strip() or None
        elif line.startswith("- "):
            factors.append(line[2:].strip())
    return ForecastSummary(forecasted_revenue=revenue, confidence_level=confidence, key_factors=factors)
