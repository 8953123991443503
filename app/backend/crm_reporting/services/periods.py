"""Reporting period resolution and inclusive date-range checks."""

from __future__ import annotations

import calendar
import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from crm_reporting.core.errors import InvalidPeriod
from crm_reporting.services.records import to_datetime


class ReportPeriod(str, enum.Enum):
    ALL_TIME = "all_time"
    TODAY = "today"
    THIS_MONTH = "this_month"
    LAST_MONTH = "last_month"
    LAST_90_DAYS = "last_90_days"
    YEAR_TO_DATE = "year_to_date"


REPORT_PERIOD_LABELS: dict[ReportPeriod, str] = {
    ReportPeriod.ALL_TIME: "All Time",
    ReportPeriod.TODAY: "Today",
    ReportPeriod.THIS_MONTH: "This Month",
    ReportPeriod.LAST_MONTH: "Last Month",
    ReportPeriod.LAST_90_DAYS: "Last 90 Days",
    ReportPeriod.YEAR_TO_DATE: "Year to Date",
}


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive instant range; ``None`` leaves that side unbounded."""

    start_date: datetime | None
    end_date: datetime | None

    @property
    def is_unbounded(self) -> bool:
        return self.start_date is None and self.end_date is None

    def contains(self, value: Any) -> bool:
        return in_range(value, self)


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _end_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=23, minute=59, second=59, microsecond=999000)


def parse_period(period: ReportPeriod | str) -> ReportPeriod:
    if isinstance(period, ReportPeriod):
        return period
    try:
        return ReportPeriod(period)
    except ValueError:
        raise InvalidPeriod(period) from None


def resolve_period(period: ReportPeriod | str, now: datetime | None = None) -> DateRange:
    """Resolve a period tag to concrete bounds relative to ``now``.

    ``now`` defaults to the current local time and is read on every call.
    Unknown tags raise ``InvalidPeriod`` instead of widening to all time.
    """

    tag = parse_period(period)
    current = now or datetime.now()

    if tag is ReportPeriod.ALL_TIME:
        return DateRange(start_date=None, end_date=None)

    if tag is ReportPeriod.TODAY:
        return DateRange(start_date=_start_of_day(current), end_date=_end_of_day(current))

    if tag is ReportPeriod.THIS_MONTH:
        last_day = calendar.monthrange(current.year, current.month)[1]
        return DateRange(
            start_date=_start_of_day(current.replace(day=1)),
            end_date=_end_of_day(current.replace(day=last_day)),
        )

    if tag is ReportPeriod.LAST_MONTH:
        last_of_previous = current.replace(day=1) - timedelta(days=1)
        return DateRange(
            start_date=_start_of_day(last_of_previous.replace(day=1)),
            end_date=_end_of_day(last_of_previous),
        )

    if tag is ReportPeriod.LAST_90_DAYS:
        return DateRange(start_date=_start_of_day(current - timedelta(days=90)), end_date=None)

    # YEAR_TO_DATE
    return DateRange(start_date=_start_of_day(current.replace(month=1, day=1)), end_date=None)


def in_range(value: Any, date_range: DateRange) -> bool:
    """Inclusive on both ends. Records without a date only match unbounded ranges."""

    moment = to_datetime(value)
    if moment is None:
        return date_range.is_unbounded
    if date_range.start_date is not None and moment < date_range.start_date:
        return False
    if date_range.end_date is not None and moment > date_range.end_date:
        return False
    return True
