"""Activity-log view: filter, newest-first sort, then paginate."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from crm_reporting.services.periods import ReportPeriod, in_range, resolve_period
from crm_reporting.services.records import field_value, plain_value, to_datetime
from crm_reporting.services.tables import Page, paginate

# Nested ``details`` keys that take part in free-text search.
SEARCHABLE_DETAIL_KEYS = ("file_name", "target_user_name")


@dataclass(frozen=True, slots=True)
class ActivityLogFilters:
    """Empty strings (and ``None``) mean "match all" for that dimension."""

    search_term: str = ""
    user_id: str = ""
    entity_type: str = ""
    activity_type: str = ""
    period: ReportPeriod | str | None = None


def _text(value: Any) -> str:
    value = plain_value(value)
    return "" if value is None else str(value)


def _matches_search(log: Any, needle: str) -> bool:
    haystacks = [
        _text(field_value(log, "description")),
        _text(field_value(log, "user_name")),
        _text(field_value(log, "entity_id")),
    ]
    details = field_value(log, "details") or {}
    for key in SEARCHABLE_DETAIL_KEYS:
        value = field_value(details, key)
        if value:
            haystacks.append(_text(value))
    return any(needle in haystack.lower() for haystack in haystacks)


def _matches_exact(log: Any, field: str, expected: str) -> bool:
    return _text(field_value(log, field)) == _text(expected)


def filter_activity_logs(
    logs: Iterable[Any],
    filters: ActivityLogFilters,
    now: datetime | None = None,
) -> list[Any]:
    """Keep logs that satisfy every non-empty filter, in input order.

    An unknown ``period`` raises ``InvalidPeriod`` before any log is inspected.
    """

    date_range = resolve_period(filters.period, now=now) if filters.period else None
    needle = filters.search_term.lower()

    selected: list[Any] = []
    for log in logs:
        if needle and not _matches_search(log, needle):
            continue
        if filters.user_id and not _matches_exact(log, "user_id", filters.user_id):
            continue
        if filters.entity_type and not _matches_exact(log, "entity_type", filters.entity_type):
            continue
        if filters.activity_type and not _matches_exact(log, "activity_type", filters.activity_type):
            continue
        if date_range is not None and not in_range(field_value(log, "timestamp"), date_range):
            continue
        selected.append(log)
    return selected


def sort_activity_logs(logs: Iterable[Any]) -> list[Any]:
    """Most recent first; logs with equal timestamps keep their input order."""

    return sorted(
        logs,
        key=lambda log: to_datetime(field_value(log, "timestamp")) or datetime.min,
        reverse=True,
    )


def query_activity_logs(
    logs: Sequence[Any],
    filters: ActivityLogFilters,
    page: int = 1,
    page_size: int = 25,
    now: datetime | None = None,
) -> Page[Any]:
    return paginate(sort_activity_logs(filter_activity_logs(logs, filters, now=now)), page, page_size)
