"""Grouping functions that turn entity collections into chart buckets."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Union

from crm_reporting.services.records import field_value, plain_value, to_amount, to_datetime

Number = Union[int, float, Decimal]

UNKNOWN_SOURCE = "Unknown"
UNASSIGNED_OWNER = "Unassigned"

MONTH_ABBREVIATIONS = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)


@dataclass(frozen=True, slots=True)
class ChartDataItem:
    """One named bucket of a chart series."""

    name: str
    value: Number


def month_label(year: int, month: int) -> str:
    return f"{MONTH_ABBREVIATIONS[month - 1]} {year}"


def source_name(value: Any) -> str:
    value = plain_value(value)
    return str(value) if value else UNKNOWN_SOURCE


def _amount(record: Any, value_field: str) -> Number:
    return to_amount(field_value(record, value_field))


def group_by_month(
    records: Iterable[Any],
    value_field: str = "value",
    date_field: str = "close_date",
) -> list[ChartDataItem]:
    """Sum ``value_field`` per calendar month, oldest month first.

    Records with an empty ``date_field`` are skipped.
    """

    totals: dict[tuple[int, int], Number] = {}
    for record in records:
        moment = to_datetime(field_value(record, date_field))
        if moment is None:
            continue
        key = (moment.year, moment.month)
        totals[key] = totals.get(key, 0) + _amount(record, value_field)

    return [
        ChartDataItem(name=month_label(year, month), value=value)
        for (year, month), value in sorted(totals.items())
    ]


def group_by_owner(
    records: Iterable[Any],
    value_field: str = "value",
    owner_field: str = "owner",
) -> list[ChartDataItem]:
    """Sum ``value_field`` per owner in first-seen order. No sorting."""

    totals: dict[str, Number] = {}
    for record in records:
        owner = plain_value(field_value(record, owner_field)) or UNASSIGNED_OWNER
        totals[owner] = totals.get(owner, 0) + _amount(record, value_field)
    return [ChartDataItem(name=name, value=value) for name, value in totals.items()]


def group_by_source(leads: Iterable[Any]) -> list[ChartDataItem]:
    """Count leads per source in first-seen order; blank sources are "Unknown"."""

    counts: dict[str, int] = {}
    for lead in leads:
        name = source_name(field_value(lead, "source"))
        counts[name] = counts.get(name, 0) + 1
    return [ChartDataItem(name=name, value=value) for name, value in counts.items()]


def drop_zero_buckets(items: Sequence[ChartDataItem]) -> list[ChartDataItem]:
    """Chart-side filter; tables keep the zero buckets."""

    return [item for item in items if item.value > 0]


def unique_deal_owners(deals: Iterable[Any]) -> list[str]:
    return sorted({owner for owner in (field_value(deal, "owner") for deal in deals) if owner})


def unique_account_managers(customers: Iterable[Any]) -> list[str]:
    return sorted(
        {manager for manager in (field_value(customer, "account_manager") for customer in customers) if manager}
    )
