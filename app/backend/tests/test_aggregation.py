from __future__ import annotations

from datetime import date
from decimal import Decimal

from crm_reporting.models.entities import Deal, DealStage
from crm_reporting.services.aggregation import (
    ChartDataItem,
    drop_zero_buckets,
    group_by_month,
    group_by_owner,
    group_by_source,
    unique_account_managers,
    unique_deal_owners,
)
from crm_reporting.services.records import to_amount


def test_group_by_month_sums_per_calendar_month() -> None:
    deals = [
        {"value": 100, "close_date": "2024-01-15"},
        {"value": 50, "close_date": "2024-01-20"},
        {"value": 200, "close_date": "2024-02-01"},
    ]

    assert group_by_month(deals) == [
        ChartDataItem(name="Jan 2024", value=150),
        ChartDataItem(name="Feb 2024", value=200),
    ]


def test_group_by_month_orders_chronologically_not_lexically() -> None:
    deals = [
        {"value": 1, "close_date": date(2025, 1, 3)},
        {"value": 2, "close_date": date(2024, 2, 3)},
        {"value": 3, "close_date": date(2024, 1, 3)},
    ]

    assert [item.name for item in group_by_month(deals)] == ["Jan 2024", "Feb 2024", "Jan 2025"]


def test_group_by_month_skips_records_without_a_date() -> None:
    deals = [
        {"value": 10, "close_date": None},
        {"value": 20, "close_date": ""},
        {"value": 30, "close_date": "2024-05-05"},
    ]

    assert group_by_month(deals) == [ChartDataItem(name="May 2024", value=30)]


def test_group_by_month_supports_custom_fields() -> None:
    customers = [
        {"total_revenue": Decimal("10.50"), "last_purchase_date": "2024-07-01"},
        {"total_revenue": Decimal("4.50"), "last_purchase_date": "2024-07-09"},
    ]

    result = group_by_month(customers, value_field="total_revenue", date_field="last_purchase_date")

    assert result == [ChartDataItem(name="Jul 2024", value=Decimal("15.00"))]


def test_group_by_owner_keeps_first_seen_order() -> None:
    deals = [
        Deal(deal_name="A", owner="Zoe", value=Decimal("100.00"), stage=DealStage.CLOSED_WON),
        Deal(deal_name="B", owner="Adam", value=Decimal("40.00"), stage=DealStage.CLOSED_WON),
        Deal(deal_name="C", owner="Zoe", value=Decimal("10.00"), stage=DealStage.PROSPECTING),
    ]

    assert group_by_owner(deals) == [
        ChartDataItem(name="Zoe", value=Decimal("110.00")),
        ChartDataItem(name="Adam", value=Decimal("40.00")),
    ]


def test_group_by_owner_buckets_missing_owner_as_unassigned() -> None:
    result = group_by_owner([{"value": 5, "owner": None}, {"value": 7, "owner": ""}])

    assert result == [ChartDataItem(name="Unassigned", value=12)]


def test_group_by_source_defaults_to_unknown() -> None:
    leads = [{"source": "Web"}, {"source": None}, {"source": ""}, {"source": "Web"}, {}]

    assert group_by_source(leads) == [
        ChartDataItem(name="Web", value=2),
        ChartDataItem(name="Unknown", value=3),
    ]


def test_groupings_preserve_the_input_total() -> None:
    deals = [
        {"value": Decimal("120.25"), "close_date": "2024-01-02", "owner": "Ann"},
        {"value": Decimal("80.75"), "close_date": "2024-03-09", "owner": "Bob"},
        {"value": Decimal("19.00"), "close_date": "2023-11-30", "owner": "Ann"},
        {"value": Decimal("0.00"), "close_date": "2024-03-10", "owner": "Cid"},
    ]
    expected = sum(deal["value"] for deal in deals)

    assert sum(item.value for item in group_by_month(deals)) == expected
    assert sum(item.value for item in group_by_owner(deals)) == expected
    assert sum(item.value for item in group_by_source(deals)) == len(deals)


def test_drop_zero_buckets_is_chart_only() -> None:
    items = [ChartDataItem("A", 0), ChartDataItem("B", 3), ChartDataItem("C", Decimal("0.00"))]

    assert drop_zero_buckets(items) == [ChartDataItem("B", 3)]
    assert len(items) == 3


def test_filter_options_are_sorted_and_distinct() -> None:
    deals = [{"owner": "Mia"}, {"owner": "Ben"}, {"owner": None}, {"owner": "Mia"}]
    customers = [{"account_manager": "Zed"}, {"account_manager": ""}, {"account_manager": "Amy"}]

    assert unique_deal_owners(deals) == ["Ben", "Mia"]
    assert unique_account_managers(customers) == ["Amy", "Zed"]


def test_groupings_sum_mixed_int_float_and_decimal_values() -> None:
    deals = [
        {"value": 1.5, "close_date": "2024-01-01", "owner": "Ann"},
        {"value": Decimal("2"), "close_date": "2024-01-02", "owner": "Ann"},
        {"value": 3, "close_date": "2024-02-01", "owner": "Bob"},
        {"value": 0.1, "close_date": "2024-02-02", "owner": "Bob"},
        {"value": None, "close_date": "2024-02-03", "owner": "Bob"},
    ]

    by_month = group_by_month(deals)
    by_owner = group_by_owner(deals)

    assert by_month == [
        ChartDataItem(name="Jan 2024", value=Decimal("3.5")),
        ChartDataItem(name="Feb 2024", value=Decimal("3.1")),
    ]
    assert by_owner == [
        ChartDataItem(name="Ann", value=Decimal("3.5")),
        ChartDataItem(name="Bob", value=Decimal("3.1")),
    ]
    assert sum(item.value for item in by_month) == Decimal("6.6")
    assert sum(item.value for item in by_owner) == Decimal("6.6")


def test_to_amount_normalizes_values_for_addition() -> None:
    assert to_amount(None) == 0
    assert to_amount("") == 0
    assert to_amount(7) == 7
    assert to_amount(Decimal("1.25")) == Decimal("1.25")
    assert to_amount(0.1) == Decimal("0.1")
    assert isinstance(to_amount(2.5), Decimal)
