from __future__ import annotations

import csv
import io
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook
from sqlalchemy.orm import Session

from crm_reporting.core.errors import ProviderUnavailable
from crm_reporting.models.entities import (
    Customer,
    Deal,
    DealStage,
    EntityActivityLog,
    EntityActivityType,
    EntityType,
    Lead,
    LeadStatus,
    Task,
    TaskPriority,
    TaskStatus,
)
from crm_reporting.services.ai_provider import get_ai_provider

from conftest import FakeInsightsProvider


@pytest.fixture()
def seeded(db_session: Session) -> Session:
    now = datetime.now().replace(microsecond=0)
    today = now.date()
    db_session.add_all(
        [
            Lead(id="L1", name="Lena", email="l1@test.local", status=LeadStatus.NEW, source="Web",
                 created_at=now - timedelta(days=2)),
            Lead(id="L2", name="Liam", email="l2@test.local", status=LeadStatus.CONTACTED, source="Web",
                 created_at=datetime(2024, 1, 1, 9, 0)),
            Lead(id="L3", name="Lola", email="l3@test.local", status=LeadStatus.QUALIFIED, source="Referral",
                 created_at=now - timedelta(days=60)),
            Lead(id="L4", name="Gone", email="l4@test.local", status=LeadStatus.NEW, source="Web",
                 created_at=now, is_deleted=True),
            Customer(id="C1", name="Acme", email="c1@test.local", company="Acme, Inc.",
                     account_manager="Mia", total_revenue=Decimal("750.00"),
                     last_purchase_date=date(2024, 2, 10), created_at=datetime(2023, 5, 1)),
            Customer(id="C2", name="Globex", email="c2@test.local", account_manager="Zed",
                     created_at=datetime(2023, 6, 1)),
            Deal(id="D1", deal_name="Acme onboarding", customer_id="C1", lead_id="L1",
                 stage=DealStage.CLOSED_WON, value=Decimal("500.00"), currency="USD",
                 close_date=date(2024, 1, 15), owner="Ann", created_at=datetime(2024, 1, 2)),
            Deal(id="D2", deal_name="Acme expansion", customer_id="C1",
                 stage=DealStage.CLOSED_WON, value=Decimal("250.00"), currency="USD",
                 close_date=date(2024, 2, 10), owner="Bob", created_at=datetime(2024, 1, 3)),
            Deal(id="D3", deal_name="Liam pilot", lead_id="L2",
                 stage=DealStage.NEGOTIATION, value=Decimal("300.00"), currency="USD",
                 close_date=today + timedelta(days=20), owner="Ann", created_at=datetime(2024, 1, 4)),
            Deal(id="D4", deal_name="Deleted win", stage=DealStage.CLOSED_WON, value=Decimal("999.00"),
                 currency="USD", close_date=date(2024, 1, 20), owner="Ghost",
                 created_at=datetime(2024, 1, 5), is_deleted=True),
            Task(id="T1", title="Call Lena", due_date=today, status=TaskStatus.PENDING,
                 priority=TaskPriority.HIGH, assigned_to="Ann", created_at=now),
            Task(id="T2", title="Send contract", due_date=today - timedelta(days=3),
                 status=TaskStatus.IN_PROGRESS, assigned_to="Ann", created_at=now),
            Task(id="T3", title="Finished", due_date=today, status=TaskStatus.COMPLETED,
                 assigned_to="Ann", created_at=now),
            EntityActivityLog(id="A1", timestamp=now - timedelta(days=1), entity_id="D1",
                              entity_type=EntityType.DEAL, user_id="u1", user_name="Ann Owner",
                              activity_type=EntityActivityType.FILE_ATTACHED,
                              description="Attached a file", details={"file_name": "Quote.pdf"}),
            EntityActivityLog(id="A2", timestamp=now - timedelta(days=2), entity_id="L1",
                              entity_type=EntityType.LEAD, user_id="u2", user_name="Bob Seller",
                              activity_type=EntityActivityType.STATUS_UPDATED,
                              description="Changed status",
                              details={"field": "status", "old_value": "Contacted", "new_value": "New"}),
            EntityActivityLog(id="A3", timestamp=datetime(2024, 1, 1, 8, 0), entity_id="u2",
                              entity_type=EntityType.USER, user_id="u1", user_name="Ann Owner",
                              activity_type=EntityActivityType.LOGIN, description="Logged in"),
        ]
    )
    db_session.commit()
    return db_session


def test_sales_performance_report(client: TestClient, seeded: Session) -> None:
    response = client.get("/api/v1/reports/sales-performance")

    assert response.status_code == 200
    body = response.json()
    assert body["period_label"] == "All Time"
    assert body["total_revenue"] == "750.00"
    assert body["deal_count"] == 2
    assert body["owner_options"] == ["Ann", "Bob"]
    assert body["chart"]["kind"] == "bar"
    assert body["chart"]["data"] == [
        {"name": "Jan 2024", "value": 500.0},
        {"name": "Feb 2024", "value": 250.0},
    ]
    assert [deal["id"] for deal in body["deals"]] == ["D1", "D2"]


def test_sales_performance_filters_by_owner(client: TestClient, seeded: Session) -> None:
    body = client.get("/api/v1/reports/sales-performance", params={"owner": "Ann"}).json()

    assert body["total_revenue"] == "500.00"
    assert body["chart_title"] == "Monthly Sales for Ann"


def test_sales_performance_rejects_unknown_period(client: TestClient, seeded: Session) -> None:
    response = client.get("/api/v1/reports/sales-performance", params={"period": "forever"})

    assert response.status_code == 422
    assert "forever" in response.json()["detail"]


def test_lead_conversion_funnel(client: TestClient, seeded: Session) -> None:
    body = client.get("/api/v1/reports/lead-conversion-funnel").json()

    assert body["total_leads"] == 3
    assert body["chart"]["kind"] == "pie"
    assert body["chart"]["data"] == [
        {"name": "New", "value": 1},
        {"name": "Contacted", "value": 1},
        {"name": "Qualified", "value": 1},
    ]


def test_deal_pipeline(client: TestClient, seeded: Session) -> None:
    body = client.get("/api/v1/reports/deal-pipeline").json()

    assert body["active_pipeline_value"] == "300.00"
    assert body["total_closed_won_value"] == "750.00"
    assert [item["name"] for item in body["chart"]["data"]] == ["Negotiation/Review", "Closed Won"]
    assert len(body["stages"]) == 7
    assert body["stages"][0] == {"stage": "Prospecting", "deal_count": 0, "total_value": "0.00"}


def test_customer_activity(client: TestClient, seeded: Session) -> None:
    body = client.get("/api/v1/reports/customer-activity").json()

    assert body["account_manager_options"] == ["Mia", "Zed"]
    counts = {customer["id"]: customer["won_deals_count"] for customer in body["customers"]}
    assert counts == {"C1": 2, "C2": 0}

    filtered = client.get("/api/v1/reports/customer-activity", params={"account_manager": "Zed"}).json()
    assert [customer["id"] for customer in filtered["customers"]] == ["C2"]


def test_lead_source_effectiveness(client: TestClient, seeded: Session) -> None:
    body = client.get("/api/v1/reports/lead-source-effectiveness").json()

    web, referral = body["rows"]
    assert web == {
        "source": "Web",
        "total_leads": 2,
        "deals_created": 2,
        "lead_to_deal_rate": "100.00",
        "won_deals": 1,
        "lead_to_won_deal_rate": "50.00",
        "total_won_value": "500.00",
    }
    assert referral["lead_to_deal_rate"] == "0.00"
    assert body["chart"]["data"] == [{"name": "Web", "value": 2}, {"name": "Referral", "value": 1}]


def test_money_chart_buckets_are_numbers(client: TestClient, seeded: Session) -> None:
    sales = client.get("/api/v1/reports/sales-performance").json()
    pipeline = client.get("/api/v1/reports/deal-pipeline").json()

    for chart in (sales["chart"], pipeline["chart"]):
        assert chart["data"]
        assert all(isinstance(item["value"], (int, float)) for item in chart["data"])
    assert pipeline["chart"]["data"] == [
        {"name": "Negotiation/Review", "value": 300.0},
        {"name": "Closed Won", "value": 750.0},
    ]
    assert sales["total_revenue"] == "750.00"
    assert sales["deals"][0]["value"] == "500.00"


def test_report_tables_sort_by_column(client: TestClient, seeded: Session) -> None:
    sales = client.get("/api/v1/reports/sales-performance", params={"sort_key": "value"}).json()
    assert [deal["id"] for deal in sales["deals"]] == ["D2", "D1"]
    assert [item["name"] for item in sales["chart"]["data"]] == ["Jan 2024", "Feb 2024"]

    customers = client.get(
        "/api/v1/reports/customer-activity",
        params={"sort_key": "name", "direction": "descending"},
    ).json()
    assert [customer["id"] for customer in customers["customers"]] == ["C2", "C1"]

    by_revenue = client.get(
        "/api/v1/reports/customer-activity",
        params={"sort_key": "total_revenue", "direction": "descending"},
    ).json()
    assert [customer["id"] for customer in by_revenue["customers"]] == ["C1", "C2"]

    sources = client.get("/api/v1/reports/lead-source-effectiveness", params={"sort_key": "source"}).json()
    assert [row["source"] for row in sources["rows"]] == ["Referral", "Web"]
    assert [item["name"] for item in sources["chart"]["data"]] == ["Web", "Referral"]


def test_report_tables_reject_unknown_sort_options(client: TestClient, seeded: Session) -> None:
    bad_key = client.get("/api/v1/reports/sales-performance", params={"sort_key": "lead_id"})
    assert bad_key.status_code == 422
    assert bad_key.json()["detail"].startswith("sort_key must be one of:")

    bad_direction = client.get(
        "/api/v1/reports/customer-activity",
        params={"sort_key": "name", "direction": "sideways"},
    )
    assert bad_direction.status_code == 422


def test_dashboard_summary(client: TestClient, seeded: Session) -> None:
    body = client.get("/api/v1/dashboards/summary", params={"assignee": "Ann"}).json()

    assert body["stats"] == {
        "total_revenue": "750.00",
        "new_leads": 1,
        "deals_closed": 2,
        "lead_to_won_deal_rate": "33.33",
    }
    assert body["sales_chart"]["kind"] == "line"
    assert body["lead_sources_chart"]["kind"] == "pie"
    assert [log["id"] for log in body["recent_activity"]] == ["A1", "A2", "A3"]
    assert [task["id"] for task in body["my_tasks"]] == ["T2", "T1"]


def test_activity_logs_listing(client: TestClient, seeded: Session) -> None:
    body = client.get("/api/v1/activity-logs", params={"page_size": 10}).json()

    assert body["total_items"] == 3
    assert body["total_pages"] == 1
    assert [log["id"] for log in body["items"]] == ["A1", "A2", "A3"]
    assert body["items"][1]["details_summary"] == "field=status; old=Contacted; new=New"

    searched = client.get("/api/v1/activity-logs", params={"search": "quote"}).json()
    assert [log["id"] for log in searched["items"]] == ["A1"]
    assert searched["page_size"] == 25

    recent = client.get("/api/v1/activity-logs", params={"period": "last_90_days", "user_id": "u1"}).json()
    assert [log["id"] for log in recent["items"]] == ["A1"]


def test_activity_logs_validation(client: TestClient, seeded: Session) -> None:
    assert client.get("/api/v1/activity-logs", params={"page_size": 7}).status_code == 422
    assert client.get("/api/v1/activity-logs", params={"period": "someday"}).status_code == 422

    beyond = client.get("/api/v1/activity-logs", params={"page": 5}).json()
    assert beyond["items"] == []


def test_export_sales_performance_csv(client: TestClient, seeded: Session) -> None:
    response = client.get("/api/v1/exports/sales-performance", params={"format": "csv"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["content-disposition"] == 'attachment; filename="sales_performance_report.csv"'
    rows = list(csv.DictReader(io.StringIO(response.content.decode("utf-8"), newline="")))
    assert rows[0] == {
        "Deal Name": "Acme onboarding",
        "Owner": "Ann",
        "Value": "500.00",
        "Currency": "USD",
        "Close Date": "2024-01-15",
        "Stage": "Closed Won",
    }
    assert len(rows) == 2


def test_export_customer_activity_xlsx(client: TestClient, seeded: Session) -> None:
    response = client.get("/api/v1/exports/customer-activity", params={"format": "xlsx"})

    assert response.status_code == 200
    sheet = load_workbook(io.BytesIO(response.content)).active
    values = list(sheet.iter_rows(values_only=True))
    assert values[0] == ("Customer Name", "Company", "Total Revenue", "Account Manager", "Last Purchase", "Won Deals")
    assert values[1][0] == "Acme"


def test_export_activity_log_uses_filters(client: TestClient, seeded: Session) -> None:
    response = client.get("/api/v1/exports/activity-log", params={"format": "csv", "user_id": "u2"})

    assert response.status_code == 200
    assert "activity_log_export_" in response.headers["content-disposition"]
    rows = list(csv.DictReader(io.StringIO(response.content.decode("utf-8"), newline="")))
    assert [row["Entity ID"] for row in rows] == ["L1"]
    assert rows[0]["Details"] == "field=status; old=Contacted; new=New"


def test_export_errors(client: TestClient, seeded: Session) -> None:
    empty = client.get(
        "/api/v1/exports/customer-activity",
        params={"format": "csv", "account_manager": "Nobody"},
    )
    assert empty.status_code == 404
    assert empty.json()["detail"] == "No data available to export."

    assert client.get("/api/v1/exports/unknown-report").status_code == 404
    assert client.get("/api/v1/exports/sales-performance", params={"format": "pdf"}).status_code == 422


def test_dashboard_insights(client: TestClient, seeded: Session, fake_provider: FakeInsightsProvider) -> None:
    response = client.post("/api/v1/insights/dashboard")

    assert response.status_code == 200
    assert response.json()["paragraphs"] == ["Sales are trending up.", "Web leads convert best."]
    (request,) = fake_provider.insights_requests
    assert request.deal_stats is not None
    assert request.deal_stats.total_deals == 3
    assert request.deal_stats.open_deals == 1


def test_sales_forecast(client: TestClient, seeded: Session, fake_provider: FakeInsightsProvider) -> None:
    response = client.post("/api/v1/insights/forecast")

    assert response.status_code == 200
    body = response.json()
    assert body["forecasted_revenue"] == "$10,000 - $12,000 USD for next quarter."
    assert body["confidence_level"] == "Medium"
    assert body["key_factors"] == ["Strong pipeline in negotiation", "Lead volume is flat"]
    (request,) = fake_provider.forecast_requests
    assert request.forecast_period == "next quarter"
    assert [deal.value for deal in request.open_deals] == [Decimal("300.00")]
    assert request.recent_lead_volume == 1


def test_provider_failures_surface_as_http_errors(
    client: TestClient,
    seeded: Session,
    failing_provider: FakeInsightsProvider,
) -> None:
    client.app.dependency_overrides[get_ai_provider] = lambda: failing_provider
    failed = client.post("/api/v1/insights/dashboard")
    assert failed.status_code == 502
    assert failed.json()["detail"].startswith("API quota exceeded")

    client.app.dependency_overrides[get_ai_provider] = lambda: FakeInsightsProvider(error=ProviderUnavailable())
    unavailable = client.post("/api/v1/insights/forecast")
    assert unavailable.status_code == 503


def test_export_route_documents_which_report_reads_which_filter(client: TestClient) -> None:
    schema = client.get("/api/v1/openapi.json").json()

    description = schema["paths"]["/api/v1/exports/{report_key}"]["get"]["description"]
    assert "``period`` and ``owner`` apply to sales-performance" in description
    assert "``log_period``" in description
