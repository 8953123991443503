from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from crm_reporting.db.base import Base
from crm_reporting.db.session import get_db_session
import crm_reporting.models.entities  # noqa: F401
from crm_reporting.core.errors import ProviderError
from crm_reporting.main import create_app
from crm_reporting.services.ai_provider import get_ai_provider
from crm_reporting.services.insights import ForecastRequest, ForecastResult, InsightsRequest


class FakeInsightsProvider:
    """Records requests and replays canned replies or a canned failure."""

    def __init__(
        self,
        insights_text: str = "Sales are trending up.\n\nWeb leads convert best.",
        forecast_text: str = (
            "Forecasted Revenue: $10,000 - $12,000 USD for next quarter.\n"
            "Confidence Level: Medium\n"
            "Key Factors:\n"
            "- Strong pipeline in negotiation\n"
            "- Lead volume is flat\n"
        ),
        error: Exception | None = None,
    ) -> None:
        self.insights_text = insights_text
        self.forecast_text = forecast_text
        self.error = error
        self.insights_requests: list[InsightsRequest] = []
        self.forecast_requests: list[ForecastRequest] = []

    def generate_insights(self, request: InsightsRequest) -> str:
        self.insights_requests.append(request)
        if self.error is not None:
            raise self.error
        return self.insights_text

    def generate_forecast(self, request: ForecastRequest) -> ForecastResult:
        self.forecast_requests.append(request)
        if self.error is not None:
            raise self.error
        return ForecastResult(forecast_text=self.forecast_text)


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def fake_provider() -> FakeInsightsProvider:
    return FakeInsightsProvider()


@pytest.fixture()
def client(db_session: Session, fake_provider: FakeInsightsProvider) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_db
    app.dependency_overrides[get_ai_provider] = lambda: fake_provider
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def failing_provider() -> FakeInsightsProvider:
    return FakeInsightsProvider(error=ProviderError("API quota exceeded. Please try again later.", status_code=429))
