"""OpenAI-backed insight and forecast provider."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from datetime import date
from decimal import Decimal
from typing import Any

import openai
from openai import OpenAI

from crm_reporting.core.config import Settings, get_settings
from crm_reporting.core.errors import ProviderError, ProviderUnavailable
from crm_reporting.services.insights import AIInsightsProvider, ForecastRequest, ForecastResult, InsightsRequest

logger = logging.getLogger(__name__)

PROMPT_DEAL_LIMIT = 20

MODEL_NOT_FOUND_MESSAGE = (
    "The requested AI model was not found or the API key is invalid for this resource. "
    "Please check the configured model and API key."
)
INVALID_KEY_MESSAGE = "The configured API key for the AI provider is invalid. Please check your configuration."
QUOTA_MESSAGE = "API quota exceeded. Please try again later or check your AI provider plan."
INSIGHTS_FAILURE = "Failed to communicate with AI for insights."
FORECAST_FAILURE = "Failed to communicate with AI for sales forecast."


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, date):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _dumps(payload: Any) -> str:
    return json.dumps(payload, default=_json_default)


def build_insights_prompt(request: InsightsRequest) -> str:
    lines = [
        "Analyze the following CRM dashboard data and provide 2-3 actionable insights for a sales manager.",
        "Focus on trends, potential opportunities, or areas needing attention.",
        "Keep insights concise, easy to understand, and formatted as a multi-line string "
        "where each insight is a separate paragraph.",
        "",
    ]
    if request.sales_data:
        lines.append(f"Sales Data (e.g., Monthly Revenue): {_dumps([asdict(item) for item in request.sales_data])}")
    else:
        lines.append("No specific sales data provided for this period.")
    if request.lead_sources:
        lines.append(f"Lead Sources (Count per source): {_dumps([asdict(item) for item in request.lead_sources])}")
    else:
        lines.append("No lead source data provided.")
    if request.deal_stats is not None:
        stats = request.deal_stats
        lines.append(
            "Deal Statistics: "
            f"Total Deals: {stats.total_deals}, "
            f"Open Deals: {stats.open_deals}, "
            f"Average Deal Value: {float(stats.average_deal_value):.2f}"
        )
    else:
        lines.append("No specific deal statistics provided.")
    lines += [
        "",
        "Provide insights as a multi-line string. For example:",
        "Insight 1 text...",
        "",
        "Insight 2 text...",
    ]
    return "\n".join(lines)


def build_forecast_prompt(request: ForecastRequest) -> str:
    won = _dumps([asdict(deal) for deal in request.historical_won_deals[:PROMPT_DEAL_LIMIT]])
    open_deals = _dumps([asdict(deal) for deal in request.open_deals[:PROMPT_DEAL_LIMIT]])
    period = request.forecast_period
    return (
        "You are an expert sales forecasting AI. Based on the following CRM data, "
        f"provide a sales forecast for {period}.\n"
        "Data:\n"
        f"- Historical Won Deals (summary of last 6-12 months): {won} "
        f"(showing up to {PROMPT_DEAL_LIMIT} for brevity)\n"
        f"- Current Open Deals (value, stage, expected close date): {open_deals} "
        f"(showing up to {PROMPT_DEAL_LIMIT} for brevity)\n"
        f"- Recent Lead Generation (new leads in the last 30 days): {request.recent_lead_volume}\n"
        "\n"
        "Please provide the forecast in the following format:\n"
        f"Forecasted Revenue: [Estimated range, e.g., $X,XXX - $Y,YYY USD] for {period}.\n"
        "Confidence Level: [e.g., High, Medium, Low]\n"
        "Key Factors:\n"
        "- [Factor 1 influencing the forecast]\n"
        "- [Factor 2 influencing the forecast]\n"
        "- [Any potential risks or opportunities]\n"
        "\n"
        "Keep the language professional and concise. The output should be plain text.\n"
    )


def map_provider_error(error: Exception, failure_message: str) -> ProviderError:
    """Translate an SDK failure into a displayable ``ProviderError``."""

    message = getattr(error, "message", None) or str(error)
    status_code = getattr(error, "status_code", None)

    if (
        isinstance(error, openai.NotFoundError)
        or "Requested entity was not found" in message
        or status_code == 404
    ):
        text = MODEL_NOT_FOUND_MESSAGE
    elif isinstance(error, openai.AuthenticationError) or "API key not valid" in message:
        text = INVALID_KEY_MESSAGE
    elif isinstance(error, openai.RateLimitError) or "quota" in message:
        text = QUOTA_MESSAGE
    elif message:
        text = f"{failure_message} Details: {message}"
    else:
        text = failure_message

    if status_code:
        text += f" (Status: {status_code})"
    return ProviderError(text, status_code=status_code, details={"provider_message": message})


class OpenAIInsightsProvider:
    """``AIInsightsProvider`` over the OpenAI chat-completions API.

    The client is built on first use so the provider can be constructed
    without a key; calls then fail with ``ProviderUnavailable``. No retries.
    """

    def __init__(
        self,
        api_key: str | None,
        model: str,
        base_url: str | None = None,
        timeout: float = 30.0,
        client: Any = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> OpenAIInsightsProvider:
        return cls(
            api_key=settings.ai_api_key,
            model=settings.ai_model,
            base_url=settings.ai_base_url,
            timeout=settings.ai_timeout_seconds,
        )

    def _get_client(self) -> Any:
        if not self.api_key:
            raise ProviderUnavailable()
        if self._client is None:
            client_kwargs: dict[str, Any] = {"api_key": self.api_key, "timeout": self.timeout, "max_retries": 0}
            if self.base_url:
                client_kwargs["base_url"] = self.base_url
            self._client = OpenAI(**client_kwargs)
        return self._client

    def _complete(self, prompt: str, failure_message: str) -> str:
        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
            )
        except openai.OpenAIError as exc:
            error = map_provider_error(exc, failure_message)
            logger.warning("AI provider call failed: %s", error.message)
            raise error from exc

        text = response.choices[0].message.content if response.choices else None
        if not text or not text.strip():
            logger.warning("AI provider returned an empty response for model %s", self.model)
            raise ProviderError(f"{failure_message} The AI returned an empty response.")
        return text

    def generate_insights(self, request: InsightsRequest) -> str:
        return self._complete(build_insights_prompt(request), INSIGHTS_FAILURE)

    def generate_forecast(self, request: ForecastRequest) -> ForecastResult:
        return ForecastResult(forecast_text=self._complete(build_forecast_prompt(request), FORECAST_FAILURE))


def get_ai_provider() -> AIInsightsProvider:
    """FastAPI dependency; tests override it with a fake provider."""

    return OpenAIInsightsProvider.from_settings(get_settings())
