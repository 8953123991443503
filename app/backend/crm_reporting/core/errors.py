"""Domain exceptions for the CRM reporting backend.

All reporting errors inherit from ``CrmReportingError`` so the service
layer can translate the whole family into HTTP responses in one place.
"""

from __future__ import annotations

from typing import Any


class CrmReportingError(Exception):
    """Base exception for reporting, export and AI provider errors."""

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}


class InvalidPeriod(CrmReportingError):
    """Raised when a period tag does not name a known reporting period."""

    def __init__(self, period: object) -> None:
        super().__init__(
            f"Unknown reporting period: {period!r}.",
            details={"period": str(period)},
        )
        self.period = period


class EmptyExportSet(CrmReportingError):
    """Raised when an export is requested for zero rows."""

    def __init__(self, message: str = "No data available to export.") -> None:
        super().__init__(message)


class ProviderUnavailable(CrmReportingError):
    """Raised when the AI provider is called without a configured credential."""

    def __init__(self, message: str = "API key for the AI provider is not configured.") -> None:
        super().__init__(message)


class ProviderError(CrmReportingError):
    """Raised when the AI provider fails or returns an unusable response.

    ``message`` is already phrased for display; ``status_code`` carries the
    provider status when one was reported.
    """

    def __init__(
        self,
        message: str,
        status_code: int | str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code
