"""FastAPI application entrypoint."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from crm_reporting.api.router import api_router
from crm_reporting.core.config import get_settings
from crm_reporting.core.errors import CrmReportingError
from crm_reporting.core.log import configure_logging
from crm_reporting.services.reporting_service import CrmReportingService

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""

    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CrmReportingError)
    async def reporting_error_handler(_: Request, exc: CrmReportingError) -> JSONResponse:
        http_error = CrmReportingService.to_http_error(exc)
        logger.info("Request failed with %s: %s", type(exc).__name__, exc.message)
        return JSONResponse(status_code=http_error.status_code, content={"detail": http_error.detail})

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/", tags=["system"])
    def root() -> dict[str, str]:
        return {"service": settings.app_name, "status": "running"}

    return app


app = create_app()
