"""
FastAPI Production Application

Main entry point for the Assist Analytics API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from assist_analytics.config import get_settings
from assist_analytics.config.logging import configure_logging
from assist_analytics.database.connection import init_database, close_database
from assist_analytics.exceptions import AnalyticsError, UnsupportedExportFormatError
from assist_analytics.serving.api.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from assist_analytics.serving.api.responses import error_response
from assist_analytics.serving.api.routes import (
    health_router,
    dashboard_router,
    reports_router,
)

settings = get_settings()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()

    logger.info("Starting Assist Analytics API", environment=settings.app_env)
    try:
        await init_database()
        logger.info("Database initialized")
    except Exception as e:
        # Health probes report the outage; the API still starts
        logger.warning("Database init failed", error=str(e), error_type=type(e).__name__)

    yield

    logger.info("Shutting down...")
    await close_database()


app = FastAPI(
    title="Assist Analytics API",
    description="KPI dashboard, reports and report exports for the device-assistance platform",
    version=settings.version,
    debug=settings.debug,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    openapi_url=None if settings.is_production else "/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.security.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

app.include_router(health_router, prefix="/api/v1", tags=["Health"])
app.include_router(dashboard_router, prefix="/api/v1/dashboard", tags=["Dashboard"])
app.include_router(reports_router, prefix="/api/v1/reports", tags=["Reports"])


# ============================================================================
# Error handlers
# ============================================================================

@app.exception_handler(UnsupportedExportFormatError)
async def unsupported_format_handler(request: Request, exc: UnsupportedExportFormatError):
    logger.warning("Unsupported export format", path=request.url.path, format=exc.format)
    return error_response(status.HTTP_400_BAD_REQUEST, str(exc), {"supportedFormats": exc.supported})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logger.warning("Invalid request value", path=request.url.path, error=str(exc))
    return error_response(status.HTTP_400_BAD_REQUEST, str(exc))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "Invalid request parameters",
        jsonable_errors(exc),
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(AnalyticsError)
async def analytics_error_handler(request: Request, exc: AnalyticsError):
    logger.error(
        "Request failed",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


@app.get("/api/v1/info")
async def api_info():
    """API information endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.version,
        "environment": settings.app_env,
        "documentation": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
