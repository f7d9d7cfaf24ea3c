"""
FastAPI Application

Main entry point for the Retail Sales Analytics API.
"""

from contextlib import asynccontextmanager
from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from retail_analytics.config import get_settings
from retail_analytics.database.connection import Database
from retail_analytics.exceptions import (
    IngestionError,
    QueryValidationError,
    RetailAnalyticsError,
)
from retail_analytics.ingestion import SalesLoader
from retail_analytics.serving.api.middleware import RequestLoggingMiddleware
from retail_analytics.serving.api.routes import (
    analysis_router,
    dashboard_router,
    export_router,
    health_router,
    ingestion_router,
)

logger = structlog.get_logger(__name__)


class ErrorResponse(BaseModel):
    """Structured error body"""
    code: str
    message: str
    detail: Optional[Any] = None


def _status_for(exc: RetailAnalyticsError) -> int:
    if isinstance(exc, QueryValidationError):
        return 400
    if isinstance(exc, IngestionError):
        return 422
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    from retail_analytics.config.logging import configure_logging
    configure_logging()

    logger.info("Starting Retail Sales Analytics API")

    # A handle injected through create_app() belongs to the caller
    owns_database = app.state.database is None
    if owns_database:
        database = Database()
        await database.connect()
        await database.create_all()
        app.state.database = database
        app.state.loader = SalesLoader(database)

    yield

    logger.info("Shutting down...")
    if owns_database:
        await app.state.database.dispose()
        app.state.database = None
        app.state.loader = None


def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        database: Connected storage handle. When omitted, one is built from
            settings during application start-up.
    """
    settings = get_settings()
    app = FastAPI(
        title="Retail Sales Analytics API",
        description="Sales aggregation, ABC grading, inventory health and automated insights",
        version=settings.version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.database = database
    app.state.loader = SalesLoader(database) if database is not None else None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(RetailAnalyticsError)
    async def retail_error_handler(request: Request, exc: RetailAnalyticsError) -> JSONResponse:
        status_code = _status_for(exc)
        logger.warning(
            "Request rejected",
            path=request.url.path,
            code=exc.code,
            error=exc.message,
            status_code=status_code,
        )
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(code=exc.code, message=exc.message, detail=exc.detail).model_dump(),
        )

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(ingestion_router, prefix="/api/v1/ingest", tags=["Ingestion"])
    app.include_router(dashboard_router, prefix="/api/v1/dashboard", tags=["Dashboard"])
    app.include_router(analysis_router, prefix="/api/v1/analysis", tags=["Analysis"])
    app.include_router(export_router, prefix="/api/v1/export", tags=["Export"])

    @app.get("/api/v1/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": "Retail Sales Analytics API",
            "version": settings.version,
            "environment": settings.app_env,
            "documentation": "/docs",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=get_settings().api_host, port=get_settings().api_port)
