"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from retail_analytics.config import get_settings
from retail_analytics.database.connection import Database
from retail_analytics.serving.api.dependencies import get_database

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check(database: Database = Depends(get_database)) -> HealthResponse:
    """
    Health check endpoint.

    Checks:
    - Application status
    - Database connectivity
    """
    settings = get_settings()
    db_health = await database.health()
    status = "healthy" if db_health.get("status") == "healthy" else "degraded"

    return HealthResponse(
        status=status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.utcnow(),
        checks={"database": db_health},
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """Returns 200 while the application is running."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(response: Response, database: Database = Depends(get_database)) -> Dict[str, str]:
    """Returns 200 when the database is reachable, 503 otherwise."""
    db_health = await database.health()
    if db_health.get("status") != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "database_unavailable"}
    return {"status": "ready"}
