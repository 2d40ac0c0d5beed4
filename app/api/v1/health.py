"""
Health check endpoints.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from app.api import deps
from app.config.settings import Settings
from app.db.error_handler import DatabaseErrorHandler, HealthStatus

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", summary="Liveness probe")
async def health(settings: Settings = Depends(deps.get_settings)) -> Dict[str, Any]:
    return {
        "status": "ok",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/database", summary="Database connectivity and pool status")
async def database_health(db: DatabaseErrorHandler = Depends(deps.get_db_handler)) -> JSONResponse:
    """Returns 503 when the database probe fails."""
    report = await db.get_database_health()
    status_code = (
        status.HTTP_503_SERVICE_UNAVAILABLE
        if report.status is HealthStatus.UNHEALTHY
        else status.HTTP_200_OK
    )
    return JSONResponse(status_code=status_code, content=report.to_dict())
