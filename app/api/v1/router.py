"""
API v1 Router - Main Entry Point
Aggregates all v1 API endpoints for the attendance backend
"""

from fastapi import APIRouter, Depends

from app.api import deps
from app.api.v1 import attendance, health, security
from app.schemas.common import ErrorResponse

router = APIRouter(
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request"},
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        403: {"model": ErrorResponse, "description": "Forbidden"},
        422: {"model": ErrorResponse, "description": "Validation Error"},
        429: {"model": ErrorResponse, "description": "Too Many Requests"},
        500: {"model": ErrorResponse, "description": "Internal Server Error"},
    }
)

# Request screening runs before authentication on every data route
screened = [Depends(deps.detect_suspicious_activity)]

router.include_router(attendance.router, dependencies=screened)
router.include_router(security.router, dependencies=screened)
router.include_router(health.router)

__all__ = ["router"]
