"""
FastAPI dependencies.

Shared services are built once in the application lifespan and stored on
``app.state``; these callables hand them to route functions.

Example usage in a router:
    from fastapi import Depends, APIRouter
    from app.api import deps

    router = APIRouter()

    @router.get("/me")
    async def read_me(faculty_id: str = Depends(deps.get_current_faculty)):
        return faculty_id
"""

import json
import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config.settings import Settings
from app.core.exceptions import AuthenticationError, SuspiciousRequestError
from app.core.logging import user_id as user_id_var
from app.core.security import (
    JWTManager,
    SecurityEventLogger,
    find_suspicious_patterns,
    scannable_headers,
)
from app.db.error_handler import DatabaseErrorHandler
from app.services.attendance import AttendanceService

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


# --- Application state ---------------------------------------------------------

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db_handler(request: Request) -> DatabaseErrorHandler:
    return request.app.state.db_handler


def get_attendance_service(request: Request) -> AttendanceService:
    return request.app.state.attendance_service


def get_security_event_logger(request: Request) -> SecurityEventLogger:
    return request.app.state.security_events


def get_jwt_manager(request: Request) -> JWTManager:
    return request.app.state.jwt_manager


# --- Authentication ------------------------------------------------------------

async def get_current_faculty(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    jwt_manager: JWTManager = Depends(get_jwt_manager),
) -> str:
    """
    Resolve the faculty id from the bearer access token.

    Raises:
        AuthenticationError: no bearer token was supplied
        TokenExpiredError, InvalidTokenError: the token failed verification
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token required")

    payload = jwt_manager.verify_token(credentials.credentials, expected_type="access")
    faculty_id = str(payload["user_id"])
    request.state.user_id = faculty_id
    user_id_var.set(faculty_id)
    return faculty_id


# --- Request screening ---------------------------------------------------------

async def detect_suspicious_activity(request: Request) -> None:
    """
    Reject requests whose body, query, path parameters or headers match
    an attack signature.
    """
    body = await request.body()
    payload = json.dumps(
        {
            "body": body.decode("utf-8", errors="replace"),
            "query": dict(request.query_params),
            "params": dict(request.path_params),
            "headers": scannable_headers(dict(request.headers)),
        }
    )
    patterns = find_suspicious_patterns(payload)
    if patterns:
        logger.warning(
            "Suspicious request blocked",
            extra={"path": request.url.path, "patterns": patterns},
        )
        raise SuspiciousRequestError(patterns=patterns)


__all__ = [
    "bearer_scheme",
    "detect_suspicious_activity",
    "get_attendance_service",
    "get_current_faculty",
    "get_db_handler",
    "get_jwt_manager",
    "get_security_event_logger",
    "get_settings",
]
