"""
Exception handlers and error rendering.

Every error leaving the API is translated into the user-facing shape
produced by ``build_error_response``. Authentication and authorization
failures, and errors flagged as security relevant, are also recorded as
security events.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.error_translation import build_error_response, category_for_status
from app.core.exceptions import BaseAppException, ErrorCategory
from app.core.rate_limiting import get_client_ip
from app.core.security.events import SecurityEvent, SecurityEventType, classify_security_event

logger = logging.getLogger(__name__)

SECURITY_STATUSES = (401, 403)


def record_security_event(
    request: Request,
    event_type: SecurityEventType,
    details: Optional[Dict[str, Any]] = None,
    blocked: bool = True,
) -> Optional[SecurityEvent]:
    event_logger = getattr(request.app.state, "security_events", None)
    if event_logger is None:
        return None
    return event_logger.log_event(
        event_type,
        details,
        blocked=blocked,
        user_id=getattr(request.state, "user_id", None),
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        endpoint=request.url.path,
        method=request.method,
    )


def render_error(
    request: Request,
    status_code: int,
    category: Optional[ErrorCategory],
    message: str,
    details: Optional[Dict[str, Any]] = None,
    security_event: bool = False,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Log, record a security event when relevant, and build the JSON error response."""
    if security_event or status_code in SECURITY_STATUSES:
        record_security_event(
            request,
            classify_security_event(status_code, message),
            {"message": message, "status_code": status_code, **(details or {})},
        )

    settings = getattr(request.app.state, "settings", None)
    debug = bool(settings and (settings.DEBUG or settings.is_development()))
    body = build_error_response(
        status_code,
        category,
        original_message=message,
        details=details,
        request_id=getattr(request.state, "request_id", None),
        path=request.url.path,
        method=request.method,
        debug=debug,
    )
    return JSONResponse(status_code=status_code, content=body, headers=headers)


async def app_exception_handler(request: Request, exc: BaseAppException) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"Application exception: {exc.error_code.value} - {exc.message}",
        extra={
            "error": exc.to_dict()["error"],
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=exc if exc.status_code >= 500 else None,
    )
    return render_error(
        request,
        exc.status_code,
        exc.category,
        exc.message,
        details=exc.details,
        security_event=exc.security_event,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    field_errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg"),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]
    logger.info("Request validation failed", extra={"path": request.url.path, "error_count": len(field_errors)})
    return render_error(
        request,
        422,
        ErrorCategory.VALIDATION,
        "Request validation failed",
        details={"field_errors": field_errors},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return render_error(
        request,
        exc.status_code,
        category_for_status(exc.status_code),
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception: {type(exc).__name__}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=exc,
    )
    return render_error(request, 500, ErrorCategory.SYSTEM, str(exc))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BaseAppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
