"""
Middleware registration for the FastAPI application.
"""

from fastapi import FastAPI

from app.core.middleware.error_handling import register_exception_handlers
from app.core.middleware.rate_limiting import RateLimitMiddleware
from app.core.middleware.request_context import (
    RequestIDMiddleware,
    SecurityHeadersMiddleware,
    TimingMiddleware,
)


def register_middlewares(app: FastAPI, include_security: bool = True) -> None:
    """
    Register middleware and exception handlers.

    Starlette runs the last-added middleware first, so request IDs are
    assigned before rate limiting and timing see the request.
    """
    register_exception_handlers(app)
    if include_security:
        app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(TimingMiddleware)
    app.add_middleware(RequestIDMiddleware)


__all__ = [
    "RateLimitMiddleware",
    "RequestIDMiddleware",
    "SecurityHeadersMiddleware",
    "TimingMiddleware",
    "register_exception_handlers",
    "register_middlewares",
]
