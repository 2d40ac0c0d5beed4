"""
Per-client rate limiting middleware.

Rate limit headers are attached to every response, including the 429
returned when the client is over its limit and the 500 rendered for an
unhandled route error.
"""

import logging
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.exceptions import ErrorCategory, RateLimitExceededError
from app.core.middleware.error_handling import render_error
from app.core.rate_limiting import get_client_ip

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window limiter keyed by client IP, read from ``app.state.rate_limiter``."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        limiter = getattr(request.app.state, "rate_limiter", None)
        if limiter is None:
            return await call_next(request)

        client_ip = get_client_ip(request)
        result = await limiter.check(client_ip)

        if not result.allowed:
            exc = RateLimitExceededError(
                limit=result.limit,
                reset_time=result.reset_time,
                identifier=client_ip,
                total_hits=result.total_hits,
            )
            logger.warning(
                "Rate limit exceeded",
                extra={"client_ip": client_ip, "path": request.url.path, "total_hits": result.total_hits},
            )
            return render_error(
                request,
                exc.status_code,
                exc.category,
                exc.message,
                details=exc.details,
                security_event=exc.security_event,
                headers=result.headers(),
            )

        try:
            response = await call_next(request)
        except Exception as e:
            # Route errors surface here before the outer server error handler
            logger.error(
                f"Unhandled exception: {type(e).__name__}",
                extra={"path": request.url.path, "method": request.method},
                exc_info=e,
            )
            return render_error(request, 500, ErrorCategory.SYSTEM, str(e), headers=result.headers())

        for name, value in result.headers().items():
            response.headers[name] = value
        return response
