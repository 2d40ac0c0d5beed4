"""
Base services module.

Provides the ServiceResult value used to report per-operation outcomes
without raising across batch boundaries.
"""

from app.services.base.service_result import (
    ErrorCode,
    ErrorSeverity,
    ServiceError,
    ServiceResult,
)

__all__ = [
    "ErrorCode",
    "ErrorSeverity",
    "ServiceError",
    "ServiceResult",
]
