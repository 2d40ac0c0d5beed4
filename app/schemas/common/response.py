# --- File: app/schemas/common/response.py ---
"""
Standard API response wrappers.
"""

from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from pydantic import Field

from app.schemas.common.base import BaseSchema

T = TypeVar("T")

__all__ = [
    "SuccessResponse",
    "ErrorBody",
    "ErrorResponse",
]


class SuccessResponse(BaseSchema, Generic[T]):
    """Standard success response."""

    success: bool = Field(default=True, description="Success flag")
    message: str = Field(..., description="Response message")
    data: Union[T, None] = Field(default=None, description="Response data")

    @classmethod
    def create(
        cls,
        message: str,
        data: Union[T, None] = None,
    ):
        """Create success response."""
        return cls(success=True, message=message, data=data)


class ErrorBody(BaseSchema):
    """User-facing error description."""

    code: int = Field(..., description="HTTP status code")
    type: str = Field(..., description="Stable error type identifier")
    category: str = Field(..., description="Error category")
    message: str = Field(..., description="Human readable message")
    is_recoverable: bool = Field(..., description="Whether retrying can succeed")
    suggested_actions: List[str] = Field(default_factory=list)
    timestamp: str = Field(..., description="Error timestamp (ISO 8601)")
    request_id: Optional[str] = None

    # Development mode only
    original_message: Optional[str] = None
    path: Optional[str] = None
    method: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseSchema):
    """Standard error response."""

    success: bool = Field(default=False, description="Success flag")
    error: ErrorBody
