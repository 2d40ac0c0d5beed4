# --- File: app/schemas/common/base.py ---
"""
Base schema classes with common fields and configurations.
"""

from pydantic import BaseModel, ConfigDict

__all__ = ["BaseSchema"]


class BaseSchema(BaseModel):
    """
    Base schema with common Pydantic configuration.

    All application-facing schemas should inherit from this to ensure
    consistent behaviour (aliases, whitespace stripping, attribute loading).
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=False,
        str_strip_whitespace=True,
        validate_assignment=True,
    )
