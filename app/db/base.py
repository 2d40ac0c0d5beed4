"""SQLAlchemy Base class for all models."""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base shared by every mapped table."""


def import_models() -> None:
    """Import all models so they are registered on ``Base.metadata``."""
    from app.models.attendance import attendance_log  # noqa: F401
