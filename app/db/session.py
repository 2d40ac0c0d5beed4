"""Database engine management."""
import logging

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from app.config.settings import Settings

logger = logging.getLogger(__name__)


def create_database_engine(settings: Settings) -> AsyncEngine:
    """
    Create the async engine backing the query executor.

    SQLite URLs share one connection through ``StaticPool`` so in-memory
    databases survive across checkouts; every other backend gets a
    sized queue pool with pre-ping enabled.
    """
    if settings.is_sqlite():
        engine = create_async_engine(
            settings.DATABASE_URL,
            echo=settings.DB_ECHO,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_async_engine(
            settings.DATABASE_URL,
            echo=settings.DB_ECHO,
            pool_pre_ping=True,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
        )

    logger.info(
        "Database engine created",
        extra={"dialect": engine.dialect.name, "pool": type(engine.pool).__name__},
    )
    return engine
