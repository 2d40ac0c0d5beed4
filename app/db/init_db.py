"""Database initialization utilities."""
import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from app.db.base import Base, import_models

logger = logging.getLogger(__name__)


async def init_db(engine: AsyncEngine) -> None:
    """
    Create any missing tables.

    Note: This is suitable for development/testing only.
    Production schemas are managed outside the application.
    """
    import_models()
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Error initializing database: {e}")
        raise


async def drop_db(engine: AsyncEngine) -> None:
    """
    Drop all database tables.

    WARNING: This will delete all data! Use with caution.
    """
    import_models()
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.warning("All database tables dropped")
    except Exception as e:
        logger.error(f"Error dropping database: {e}")
        raise
