"""
FastAPI application factory.

Shared services (engine, query executor, database error handler,
attendance service, security event logger, rate limiter and JWT manager)
are built in the lifespan and stored on ``app.state``.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.router import router as api_v1_router
from app.config.logging import setup_logging
from app.config.settings import Settings, get_settings
from app.core.middleware import register_middlewares
from app.core.rate_limiting import create_rate_limiter
from app.core.security import (
    InMemorySecurityEventLog,
    JWTManager,
    SecurityEventLogger,
    SentrySecurityEventForwarder,
)
from app.db.error_handler import DatabaseErrorHandler
from app.db.executor import QueryExecutor
from app.db.init_db import init_db
from app.db.session import create_database_engine
from app.services.attendance import AttendanceService

logger = logging.getLogger(__name__)


def build_lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging(settings)

        engine = create_database_engine(settings)
        if settings.DB_AUTO_CREATE:
            await init_db(engine)

        executor = QueryExecutor(engine)
        db_handler = DatabaseErrorHandler(
            executor,
            max_retries=settings.DB_MAX_RETRIES,
            base_delay=settings.DB_RETRY_BASE_DELAY,
            max_delay=settings.DB_RETRY_MAX_DELAY,
        )

        event_log = InMemorySecurityEventLog(capacity=settings.SECURITY_EVENT_BUFFER_SIZE)
        sinks = [event_log]
        if settings.SENTRY_DSN:
            sinks.append(SentrySecurityEventForwarder())

        app.state.engine = engine
        app.state.executor = executor
        app.state.db_handler = db_handler
        app.state.attendance_service = AttendanceService(db_handler, sync_timeout=settings.SYNC_TIMEOUT_SECONDS)
        app.state.security_event_log = event_log
        app.state.security_events = SecurityEventLogger(sinks)
        app.state.jwt_manager = JWTManager.from_settings(settings)
        app.state.rate_limiter = (
            create_rate_limiter(
                settings.RATE_LIMIT_REQUESTS,
                settings.RATE_LIMIT_WINDOW_SECONDS,
                settings.REDIS_URL,
            )
            if settings.RATE_LIMIT_ENABLED
            else None
        )

        logger.info(
            f"{settings.APP_NAME} started",
            extra={"environment": settings.ENVIRONMENT, "version": settings.APP_VERSION},
        )
        try:
            yield
        finally:
            limiter = app.state.rate_limiter
            if limiter is not None and hasattr(limiter.store, "close"):
                await limiter.store.close()
            await engine.dispose()
            logger.info(f"{settings.APP_NAME} stopped")

    return lifespan


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory for the FastAPI app.

    - Configures title, version, debug mode from Settings.
    - Registers CORS, core middleware, and exception handlers.
    - Includes the versioned API router under API_V1_STR.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        debug=settings.DEBUG,
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=build_lifespan(settings),
    )
    app.state.settings = settings
    app.state.rate_limiter = None

    origins = settings.get_cors_origins()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
    )

    register_middlewares(app)

    app.include_router(api_v1_router, prefix=settings.API_V1_STR)

    return app


app = create_app()


if __name__ == "__main__":
    _settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=_settings.HOST,
        port=_settings.PORT,
        reload=_settings.DEBUG,
    )
