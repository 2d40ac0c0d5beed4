from contextlib import asynccontextmanager
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from app.config.settings import Settings
from app.core.security import JWTManager
from app.db.error_handler import DatabaseErrorHandler
from app.db.executor import PoolStatus, QueryExecutor, QueryResult
from app.db.init_db import drop_db, init_db
from app.db.session import create_database_engine
from app.main import create_app
from app.services.attendance import AttendanceService

SQLITE_URL = "sqlite+aiosqlite:///:memory:"
PAST = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


def make_settings(**overrides) -> Settings:
    values = {
        "DATABASE_URL": SQLITE_URL,
        "ENVIRONMENT": "testing",
        "DB_AUTO_CREATE": True,
        "JWT_SECRET_KEY": "test-secret-key",
        "LOG_LEVEL": "WARNING",
        "RATE_LIMIT_REQUESTS": 1000,
        "RATE_LIMIT_WINDOW_SECONDS": 60,
        "REDIS_URL": None,
        "SENTRY_DSN": None,
    }
    values.update(overrides)
    return Settings(**values)


class DriverError(Exception):
    """Stand-in for a driver exception carrying a SQLSTATE."""

    def __init__(self, message: str, sqlstate: str = None):
        super().__init__(message)
        self.sqlstate = sqlstate


class ScriptedExecutor:
    """
    Executor whose statements fail with the scripted errors, in order,
    before succeeding. Recovery probes (run on an explicit connection)
    always succeed and are not counted.
    """

    def __init__(self, errors=(), rows=None):
        self.errors = list(errors)
        self.rows = rows if rows is not None else [{"id": "row-1"}]
        self.calls = 0
        self.probes = 0

    async def execute(self, sql, params=None, connection=None):
        if connection is not None:
            self.probes += 1
            return QueryResult(rows=[{"?column?": 1}], rowcount=1)
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return QueryResult(rows=list(self.rows), rowcount=len(self.rows))

    @asynccontextmanager
    async def connect(self):
        yield object()

    def pool_status(self):
        return PoolStatus(size=5, in_use=1, idle=4, waiting=0)


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture()
def settings():
    return make_settings()


@pytest.fixture()
def sleep():
    return SleepRecorder()


@pytest.fixture()
async def engine(settings):
    engine = create_database_engine(settings)
    await init_db(engine)
    yield engine
    await drop_db(engine)
    await engine.dispose()


@pytest.fixture()
def db_handler(engine, sleep):
    return DatabaseErrorHandler(QueryExecutor(engine), max_retries=3, sleep=sleep)


@pytest.fixture()
def attendance_service(db_handler):
    return AttendanceService(db_handler)


@pytest.fixture()
def app(settings):
    return create_app(settings)


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def auth_headers(settings):
    token = JWTManager.from_settings(settings).create_access_token("faculty-1")
    return {"Authorization": f"Bearer {token}"}


def record(**overrides):
    """A valid attendance record payload in the mobile client's camelCase shape."""
    payload = {
        "studentId": "S001",
        "facultyId": "F001",
        "sectionId": "SEC-A",
        "timestamp": PAST.isoformat(),
        "status": "present",
        "captureMethod": "ml",
        "syncStatus": "pending",
    }
    payload.update(overrides)
    return payload
