"""
Database fault recovery.

Wraps every database operation (point query, mutation, multi-statement
transaction) with validation, error classification, exponential backoff
retry and fault-specific recovery actions.

Attempt lifecycle::

    ATTEMPT -> success -> DONE
            -> failure -> CLASSIFY -> retryable and budget left -> RECOVER -> WAIT -> ATTEMPT
                                   -> otherwise                               -> DONE(failed)
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from sqlalchemy.exc import DBAPIError

from app.core.exceptions import (
    DatabaseConnectionError,
    DatabaseError,
    SecurityViolationError,
)
from app.db.executor import PoolStatus, QueryExecutor, QueryResult
from app.db.secure_query import SecureQuery, sanitize_values, validate_parameterized_query

logger = logging.getLogger(__name__)

__all__ = [
    "OperationType",
    "FaultClass",
    "HealthStatus",
    "DatabaseOperation",
    "DatabaseRecoveryResult",
    "DatabaseHealth",
    "DatabaseErrorHandler",
    "classify_fault",
    "get_error_code",
    "is_retryable_error",
]

SLOW_PROBE_THRESHOLD_MS = 1000.0


class OperationType(str, Enum):
    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    TRANSACTION = "TRANSACTION"


class FaultClass(str, Enum):
    CONNECTION = "connection"
    RESOURCE_LIMIT = "resource_limit"
    SHUTDOWN = "shutdown"
    SERIALIZATION = "serialization"
    DEADLOCK = "deadlock"
    LOCK_TIMEOUT = "lock_timeout"
    OTHER = "other"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


RETRYABLE_FAULTS = frozenset({
    FaultClass.CONNECTION,
    FaultClass.RESOURCE_LIMIT,
    FaultClass.SHUTDOWN,
    FaultClass.SERIALIZATION,
    FaultClass.DEADLOCK,
})

# PostgreSQL SQLSTATE codes
SQLSTATE_FAULTS: Dict[str, FaultClass] = {
    "08000": FaultClass.CONNECTION,
    "08001": FaultClass.CONNECTION,
    "08003": FaultClass.CONNECTION,
    "08004": FaultClass.CONNECTION,
    "08006": FaultClass.CONNECTION,
    "53000": FaultClass.RESOURCE_LIMIT,
    "53100": FaultClass.RESOURCE_LIMIT,
    "53200": FaultClass.RESOURCE_LIMIT,
    "53300": FaultClass.RESOURCE_LIMIT,
    "53400": FaultClass.RESOURCE_LIMIT,
    "57P01": FaultClass.SHUTDOWN,
    "57P02": FaultClass.SHUTDOWN,
    "57P03": FaultClass.SHUTDOWN,
    "40001": FaultClass.SERIALIZATION,
    "40P01": FaultClass.DEADLOCK,
    "55P03": FaultClass.LOCK_TIMEOUT,
}

# Checked in order, first match wins
MESSAGE_FAULTS: Tuple[Tuple[str, FaultClass], ...] = (
    ("administrator command", FaultClass.SHUTDOWN),
    ("database system is shutting down", FaultClass.SHUTDOWN),
    ("database system is starting up", FaultClass.SHUTDOWN),
    ("deadlock", FaultClass.DEADLOCK),
    ("could not serialize", FaultClass.SERIALIZATION),
    ("serialization failure", FaultClass.SERIALIZATION),
    ("lock timeout", FaultClass.LOCK_TIMEOUT),
    ("lock wait timeout", FaultClass.LOCK_TIMEOUT),
    ("too many connections", FaultClass.RESOURCE_LIMIT),
    ("limit exceeded", FaultClass.RESOURCE_LIMIT),
    ("resource temporarily unavailable", FaultClass.RESOURCE_LIMIT),
    ("temporary failure", FaultClass.RESOURCE_LIMIT),
    ("connection terminated", FaultClass.CONNECTION),
    ("connection reset", FaultClass.CONNECTION),
    ("connection refused", FaultClass.CONNECTION),
    ("connection timed out", FaultClass.CONNECTION),
    ("server closed the connection", FaultClass.CONNECTION),
    ("connection is closed", FaultClass.CONNECTION),
)

RECOVERY_DELAYS: Dict[FaultClass, float] = {
    FaultClass.SERIALIZATION: 0.5,
    FaultClass.LOCK_TIMEOUT: 1.0,
    FaultClass.RESOURCE_LIMIT: 2.0,
    FaultClass.SHUTDOWN: 2.0,
}

RECOVERY_ACTIONS: Dict[FaultClass, str] = {
    FaultClass.SERIALIZATION: "serialization_retry",
    FaultClass.LOCK_TIMEOUT: "lock_timeout_retry",
    FaultClass.RESOURCE_LIMIT: "resource_limit_retry",
    FaultClass.SHUTDOWN: "shutdown_retry",
}


@dataclass
class DatabaseOperation:
    """One database action and its retry bookkeeping."""
    type: OperationType
    query: Optional[str] = None
    params: Sequence[Any] = ()
    statements: List[SecureQuery] = field(default_factory=list)
    table: Optional[str] = None
    retry_count: int = 0
    max_retries: int = 3


@dataclass
class DatabaseRecoveryResult:
    success: bool
    result: Any = None
    error: Optional[BaseException] = None
    fault_class: Optional[FaultClass] = None
    recovery_action: Optional[str] = None
    retry_count: int = 0

    @property
    def attempts(self) -> int:
        return self.retry_count + 1


@dataclass
class DatabaseHealth:
    status: HealthStatus
    response_time_ms: float
    pool: PoolStatus
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "response_time_ms": round(self.response_time_ms, 2),
            "connections": {
                "size": self.pool.size,
                "in_use": self.pool.in_use,
                "idle": self.pool.idle,
                "waiting": self.pool.waiting,
            },
        }


def get_error_code(error: BaseException) -> Optional[str]:
    """Extract the SQLSTATE from a driver error, looking through SQLAlchemy wrappers."""
    candidates = [error]
    if isinstance(error, DBAPIError) and error.orig is not None:
        candidates.append(error.orig)
        if error.orig.__cause__ is not None:
            candidates.append(error.orig.__cause__)

    for candidate in candidates:
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code)
    return None


def classify_fault(error: BaseException) -> FaultClass:
    code = get_error_code(error)
    if code:
        if code in SQLSTATE_FAULTS:
            return SQLSTATE_FAULTS[code]
        if code.startswith("08"):
            return FaultClass.CONNECTION
        if code.startswith("53"):
            return FaultClass.RESOURCE_LIMIT

    if isinstance(error, DBAPIError) and error.connection_invalidated:
        return FaultClass.CONNECTION
    if isinstance(error, (ConnectionError, asyncio.TimeoutError)):
        return FaultClass.CONNECTION

    message = str(error).lower()
    for fragment, fault in MESSAGE_FAULTS:
        if fragment in message:
            return fault
    return FaultClass.OTHER


def is_retryable_error(error: BaseException) -> bool:
    return classify_fault(error) in RETRYABLE_FAULTS


class DatabaseErrorHandler:
    """
    Runs database operations with validation, retry and recovery.

    ``sleep`` is the coroutine used for backoff and recovery delays;
    tests pass a recorder instead of ``asyncio.sleep``.
    """

    def __init__(
        self,
        executor: QueryExecutor,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self.executor = executor
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep or asyncio.sleep

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def query(
        self,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        operation_type: OperationType = OperationType.SELECT,
        table: Optional[str] = None,
        max_retries: Optional[int] = None,
    ) -> QueryResult:
        """
        Execute one statement with recovery.

        Raises:
            SecurityViolationError: the statement failed validation
            DatabaseError: the statement failed after all permitted attempts
        """
        operation = DatabaseOperation(
            type=operation_type,
            query=sql,
            params=list(params or []),
            table=table,
            max_retries=self.max_retries if max_retries is None else max_retries,
        )
        outcome = await self.execute_with_recovery(operation)
        return self._unwrap(outcome, operation)

    async def transaction(
        self,
        statements: Sequence[Union[SecureQuery, Tuple[str, Sequence[Any]]]],
        max_retries: Optional[int] = None,
    ) -> List[QueryResult]:
        """Run ``statements`` atomically; a retry always starts a fresh transaction."""
        operation = DatabaseOperation(
            type=OperationType.TRANSACTION,
            statements=[self._as_query(statement) for statement in statements],
            max_retries=self.max_retries if max_retries is None else max_retries,
        )
        outcome = await self.execute_with_recovery(operation)
        return self._unwrap(outcome, operation)

    async def execute_with_recovery(self, operation: DatabaseOperation) -> DatabaseRecoveryResult:
        try:
            self._prepare(operation)
        except SecurityViolationError as e:
            logger.warning(
                "Rejected database operation",
                extra={"operation": operation.type.value, "violations": e.details.get("violations")},
            )
            return DatabaseRecoveryResult(success=False, error=e, retry_count=0)

        recovery_action: Optional[str] = None
        while True:
            try:
                result = await self._run(operation)
                if operation.retry_count:
                    logger.info(
                        "Database operation recovered",
                        extra={"operation": operation.type.value, "retry_count": operation.retry_count},
                    )
                return DatabaseRecoveryResult(
                    success=True,
                    result=result,
                    recovery_action=recovery_action,
                    retry_count=operation.retry_count,
                )
            except Exception as e:
                fault = classify_fault(e)
                retryable = fault in RETRYABLE_FAULTS

                if not retryable or operation.retry_count >= operation.max_retries:
                    logger.error(
                        f"Database operation failed: {e}",
                        extra={
                            "operation": operation.type.value,
                            "table": operation.table,
                            "fault_class": fault.value,
                            "error_code": get_error_code(e),
                            "retry_count": operation.retry_count,
                            "retryable": retryable,
                        },
                    )
                    return DatabaseRecoveryResult(
                        success=False,
                        error=e,
                        fault_class=fault,
                        recovery_action=recovery_action,
                        retry_count=operation.retry_count,
                    )

                recovery_action = await self.apply_recovery_action(e, fault)
                delay = self.calculate_retry_delay(operation.retry_count)
                logger.warning(
                    f"Retrying database operation in {delay:.2f}s",
                    extra={
                        "operation": operation.type.value,
                        "fault_class": fault.value,
                        "recovery_action": recovery_action,
                        "retry_count": operation.retry_count + 1,
                        "max_retries": operation.max_retries,
                    },
                )
                await self._sleep(delay)
                operation.retry_count += 1

    async def apply_recovery_action(self, error: BaseException, fault: FaultClass) -> str:
        """Best-effort mitigation before the next attempt; never raises."""
        if fault is FaultClass.CONNECTION:
            try:
                async with self.executor.connect() as conn:
                    await self.executor.execute("SELECT 1", connection=conn)
                return "connection_restored"
            except Exception as probe_error:
                logger.warning(f"Connection probe failed: {probe_error}")
                return "connection_retry"

        if fault is FaultClass.DEADLOCK:
            await self._sleep(random.uniform(0, 1.0))
            return "deadlock_retry_with_delay"

        if fault in RECOVERY_DELAYS:
            await self._sleep(RECOVERY_DELAYS[fault])
            return RECOVERY_ACTIONS[fault]

        return "generic_retry"

    def calculate_retry_delay(self, retry_count: int) -> float:
        """Exponential backoff with up to 10% jitter, capped at ``max_delay``."""
        delay = self.base_delay * (2 ** retry_count)
        delay += delay * random.uniform(0, 0.1)
        return min(delay, self.max_delay)

    async def get_database_health(self) -> DatabaseHealth:
        start = time.perf_counter()
        try:
            await self.executor.execute("SELECT 1")
        except Exception as e:
            elapsed = (time.perf_counter() - start) * 1000
            logger.error(f"Database health probe failed: {e}")
            return DatabaseHealth(
                status=HealthStatus.UNHEALTHY,
                response_time_ms=elapsed,
                pool=self.executor.pool_status(),
                error=type(e).__name__,
            )

        elapsed = (time.perf_counter() - start) * 1000
        status = HealthStatus.HEALTHY if elapsed < SLOW_PROBE_THRESHOLD_MS else HealthStatus.DEGRADED
        if status is HealthStatus.DEGRADED:
            logger.warning(f"Database health probe slow: {elapsed:.0f}ms")
        return DatabaseHealth(status=status, response_time_ms=elapsed, pool=self.executor.pool_status())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _as_query(statement: Union[SecureQuery, Tuple[str, Sequence[Any]]]) -> SecureQuery:
        if isinstance(statement, SecureQuery):
            return statement
        sql, params = statement
        return SecureQuery(text=sql, values=tuple(params or ()))

    @staticmethod
    def _prepare(operation: DatabaseOperation) -> None:
        """Validate and sanitize in place; raises SecurityViolationError."""
        if operation.type is OperationType.TRANSACTION:
            if not operation.statements:
                raise SecurityViolationError("Transaction requires at least one statement")
            prepared = []
            for statement in operation.statements:
                prepared.append(DatabaseErrorHandler._checked(statement.text, statement.values))
            operation.statements = prepared
            return

        if not operation.query or not operation.query.strip():
            raise SecurityViolationError("Query is required")
        if operation.type in (OperationType.INSERT, OperationType.UPDATE) and not operation.table:
            raise SecurityViolationError(f"Table name is required for {operation.type.value} operations")

        checked = DatabaseErrorHandler._checked(operation.query, operation.params)
        operation.params = list(checked.values)

    @staticmethod
    def _checked(sql: str, values: Sequence[Any]) -> SecureQuery:
        validation = validate_parameterized_query(sql, values)
        if not validation.is_valid:
            raise SecurityViolationError("Query failed security validation", violations=validation.errors)
        return SecureQuery(text=sql, values=tuple(sanitize_values(values)))

    async def _run(self, operation: DatabaseOperation) -> Union[QueryResult, List[QueryResult]]:
        if operation.type is OperationType.TRANSACTION:
            results = []
            async with self.executor.transaction() as conn:
                for statement in operation.statements:
                    results.append(await self.executor.execute(statement.text, statement.values, connection=conn))
            return results
        return await self.executor.execute(operation.query, operation.params)

    @staticmethod
    def _unwrap(outcome: DatabaseRecoveryResult, operation: DatabaseOperation) -> Any:
        if outcome.success:
            return outcome.result
        if isinstance(outcome.error, SecurityViolationError):
            raise outcome.error

        details = {
            "fault_class": outcome.fault_class.value if outcome.fault_class else None,
            "attempts": outcome.attempts,
        }
        if outcome.fault_class is FaultClass.CONNECTION:
            raise DatabaseConnectionError(
                operation=operation.type.value,
                details=details,
            ) from outcome.error
        raise DatabaseError(
            operation=operation.type.value,
            table=operation.table,
            details=details,
        ) from outcome.error
