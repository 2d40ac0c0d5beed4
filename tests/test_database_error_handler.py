import pytest

from app.core.exceptions import DatabaseConnectionError, DatabaseError, SecurityViolationError
from app.db.error_handler import (
    DatabaseErrorHandler,
    DatabaseOperation,
    FaultClass,
    HealthStatus,
    OperationType,
    classify_fault,
    is_retryable_error,
)
from tests.conftest import DriverError, ScriptedExecutor, SleepRecorder


def make_handler(executor, max_retries=3):
    sleep = SleepRecorder()
    return DatabaseErrorHandler(executor, max_retries=max_retries, sleep=sleep), sleep


def select_operation(max_retries=3):
    return DatabaseOperation(
        type=OperationType.SELECT,
        query="SELECT * FROM attendance_logs WHERE student_id = $1",
        params=["S001"],
        max_retries=max_retries,
    )


@pytest.mark.parametrize(
    "error, expected",
    [
        (DriverError("x", sqlstate="08006"), FaultClass.CONNECTION),
        (DriverError("x", sqlstate="08P01"), FaultClass.CONNECTION),
        (DriverError("x", sqlstate="53300"), FaultClass.RESOURCE_LIMIT),
        (DriverError("x", sqlstate="57P01"), FaultClass.SHUTDOWN),
        (DriverError("x", sqlstate="40001"), FaultClass.SERIALIZATION),
        (DriverError("x", sqlstate="40P01"), FaultClass.DEADLOCK),
        (DriverError("x", sqlstate="55P03"), FaultClass.LOCK_TIMEOUT),
        (DriverError("x", sqlstate="23505"), FaultClass.OTHER),
        (ConnectionRefusedError("refused"), FaultClass.CONNECTION),
        (RuntimeError("deadlock detected"), FaultClass.DEADLOCK),
        (RuntimeError("sorry, too many connections"), FaultClass.RESOURCE_LIMIT),
        (RuntimeError("syntax error at or near"), FaultClass.OTHER),
    ],
)
def test_classify_fault(error, expected):
    assert classify_fault(error) is expected


def test_lock_timeout_and_constraint_errors_are_not_retryable():
    assert not is_retryable_error(DriverError("x", sqlstate="55P03"))
    assert not is_retryable_error(DriverError("duplicate key", sqlstate="23505"))
    assert is_retryable_error(DriverError("x", sqlstate="40001"))


async def test_retryable_fault_exhausts_retry_budget():
    errors = [DriverError("could not serialize access", sqlstate="40001") for _ in range(10)]
    executor = ScriptedExecutor(errors=errors)
    handler, sleep = make_handler(executor)

    outcome = await handler.execute_with_recovery(select_operation(max_retries=3))

    assert not outcome.success
    assert outcome.retry_count == 3
    assert outcome.attempts == 4
    assert executor.calls == 4
    assert outcome.fault_class is FaultClass.SERIALIZATION
    assert outcome.recovery_action == "serialization_retry"


async def test_terminal_fault_is_not_retried():
    executor = ScriptedExecutor(errors=[DriverError("duplicate key value", sqlstate="23505")])
    handler, sleep = make_handler(executor)

    outcome = await handler.execute_with_recovery(select_operation())

    assert not outcome.success
    assert outcome.retry_count == 0
    assert executor.calls == 1
    assert sleep.delays == []


async def test_transient_fault_recovers():
    executor = ScriptedExecutor(errors=[DriverError("deadlock detected", sqlstate="40P01")])
    handler, sleep = make_handler(executor)

    outcome = await handler.execute_with_recovery(select_operation())

    assert outcome.success
    assert outcome.retry_count == 1
    assert outcome.recovery_action == "deadlock_retry_with_delay"
    assert outcome.result.first() == {"id": "row-1"}
    assert executor.calls == 2


async def test_backoff_doubles_between_attempts():
    errors = [DriverError("too many connections", sqlstate="53300") for _ in range(3)]
    executor = ScriptedExecutor(errors=errors)
    handler, sleep = make_handler(executor)

    outcome = await handler.execute_with_recovery(select_operation())

    assert outcome.success
    # each retry sleeps the resource-limit pause, then the backoff
    assert sleep.delays[0::2] == [2.0, 2.0, 2.0]
    backoffs = sleep.delays[1::2]
    assert 1.0 <= backoffs[0] <= 1.1
    assert 2.0 <= backoffs[1] <= 2.2
    assert 4.0 <= backoffs[2] <= 4.4


async def test_connection_fault_probes_the_pool():
    executor = ScriptedExecutor(errors=[ConnectionResetError("connection reset by peer")])
    handler, sleep = make_handler(executor)

    outcome = await handler.execute_with_recovery(select_operation())

    assert outcome.success
    assert outcome.recovery_action == "connection_restored"
    assert executor.probes == 1


async def test_lock_timeout_recovery_action():
    handler, sleep = make_handler(ScriptedExecutor())
    action = await handler.apply_recovery_action(RuntimeError("lock timeout"), FaultClass.LOCK_TIMEOUT)
    assert action == "lock_timeout_retry"
    assert sleep.delays == [1.0]


async def test_unknown_fault_gets_generic_action():
    handler, sleep = make_handler(ScriptedExecutor())
    assert await handler.apply_recovery_action(RuntimeError("boom"), FaultClass.OTHER) == "generic_retry"


def test_retry_delay_is_capped():
    handler, _ = make_handler(ScriptedExecutor())
    assert 1.0 <= handler.calculate_retry_delay(0) <= 1.1
    assert handler.calculate_retry_delay(10) == 30.0


async def test_invalid_query_is_rejected_before_execution():
    executor = ScriptedExecutor()
    handler, _ = make_handler(executor)
    operation = DatabaseOperation(type=OperationType.SELECT, query="SELECT * FROM t WHERE id = $1", params=[])

    outcome = await handler.execute_with_recovery(operation)

    assert not outcome.success
    assert outcome.retry_count == 0
    assert isinstance(outcome.error, SecurityViolationError)
    assert executor.calls == 0


async def test_insert_requires_table():
    handler, _ = make_handler(ScriptedExecutor())
    with pytest.raises(SecurityViolationError):
        await handler.query("INSERT INTO t (a) VALUES ($1)", ["x"], operation_type=OperationType.INSERT)


async def test_query_raises_database_error_after_failure():
    handler, _ = make_handler(ScriptedExecutor(errors=[DriverError("duplicate key", sqlstate="23505")]))
    with pytest.raises(DatabaseError) as exc_info:
        await handler.query("SELECT 1")
    assert exc_info.value.details["fault_class"] == "other"
    assert exc_info.value.details["attempts"] == 1


async def test_query_raises_connection_error_when_unreachable():
    errors = [ConnectionRefusedError("connection refused") for _ in range(5)]
    handler, _ = make_handler(ScriptedExecutor(errors=errors), max_retries=2)
    with pytest.raises(DatabaseConnectionError) as exc_info:
        await handler.query("SELECT 1")
    assert exc_info.value.status_code == 503
    assert exc_info.value.details["attempts"] == 3


async def test_transaction_commits_all_statements(db_handler):
    results = await db_handler.transaction([
        ("INSERT INTO attendance_logs (id, student_id, faculty_id, section_id, date, status, capture_method) "
         "VALUES ($1, $2, $3, $4, $5, $6, $7)", ["a", "S1", "F1", "SEC", "2024-01-15", "present", "ml"]),
        ("UPDATE attendance_logs SET status = $1 WHERE id = $2", ["absent", "a"]),
    ])
    assert len(results) == 2

    rows = (await db_handler.query("SELECT status FROM attendance_logs WHERE id = $1", ["a"])).rows
    assert rows == [{"status": "absent"}]


async def test_transaction_rolls_back_on_failure(db_handler):
    insert = (
        "INSERT INTO attendance_logs (id, student_id, faculty_id, section_id, date, status, capture_method) "
        "VALUES ($1, $2, $3, $4, $5, $6, $7)"
    )
    with pytest.raises(DatabaseError):
        await db_handler.transaction([
            (insert, ["a", "S1", "F1", "SEC", "2024-01-15", "present", "ml"]),
            (insert, ["a", "S2", "F1", "SEC", "2024-01-15", "present", "ml"]),
        ])

    rows = (await db_handler.query("SELECT id FROM attendance_logs")).rows
    assert rows == []


async def test_health_report_for_live_database(db_handler):
    health = await db_handler.get_database_health()
    report = health.to_dict()
    assert report["status"] == "healthy"
    assert set(report["connections"]) == {"size", "in_use", "idle", "waiting"}


async def test_health_report_when_probe_fails():
    errors = [ConnectionRefusedError("connection refused")]
    handler, _ = make_handler(ScriptedExecutor(errors=errors))
    health = await handler.get_database_health()
    assert health.status is HealthStatus.UNHEALTHY
    assert health.to_dict()["connections"]["size"] == 5
