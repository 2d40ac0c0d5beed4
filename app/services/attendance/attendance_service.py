"""
Attendance sync and reporting service.

Handles:
- Batch sync of offline-captured records with per-record outcomes
- Idempotent upsert keyed by (student_id, date), last write wins
- Student history, per-student statistics and section summaries
"""

import asyncio
import logging
from datetime import date
from typing import List, Optional, Sequence
from uuid import uuid4

from app.core.exceptions import BaseAppException, DatabaseError, ErrorCategory, OperationTimeoutError
from app.db.error_handler import DatabaseErrorHandler, OperationType
from app.db.secure_query import SecureQueryBuilder
from app.schemas.attendance import (
    AttendanceLogEntry,
    AttendanceRecord,
    AttendanceStatistics,
    AttendanceSummary,
    SyncError,
    SyncResult,
)
from app.services.attendance.attendance_validation import as_utc, validate_attendance_record
from app.services.base import ErrorCode, ServiceError, ServiceResult

logger = logging.getLogger(__name__)

ATTENDANCE_TABLE = "attendance_logs"

FAILURE_CODES = {
    ErrorCategory.SECURITY: ErrorCode.SECURITY_VIOLATION,
    ErrorCategory.DATABASE: ErrorCode.DATABASE_ERROR,
    ErrorCategory.NETWORK: ErrorCode.TIMEOUT,
    ErrorCategory.VALIDATION: ErrorCode.VALIDATION_ERROR,
}

LOG_COLUMNS = (
    "id",
    "student_id",
    "faculty_id",
    "section_id",
    "date",
    "status",
    "capture_method",
    "synced_at",
)

UPSERT_ATTENDANCE_SQL = """
INSERT INTO attendance_logs
    (id, student_id, faculty_id, section_id, date, status, capture_method, synced_at)
VALUES ($1, $2, $3, $4, $5, $6, $7, CURRENT_TIMESTAMP)
ON CONFLICT (student_id, date)
DO UPDATE SET
    status = EXCLUDED.status,
    capture_method = EXCLUDED.capture_method,
    synced_at = CURRENT_TIMESTAMP
RETURNING id
"""

STATISTICS_SQL = """
SELECT
    student_id,
    COUNT(*) AS total_days,
    SUM(CASE WHEN status = 'present' THEN 1 ELSE 0 END) AS present_days,
    SUM(CASE WHEN status = 'absent' THEN 1 ELSE 0 END) AS absent_days
FROM attendance_logs
WHERE section_id = $1 AND date BETWEEN $2 AND $3
GROUP BY student_id
"""

SUMMARY_SQL = """
SELECT
    COUNT(DISTINCT student_id) AS total_students,
    COUNT(DISTINCT date) AS total_days,
    COUNT(*) AS total_records,
    SUM(CASE WHEN status = 'present' THEN 1 ELSE 0 END) AS present_count,
    SUM(CASE WHEN status = 'absent' THEN 1 ELSE 0 END) AS absent_count
FROM attendance_logs
WHERE section_id = $1 AND date BETWEEN $2 AND $3
"""


def percentage(part: int, whole: int) -> float:
    return round(part * 100 / whole, 2) if whole else 0.0


def build_sync_result(outcomes: Sequence[ServiceResult[str]]) -> SyncResult:
    """Aggregate per-record outcomes; error indices follow input order."""
    errors = [
        SyncError(record_index=index, error=outcome.error.message)
        for index, outcome in enumerate(outcomes)
        if not outcome.is_success
    ]
    synced = len(outcomes) - len(errors)
    return SyncResult(
        success=not errors,
        synced_count=synced,
        failed_count=len(errors),
        errors=errors,
    )


class AttendanceService:
    """
    Service for syncing attendance batches and reading attendance reports.

    Records within one batch are processed sequentially so error indices
    match input order. Independent batches may run concurrently; the
    single-statement upsert keeps one consistent row per (student, date).
    """

    def __init__(self, db: DatabaseErrorHandler, sync_timeout: Optional[float] = None):
        self.db = db
        self.sync_timeout = sync_timeout

    # =========================================================================
    # Sync
    # =========================================================================

    async def sync_attendance_records(
        self,
        records: Sequence[AttendanceRecord],
        timeout: Optional[float] = None,
    ) -> SyncResult:
        """
        Sync a batch of records and report per-record failures.

        A timeout aborts the rest of the batch; upserts already committed
        stay committed.

        Raises:
            OperationTimeoutError: the batch did not finish within ``timeout``
        """
        timeout = timeout if timeout is not None else self.sync_timeout
        if timeout is None:
            outcomes = await self.sync_record_outcomes(records)
        else:
            try:
                outcomes = await asyncio.wait_for(self.sync_record_outcomes(records), timeout)
            except asyncio.TimeoutError:
                logger.error(
                    "Attendance sync timed out",
                    extra={"batch_size": len(records), "timeout_seconds": timeout},
                )
                raise OperationTimeoutError(
                    "Attendance sync timed out",
                    timeout_seconds=timeout,
                    operation="sync_attendance_records",
                )

        result = build_sync_result(outcomes)
        logger.info(
            "Attendance batch synced",
            extra={
                "batch_size": len(records),
                "synced_count": result.synced_count,
                "failed_count": result.failed_count,
            },
        )
        return result

    async def sync_record_outcomes(self, records: Sequence[AttendanceRecord]) -> List[ServiceResult[str]]:
        """Sync each record in order, returning one outcome per input record."""
        outcomes: List[ServiceResult[str]] = []
        for index, record in enumerate(records):
            outcomes.append(await self.sync_record(index, record))
        return outcomes

    async def sync_record(self, index: int, record: AttendanceRecord) -> ServiceResult[str]:
        """Validate and upsert one record. The outcome's data is the stored row id."""
        validation = validate_attendance_record(record)
        if not validation.is_valid:
            return ServiceResult.validation_failure(
                "Validation failed: " + ", ".join(validation.errors),
                details={"record_index": index},
            )

        params = [
            str(uuid4()),
            record.student_id,
            record.faculty_id,
            record.section_id,
            as_utc(record.timestamp).date(),
            record.status,
            record.capture_method,
        ]
        try:
            result = await self.db.query(
                UPSERT_ATTENDANCE_SQL,
                params,
                operation_type=OperationType.INSERT,
                table=ATTENDANCE_TABLE,
            )
        except BaseAppException as e:
            logger.warning(
                f"Failed to sync attendance record {index}: {e.message}",
                extra={"record_index": index, "student_id": record.student_id},
            )
            return ServiceResult.failure(
                ServiceError(
                    code=FAILURE_CODES.get(e.category, ErrorCode.INTERNAL_ERROR),
                    message=e.message,
                    details={"record_index": index, "category": e.category.value},
                )
            )

        row = result.first()
        return ServiceResult.success(data=str(row["id"]) if row else None)

    # =========================================================================
    # Reporting
    # =========================================================================

    async def get_attendance_history(self, student_id: str) -> List[AttendanceLogEntry]:
        """All rows for a student, newest date first."""
        query = (
            SecureQueryBuilder()
            .select(LOG_COLUMNS)
            .from_(ATTENDANCE_TABLE)
            .where("student_id = ?", student_id)
            .order_by("date", "DESC")
            .build()
        )
        try:
            result = await self.db.query(query.text, query.values)
        except BaseAppException as e:
            logger.error(f"Error retrieving attendance history: {e}", extra={"student_id": student_id})
            raise DatabaseError("Failed to retrieve attendance history", operation="SELECT") from e

        return [AttendanceLogEntry.model_validate(row) for row in result.rows]

    async def get_attendance_statistics(
        self,
        section_id: str,
        start_date: date,
        end_date: date,
    ) -> List[AttendanceStatistics]:
        """Per-student attendance over the inclusive range, best attendance first."""
        try:
            result = await self.db.query(STATISTICS_SQL, [section_id, start_date, end_date])
        except BaseAppException as e:
            logger.error(f"Error retrieving attendance statistics: {e}", extra={"section_id": section_id})
            raise DatabaseError("Failed to retrieve attendance statistics", operation="SELECT") from e

        statistics = []
        for row in result.rows:
            total_days = int(row["total_days"] or 0)
            present_days = int(row["present_days"] or 0)
            statistics.append(
                AttendanceStatistics(
                    student_id=str(row["student_id"]),
                    total_days=total_days,
                    present_days=present_days,
                    absent_days=int(row["absent_days"] or 0),
                    attendance_percentage=percentage(present_days, total_days),
                )
            )

        statistics.sort(key=lambda item: (-item.attendance_percentage, item.student_id))
        return statistics

    async def get_attendance_summary(
        self,
        section_id: str,
        start_date: date,
        end_date: date,
    ) -> AttendanceSummary:
        try:
            result = await self.db.query(SUMMARY_SQL, [section_id, start_date, end_date])
        except BaseAppException as e:
            logger.error(f"Error retrieving attendance summary: {e}", extra={"section_id": section_id})
            raise DatabaseError("Failed to retrieve attendance summary", operation="SELECT") from e

        row = result.first() or {}
        present_count = int(row.get("present_count") or 0)
        return AttendanceSummary(
            total_students=int(row.get("total_students") or 0),
            total_days=int(row.get("total_days") or 0),
            average_attendance=percentage(present_count, int(row.get("total_records") or 0)),
            present_count=present_count,
            absent_count=int(row.get("absent_count") or 0),
        )
