"""
Validation rules for client-submitted attendance records.

Pure functions, no I/O. Every violated rule is reported.
"""

from datetime import datetime, timezone
from typing import List, Optional

from app.models.attendance import ATTENDANCE_STATUSES, CAPTURE_METHODS
from app.schemas.attendance import AttendanceRecord, ValidationResult

__all__ = ["validate_attendance_record", "as_utc"]

REQUIRED_IDENTIFIERS = (
    ("student_id", "Student ID"),
    ("faculty_id", "Faculty ID"),
    ("section_id", "Section ID"),
)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC and normalise aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validate_attendance_record(
    record: AttendanceRecord,
    now: Optional[datetime] = None,
) -> ValidationResult:
    errors: List[str] = []

    for attribute, label in REQUIRED_IDENTIFIERS:
        value = getattr(record, attribute)
        if value is None or not str(value).strip():
            errors.append(f"{label} is required")

    if record.timestamp is None:
        errors.append("Timestamp is required")
    else:
        current = as_utc(now) if now else datetime.now(timezone.utc)
        if as_utc(record.timestamp) > current:
            errors.append("Timestamp cannot be in the future")

    if record.status not in ATTENDANCE_STATUSES:
        errors.append("Invalid attendance status")

    if record.capture_method not in CAPTURE_METHODS:
        errors.append("Invalid capture method")

    return ValidationResult(is_valid=not errors, errors=errors)
