# --- File: app/schemas/attendance/attendance_report.py ---
"""
Attendance history and reporting schemas.
"""

from datetime import date as Date, datetime
from typing import Optional

from pydantic import Field

from app.schemas.common.base import BaseSchema

__all__ = [
    "AttendanceLogEntry",
    "AttendanceStatistics",
    "AttendanceSummary",
]


class AttendanceLogEntry(BaseSchema):
    """Persisted attendance row."""

    id: str
    student_id: str
    faculty_id: str
    section_id: str
    date: Date
    status: str
    capture_method: str
    synced_at: Optional[datetime] = None


class AttendanceStatistics(BaseSchema):
    """Per-student attendance over a date range."""

    student_id: str
    total_days: int = Field(..., ge=0)
    present_days: int = Field(..., ge=0)
    absent_days: int = Field(..., ge=0)
    attendance_percentage: float = Field(..., ge=0, le=100)


class AttendanceSummary(BaseSchema):
    """Section-wide attendance rollup over a date range."""

    total_students: int = 0
    total_days: int = 0
    average_attendance: float = 0.0
    present_count: int = 0
    absent_count: int = 0
