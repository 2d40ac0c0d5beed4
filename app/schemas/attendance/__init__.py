# --- File: app/schemas/attendance/__init__.py ---
"""
Attendance schemas package.
"""

from app.schemas.attendance.attendance_report import (
    AttendanceLogEntry,
    AttendanceStatistics,
    AttendanceSummary,
)
from app.schemas.attendance.attendance_sync import (
    AttendanceRecord,
    AttendanceSyncRequest,
    SyncError,
    SyncResult,
    ValidationResult,
)

__all__ = [
    "AttendanceLogEntry",
    "AttendanceRecord",
    "AttendanceStatistics",
    "AttendanceSummary",
    "AttendanceSyncRequest",
    "SyncError",
    "SyncResult",
    "ValidationResult",
]
