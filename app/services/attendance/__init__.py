"""
Attendance service layer.

Provides business logic for:
- Offline batch sync with per-record outcomes
- Record validation
- Student history, statistics and section summaries
"""

from app.services.attendance.attendance_service import AttendanceService, build_sync_result
from app.services.attendance.attendance_validation import validate_attendance_record

__all__ = [
    "AttendanceService",
    "build_sync_result",
    "validate_attendance_record",
]
