from app.models.attendance.attendance_log import (
    ATTENDANCE_STATUSES,
    CAPTURE_METHODS,
    AttendanceLog,
)

__all__ = ["AttendanceLog", "ATTENDANCE_STATUSES", "CAPTURE_METHODS"]
