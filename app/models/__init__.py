from app.models.attendance import AttendanceLog

__all__ = ["AttendanceLog"]
