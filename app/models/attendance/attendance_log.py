"""
Persisted attendance log.

One row per student per calendar day. Repeated syncs for the same
(student_id, date) pair update the existing row in place.
"""

from datetime import date, datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import Date, DateTime, Index, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base

__all__ = ["AttendanceLog", "ATTENDANCE_STATUSES", "CAPTURE_METHODS"]

ATTENDANCE_STATUSES = ("present", "absent")
CAPTURE_METHODS = ("ml", "manual")


class AttendanceLog(Base):
    """Server-of-record attendance row."""

    __tablename__ = "attendance_logs"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    student_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    faculty_id: Mapped[str] = mapped_column(String(64), nullable=False)
    section_id: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    capture_method: Mapped[str] = mapped_column(String(16), nullable=False)
    synced_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        server_default=func.current_timestamp(),
    )

    __table_args__ = (
        UniqueConstraint("student_id", "date", name="uq_attendance_logs_student_date"),
        Index("idx_attendance_logs_section_date", "section_id", "date"),
    )

    def __repr__(self) -> str:
        return (
            f"<AttendanceLog(student_id={self.student_id}, "
            f"date={self.date}, status={self.status})>"
        )
