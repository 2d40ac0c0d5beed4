# --- File: app/schemas/attendance/attendance_sync.py ---
"""
Schemas for offline attendance batch sync.

Client records are accepted loosely so that a bad record is reported
against its index in the batch instead of rejecting the whole request.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from app.schemas.common.base import BaseSchema

__all__ = [
    "AttendanceRecord",
    "AttendanceSyncRequest",
    "SyncError",
    "SyncResult",
    "ValidationResult",
]


class AttendanceRecord(BaseSchema):
    """
    One attendance capture as submitted by the mobile client.

    Accepts camelCase (``studentId``) or snake_case (``student_id``) keys.
    """

    student_id: Optional[str] = Field(None, alias="studentId", description="Student identifier")
    faculty_id: Optional[str] = Field(None, alias="facultyId", description="Capturing faculty identifier")
    section_id: Optional[str] = Field(None, alias="sectionId", description="Section identifier")
    timestamp: Optional[datetime] = Field(None, description="Capture time on the device")
    status: Optional[str] = Field(None, description="present | absent")
    capture_method: Optional[str] = Field(None, alias="captureMethod", description="ml | manual")
    sync_status: Optional[str] = Field(
        None,
        alias="syncStatus",
        description="Client-side sync state (pending | synced | failed), informational only",
    )


class AttendanceSyncRequest(BaseSchema):
    records: List[AttendanceRecord] = Field(..., min_length=1, description="Records in capture order")


class ValidationResult(BaseSchema):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)


class SyncError(BaseSchema):
    record_index: int = Field(..., ge=0, description="Position of the record in the submitted batch")
    error: str


class SyncResult(BaseSchema):
    """Outcome of one batch sync call."""

    success: bool
    synced_count: int = Field(0, ge=0)
    failed_count: int = Field(0, ge=0)
    errors: List[SyncError] = Field(default_factory=list)
