"""
Attendance endpoints: offline batch sync and reports.
"""

import logging
from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query, status

from app.api import deps
from app.config.settings import Settings
from app.core.exceptions import BadRequestError
from app.schemas.attendance import (
    AttendanceLogEntry,
    AttendanceStatistics,
    AttendanceSummary,
    AttendanceSyncRequest,
    SyncResult,
)
from app.schemas.common import SuccessResponse
from app.services.attendance import AttendanceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/attendance", tags=["attendance"])


@router.post(
    "/sync",
    response_model=SuccessResponse[SyncResult],
    status_code=status.HTTP_200_OK,
    summary="Sync a batch of offline attendance records",
)
async def sync_attendance(
    payload: AttendanceSyncRequest,
    faculty_id: str = Depends(deps.get_current_faculty),
    settings: Settings = Depends(deps.get_settings),
    service: AttendanceService = Depends(deps.get_attendance_service),
) -> SuccessResponse[SyncResult]:
    """
    Upsert each record keyed by student and calendar day.

    Invalid or failing records are reported by index; the rest of the
    batch is still stored.
    """
    if len(payload.records) > settings.MAX_SYNC_BATCH_SIZE:
        raise BadRequestError(
            f"Batch exceeds the maximum of {settings.MAX_SYNC_BATCH_SIZE} records",
            details={"batch_size": len(payload.records), "max_batch_size": settings.MAX_SYNC_BATCH_SIZE},
        )

    result = await service.sync_attendance_records(payload.records)
    logger.info(
        "Sync request processed",
        extra={"faculty_id": faculty_id, "synced_count": result.synced_count, "failed_count": result.failed_count},
    )
    message = (
        f"Synced {result.synced_count} records"
        if result.success
        else f"Synced {result.synced_count} records, {result.failed_count} failed"
    )
    return SuccessResponse.create(message=message, data=result)


@router.get(
    "/student/{student_id}",
    response_model=SuccessResponse[List[AttendanceLogEntry]],
    summary="Attendance history for a student",
)
async def get_student_history(
    student_id: str,
    _: str = Depends(deps.get_current_faculty),
    service: AttendanceService = Depends(deps.get_attendance_service),
) -> SuccessResponse[List[AttendanceLogEntry]]:
    history = await service.get_attendance_history(student_id)
    return SuccessResponse.create(message="Attendance history retrieved", data=history)


@router.get(
    "/statistics",
    response_model=SuccessResponse[List[AttendanceStatistics]],
    summary="Per-student attendance statistics for a section",
)
async def get_statistics(
    section_id: str = Query(..., min_length=1),
    start_date: date = Query(...),
    end_date: date = Query(...),
    _: str = Depends(deps.get_current_faculty),
    service: AttendanceService = Depends(deps.get_attendance_service),
) -> SuccessResponse[List[AttendanceStatistics]]:
    statistics = await service.get_attendance_statistics(section_id, start_date, end_date)
    return SuccessResponse.create(message="Attendance statistics retrieved", data=statistics)


@router.get(
    "/summary",
    response_model=SuccessResponse[AttendanceSummary],
    summary="Attendance summary for a section",
)
async def get_summary(
    section_id: str = Query(..., min_length=1),
    start_date: date = Query(...),
    end_date: date = Query(...),
    _: str = Depends(deps.get_current_faculty),
    service: AttendanceService = Depends(deps.get_attendance_service),
) -> SuccessResponse[AttendanceSummary]:
    summary = await service.get_attendance_summary(section_id, start_date, end_date)
    return SuccessResponse.create(message="Attendance summary retrieved", data=summary)
