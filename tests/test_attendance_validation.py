from datetime import datetime, timedelta, timezone

import pytest

from app.schemas.attendance import AttendanceRecord
from app.services.attendance import validate_attendance_record
from app.services.attendance.attendance_validation import as_utc
from tests.conftest import PAST, record

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def build(**overrides):
    return AttendanceRecord.model_validate(record(**overrides))


def test_valid_record_passes():
    result = validate_attendance_record(build(), now=NOW)
    assert result.is_valid
    assert result.errors == []


def test_snake_case_keys_are_accepted():
    payload = {
        "student_id": "S001",
        "faculty_id": "F001",
        "section_id": "SEC-A",
        "timestamp": PAST.isoformat(),
        "status": "absent",
        "capture_method": "manual",
    }
    assert validate_attendance_record(AttendanceRecord.model_validate(payload), now=NOW).is_valid


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"studentId": None}, "Student ID is required"),
        ({"studentId": "   "}, "Student ID is required"),
        ({"facultyId": None}, "Faculty ID is required"),
        ({"sectionId": ""}, "Section ID is required"),
        ({"timestamp": None}, "Timestamp is required"),
        ({"status": "late"}, "Invalid attendance status"),
        ({"status": None}, "Invalid attendance status"),
        ({"captureMethod": "qr"}, "Invalid capture method"),
    ],
)
def test_each_rule_reports_its_message(overrides, message):
    result = validate_attendance_record(build(**overrides), now=NOW)
    assert not result.is_valid
    assert result.errors == [message]


def test_future_timestamp_is_rejected():
    future = (NOW + timedelta(minutes=5)).isoformat()
    result = validate_attendance_record(build(timestamp=future), now=NOW)
    assert result.errors == ["Timestamp cannot be in the future"]


def test_all_violations_are_reported_together():
    result = validate_attendance_record(
        build(studentId=None, facultyId=None, status="late", captureMethod="qr"),
        now=NOW,
    )
    assert result.errors == [
        "Student ID is required",
        "Faculty ID is required",
        "Invalid attendance status",
        "Invalid capture method",
    ]


def test_naive_timestamps_are_treated_as_utc():
    naive = datetime(2024, 1, 15, 23, 30)
    assert as_utc(naive) == datetime(2024, 1, 15, 23, 30, tzinfo=timezone.utc)

    offset = datetime(2024, 1, 16, 1, 30, tzinfo=timezone(timedelta(hours=2)))
    assert as_utc(offset).date() == naive.date()
