import threading
from datetime import datetime, timedelta, timezone

import pytest

from app.core.security import (
    InMemorySecurityEventLog,
    SecurityEvent,
    SecurityEventLogger,
    SecurityEventType,
    SecuritySeverity,
    classify_security_event,
    find_suspicious_patterns,
    severity_for,
)
from app.core.security.threat_detection import scannable_headers


class BrokenSink:
    def record(self, event):
        raise RuntimeError("sink offline")


@pytest.mark.parametrize(
    "status, message, expected",
    [
        (401, "Access token required", SecurityEventType.UNAUTHORIZED_ACCESS),
        (403, "Access denied", SecurityEventType.INVALID_TOKEN),
        (403, "Suspicious activity detected", SecurityEventType.SUSPICIOUS_ACTIVITY),
        (400, "possible breach", SecurityEventType.DATA_BREACH_ATTEMPT),
        (429, "Rate limit exceeded", SecurityEventType.RATE_LIMIT_EXCEEDED),
        (400, "Query failed security validation", SecurityEventType.UNAUTHORIZED_ACCESS),
    ],
)
def test_classify_security_event(status, message, expected):
    assert classify_security_event(status, message) is expected


def test_severity_mapping():
    assert severity_for(SecurityEventType.DATA_BREACH_ATTEMPT) is SecuritySeverity.CRITICAL
    assert severity_for(SecurityEventType.SUSPICIOUS_ACTIVITY) is SecuritySeverity.HIGH
    assert severity_for(SecurityEventType.RATE_LIMIT_EXCEEDED) is SecuritySeverity.MEDIUM
    assert severity_for(SecurityEventType.INVALID_TOKEN) is SecuritySeverity.MEDIUM


def test_log_event_records_and_redacts():
    event_log = InMemorySecurityEventLog()
    logger = SecurityEventLogger([event_log])

    event = logger.log_event(
        SecurityEventType.INVALID_TOKEN,
        {"token": "abc.def.ghi", "reason": "bad signature"},
        ip_address="10.0.0.1",
        endpoint="/api/v1/attendance/sync",
        method="POST",
    )

    assert event.id.startswith("sec_")
    assert event.details == {"token": "[REDACTED]", "reason": "bad signature"}
    assert event.blocked is True
    assert event_log.recent() == [event]
    assert event.to_dict()["type"] == "INVALID_TOKEN"


def test_failing_sink_does_not_block_others():
    event_log = InMemorySecurityEventLog()
    logger = SecurityEventLogger([BrokenSink(), event_log])

    logger.log_event(SecurityEventType.SUSPICIOUS_ACTIVITY)

    assert len(event_log) == 1


def test_log_is_bounded_and_newest_first():
    event_log = InMemorySecurityEventLog(capacity=3)
    logger = SecurityEventLogger([event_log])
    events = [logger.log_event(SecurityEventType.RATE_LIMIT_EXCEEDED, {"n": n}) for n in range(5)]

    assert len(event_log) == 3
    assert event_log.recent() == [events[4], events[3], events[2]]
    assert event_log.recent(limit=1) == [events[4]]


def test_filtered_views():
    event_log = InMemorySecurityEventLog()
    logger = SecurityEventLogger([event_log])
    logger.log_event(SecurityEventType.RATE_LIMIT_EXCEEDED)
    logger.log_event(SecurityEventType.UNAUTHORIZED_ACCESS)

    assert [e.type for e in event_log.by_type(SecurityEventType.UNAUTHORIZED_ACCESS)] == [
        SecurityEventType.UNAUTHORIZED_ACCESS
    ]
    assert len(event_log.by_severity(SecuritySeverity.MEDIUM)) == 1


def test_clear_older_than():
    event_log = InMemorySecurityEventLog()
    now = datetime.now(timezone.utc)
    for age in (0, 10, 40):
        event_log.record(
            SecurityEvent(
                id=f"sec_{age}",
                type=SecurityEventType.INVALID_TOKEN,
                severity=SecuritySeverity.MEDIUM,
                timestamp=now - timedelta(days=age),
            )
        )

    assert event_log.clear_older_than(30) == 1
    assert [event.id for event in event_log.recent()] == ["sec_10", "sec_0"]


@pytest.mark.parametrize(
    "payload, expected",
    [
        ('{"studentId": "1 UNION SELECT password"}', ["sql_injection"]),
        ('{"note": "<script>alert(1)</script>"}', ["script_injection"]),
        ('{"file": "../../etc/passwd"}', ["path_traversal"]),
        ('{"user": "admin"}', ["privileged_account"]),
        ('{"studentId": "S001", "status": "present"}', []),
    ],
)
def test_find_suspicious_patterns(payload, expected):
    assert find_suspicious_patterns(payload) == expected


def test_transport_headers_are_not_scanned():
    headers = {"Authorization": "Bearer x", "Cookie": "a=b", "User-Agent": "AttendanceApp/1.0"}
    assert scannable_headers(headers) == {"User-Agent": "AttendanceApp/1.0"}


def test_concurrent_appends_respect_capacity():
    event_log = InMemorySecurityEventLog()
    logger = SecurityEventLogger([event_log])

    def append_many():
        for n in range(300):
            logger.log_event(SecurityEventType.RATE_LIMIT_EXCEEDED, {"n": n})

    threads = [threading.Thread(target=append_many) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    events = event_log.recent(limit=2000)
    assert event_log.capacity == 1000
    assert len(event_log) == 1000
    assert len({event.id for event in events}) == 1000
