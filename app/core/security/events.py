"""
Security event recording.

Events are fanned out to injected sinks: a bounded in-memory log for
inspection and tests, and optionally a forwarder to external monitoring.
Every event is also written to the ``app.security`` operational logger.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Protocol, Sequence
from uuid import uuid4

import sentry_sdk

from app.core.logging import redact_sensitive

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("app.security")


class SecurityEventType(str, Enum):
    UNAUTHORIZED_ACCESS = "UNAUTHORIZED_ACCESS"
    INVALID_TOKEN = "INVALID_TOKEN"
    SUSPICIOUS_ACTIVITY = "SUSPICIOUS_ACTIVITY"
    DATA_BREACH_ATTEMPT = "DATA_BREACH_ATTEMPT"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"


class SecuritySeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


EVENT_SEVERITY: Dict[SecurityEventType, SecuritySeverity] = {
    SecurityEventType.DATA_BREACH_ATTEMPT: SecuritySeverity.CRITICAL,
    SecurityEventType.UNAUTHORIZED_ACCESS: SecuritySeverity.HIGH,
    SecurityEventType.SUSPICIOUS_ACTIVITY: SecuritySeverity.HIGH,
}


def severity_for(event_type: SecurityEventType) -> SecuritySeverity:
    return EVENT_SEVERITY.get(event_type, SecuritySeverity.MEDIUM)


def classify_security_event(status_code: int, message: str = "") -> SecurityEventType:
    """Map an error response to the security event it represents."""
    lowered = (message or "").lower()
    if status_code == 401:
        return SecurityEventType.UNAUTHORIZED_ACCESS
    if status_code == 403 and "suspicious" not in lowered:
        return SecurityEventType.INVALID_TOKEN
    if "suspicious" in lowered:
        return SecurityEventType.SUSPICIOUS_ACTIVITY
    if "breach" in lowered:
        return SecurityEventType.DATA_BREACH_ATTEMPT
    if status_code == 429:
        return SecurityEventType.RATE_LIMIT_EXCEEDED
    return SecurityEventType.UNAUTHORIZED_ACCESS


@dataclass(frozen=True)
class SecurityEvent:
    id: str
    type: SecurityEventType
    severity: SecuritySeverity
    timestamp: datetime
    details: Dict[str, Any] = field(default_factory=dict)
    blocked: bool = True
    user_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    endpoint: Optional[str] = None
    method: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
            "user_id": self.user_id,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "endpoint": self.endpoint,
            "method": self.method,
            "details": self.details,
            "blocked": self.blocked,
        }


class SecurityEventSink(Protocol):
    def record(self, event: SecurityEvent) -> None:
        ...


class InMemorySecurityEventLog:
    """Bounded, thread-safe event log; the oldest event is evicted when full."""

    def __init__(self, capacity: int = 1000):
        self.capacity = capacity
        self._events: Deque[SecurityEvent] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def record(self, event: SecurityEvent) -> None:
        with self._lock:
            self._events.append(event)

    def recent(self, limit: int = 50) -> List[SecurityEvent]:
        """Newest first."""
        with self._lock:
            events = list(self._events)
        return list(reversed(events))[:limit]

    def by_type(self, event_type: SecurityEventType) -> List[SecurityEvent]:
        with self._lock:
            return [event for event in self._events if event.type == event_type]

    def by_severity(self, severity: SecuritySeverity) -> List[SecurityEvent]:
        with self._lock:
            return [event for event in self._events if event.severity == severity]

    def clear_older_than(self, days: int = 30) -> int:
        """Drop events older than ``days``; returns how many were removed."""
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        with self._lock:
            kept = [event for event in self._events if event.timestamp >= cutoff]
            removed = len(self._events) - len(kept)
            self._events = deque(kept, maxlen=self.capacity)
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


class SentrySecurityEventForwarder:
    """Forward events to Sentry as messages tagged with type and severity."""

    LEVELS = {
        SecuritySeverity.LOW: "info",
        SecuritySeverity.MEDIUM: "warning",
        SecuritySeverity.HIGH: "error",
        SecuritySeverity.CRITICAL: "fatal",
    }

    def record(self, event: SecurityEvent) -> None:
        with sentry_sdk.push_scope() as scope:
            scope.set_tag("security_event", event.type.value)
            scope.set_tag("severity", event.severity.value)
            scope.set_context("security_event", event.to_dict())
            sentry_sdk.capture_message(
                f"Security event: {event.type.value}",
                level=self.LEVELS[event.severity],
            )


class SecurityEventLogger:
    """
    Creates security events and dispatches them to every sink.

    A failing sink is logged and skipped so one broken forwarder never
    hides the event from the others.
    """

    def __init__(self, sinks: Sequence[SecurityEventSink]):
        self.sinks = list(sinks)

    def log_event(
        self,
        event_type: SecurityEventType,
        details: Optional[Dict[str, Any]] = None,
        *,
        blocked: bool = True,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        endpoint: Optional[str] = None,
        method: Optional[str] = None,
    ) -> SecurityEvent:
        event = SecurityEvent(
            id=f"sec_{uuid4().hex}",
            type=event_type,
            severity=severity_for(event_type),
            timestamp=datetime.now(timezone.utc),
            details=redact_sensitive(details or {}),
            blocked=blocked,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            endpoint=endpoint,
            method=method,
        )

        for sink in self.sinks:
            try:
                sink.record(event)
            except Exception as e:
                logger.error(f"Security event sink {type(sink).__name__} failed: {e}")

        level = (
            logging.ERROR
            if event.severity in (SecuritySeverity.HIGH, SecuritySeverity.CRITICAL)
            else logging.WARNING
        )
        security_logger.log(
            level,
            f"Security event {event.type.value}",
            extra={"security_event": event.to_dict()},
        )
        return event
