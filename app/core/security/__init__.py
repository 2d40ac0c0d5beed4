"""Security module for authentication, threat detection and security events."""

from .events import (
    InMemorySecurityEventLog,
    SecurityEvent,
    SecurityEventLogger,
    SecurityEventSink,
    SecurityEventType,
    SecuritySeverity,
    SentrySecurityEventForwarder,
    classify_security_event,
    severity_for,
)
from .jwt_handler import JWTManager
from .threat_detection import SUSPICIOUS_PATTERNS, find_suspicious_patterns, scannable_headers

__all__ = [
    "InMemorySecurityEventLog",
    "JWTManager",
    "SecurityEvent",
    "SecurityEventLogger",
    "SecurityEventSink",
    "SecurityEventType",
    "SecuritySeverity",
    "SentrySecurityEventForwarder",
    "classify_security_event",
    "SUSPICIOUS_PATTERNS",
    "find_suspicious_patterns",
    "scannable_headers",
    "severity_for",
]
