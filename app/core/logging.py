"""
Logging utilities.

Request-scoped context for log records and helpers for keeping
sensitive values out of log output.
"""

import logging
from contextvars import ContextVar
from typing import Any, Dict, Optional

# Context variables for request tracking
request_id: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
user_id: ContextVar[Optional[str]] = ContextVar('user_id', default=None)

SENSITIVE_KEYS = (
    'password', 'token', 'secret', 'credentials',
    'authorization', 'cookie', 'session'
)


class RequestContextFilter(logging.Filter):
    """Attach the current request and user identifiers to every record"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, 'request_id', None):
            record.request_id = request_id.get() or '-'
        if not getattr(record, 'user_id', None):
            record.user_id = user_id.get()
        return True


def redact_sensitive(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``data`` with sensitive keys masked, recursing into dicts."""
    redacted: Dict[str, Any] = {}
    for key, value in data.items():
        if any(sensitive in str(key).lower() for sensitive in SENSITIVE_KEYS):
            redacted[key] = '[REDACTED]'
        elif isinstance(value, dict):
            redacted[key] = redact_sensitive(value)
        else:
            redacted[key] = value
    return redacted
