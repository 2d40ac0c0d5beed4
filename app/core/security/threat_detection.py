"""
Suspicious request payload detection.

Heuristic signatures for SQL injection, script injection, path traversal
and privileged account names. Matching is case-insensitive and applied
to the serialized request.
"""

import re
from typing import Dict, List, Tuple

SUSPICIOUS_PATTERNS: Tuple[Tuple[str, re.Pattern], ...] = (
    ("sql_injection", re.compile(r"\b(union|select|insert|delete|drop|create|alter)\b", re.IGNORECASE)),
    ("script_injection", re.compile(r"<script|javascript:|vbscript:|onload=|onerror=", re.IGNORECASE)),
    ("path_traversal", re.compile(r"\.\./|\.\.\\")),
    ("privileged_account", re.compile(r"\b(admin|root|administrator)\b", re.IGNORECASE)),
)

# Transport headers whose values are generated by clients and proxies
IGNORED_HEADERS = frozenset({"authorization", "cookie", "content-length", "accept-encoding"})


def find_suspicious_patterns(payload: str) -> List[str]:
    """Return the names of every signature found in ``payload``."""
    return [name for name, pattern in SUSPICIOUS_PATTERNS if pattern.search(payload)]


def scannable_headers(headers: Dict[str, str]) -> Dict[str, str]:
    return {key: value for key, value in headers.items() if key.lower() not in IGNORED_HEADERS}
