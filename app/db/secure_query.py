"""
Secure query construction and validation.

Every statement handed to the database goes through
``validate_parameterized_query`` first. Statements are written with
PostgreSQL style positional placeholders (``$1``, ``$2``...), values are
always passed separately and never interpolated into the SQL text.
"""

import math
import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Sequence, Tuple
from uuid import UUID

from app.core.exceptions import SecurityViolationError

__all__ = [
    "QueryValidationResult",
    "SecureQuery",
    "SecureQueryBuilder",
    "SecureQueryPatterns",
    "validate_parameterized_query",
    "validate_identifier",
    "escape_identifier",
    "sanitize_value",
    "sanitize_values",
]

IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)?$")
PLACEHOLDER_PATTERN = re.compile(r"\$(\d+)")
CONTROL_CHARS_PATTERN = re.compile(r"[\x00-\x1F\x7F]")

INJECTION_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r";\s*(drop|delete|truncate|alter|create|insert|update)\s+", re.IGNORECASE),
    re.compile(r"union\s+(all\s+)?select", re.IGNORECASE),
    re.compile(r"'\s*or\s*'1'\s*=\s*'1", re.IGNORECASE),
    re.compile(r"'\s*or\s*1\s*=\s*1", re.IGNORECASE),
    re.compile(r"--\s*$", re.MULTILINE),
    re.compile(r"/\*.*?\*/", re.DOTALL),
    re.compile(r"\bexec(ute)?\s*\(", re.IGNORECASE),
    re.compile(r"\b(xp|sp)_\w+", re.IGNORECASE),
)

CONCATENATION_PATTERN = re.compile(r"['\"]\s*\+\s")

ORDER_DIRECTIONS = ("ASC", "DESC")


@dataclass(frozen=True)
class QueryValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SecureQuery:
    """SQL text with its ordered positional values."""
    text: str
    values: Tuple[Any, ...] = ()


def validate_parameterized_query(query: str, values: Optional[Sequence[Any]] = None) -> QueryValidationResult:
    """
    Check a query for injection signatures and placeholder consistency.

    All checks run independently and every failure is reported. The
    declared parameter count is the highest ``$n`` index, matching how
    PostgreSQL sizes the parameter list of a prepared statement.
    """
    values = list(values or [])
    errors: List[str] = []

    if any(pattern.search(query) for pattern in INJECTION_PATTERNS):
        errors.append("Query contains potentially malicious SQL patterns")

    indexes = [int(match) for match in PLACEHOLDER_PATTERN.findall(query)]
    declared = max(indexes) if indexes else 0
    if declared != len(values):
        errors.append(
            f"Parameter count mismatch: query has {declared} placeholders "
            f"but {len(values)} values provided"
        )
    elif indexes and len(set(indexes)) != declared:
        errors.append("Query placeholders must be numbered consecutively from $1")

    if CONCATENATION_PATTERN.search(query):
        errors.append("Query appears to use string concatenation instead of parameters")

    return QueryValidationResult(is_valid=not errors, errors=errors)


def validate_identifier(identifier: str, kind: str = "identifier") -> str:
    """Return ``identifier`` unchanged or raise if it is not a plain (optionally qualified) name."""
    if not isinstance(identifier, str) or not IDENTIFIER_PATTERN.match(identifier):
        raise SecurityViolationError(
            f"Invalid {kind} name",
            violations=[f"Invalid {kind} name: {identifier!r}"],
        )
    return identifier


def escape_identifier(identifier: str) -> str:
    """Validate and double-quote an identifier, quoting each part of a qualified name."""
    validate_identifier(identifier)
    return ".".join(f'"{part}"' for part in identifier.split("."))


def sanitize_value(value: Any) -> Any:
    """
    Normalise a bound value before it reaches the driver.

    Strings lose NUL and control characters, numbers must be finite,
    booleans, ``None`` and date values pass through, anything else is
    stringified and cleaned like a string.
    """
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str):
        return CONTROL_CHARS_PATTERN.sub("", value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise SecurityViolationError("Invalid number value", violations=[f"Non-finite number: {value}"])
        return value
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise SecurityViolationError("Invalid number value", violations=[f"Non-finite number: {value}"])
        return value
    if isinstance(value, (datetime, date)):
        return value
    if isinstance(value, UUID):
        return str(value)
    return CONTROL_CHARS_PATTERN.sub("", str(value))


def sanitize_values(values: Optional[Sequence[Any]]) -> List[Any]:
    return [sanitize_value(value) for value in (values or [])]


@dataclass(frozen=True)
class SecureQueryBuilder:
    """
    Immutable SELECT builder.

    Each call returns a new builder, so a partially built query can be
    shared and extended safely. Conditions use ``?`` as the value marker;
    it is replaced by the next positional placeholder in call order.

        query = (
            SecureQueryBuilder()
            .select(["id", "status"])
            .from_("attendance_logs")
            .where("student_id = ?", student_id)
            .order_by("date", "DESC")
            .build()
        )
    """

    columns: Tuple[str, ...] = ("*",)
    table: Optional[str] = None
    conditions: Tuple[str, ...] = ()
    values: Tuple[Any, ...] = ()
    ordering: Tuple[str, ...] = ()
    limit_clause: Optional[str] = None
    offset_clause: Optional[str] = None

    def select(self, columns: Sequence[str]) -> "SecureQueryBuilder":
        if isinstance(columns, str):
            columns = [columns]
        if not columns:
            raise SecurityViolationError("At least one column is required")
        for column in columns:
            if column != "*":
                validate_identifier(column, "column")
        return replace(self, columns=tuple(columns))

    def from_(self, table: str) -> "SecureQueryBuilder":
        return replace(self, table=validate_identifier(table, "table"))

    def where(self, condition: str, value: Any) -> "SecureQueryBuilder":
        return self._add_condition(None, condition, value)

    def and_(self, condition: str, value: Any) -> "SecureQueryBuilder":
        return self._add_condition("AND", condition, value)

    def or_(self, condition: str, value: Any) -> "SecureQueryBuilder":
        return self._add_condition("OR", condition, value)

    def order_by(self, column: str, direction: str = "ASC") -> "SecureQueryBuilder":
        validate_identifier(column, "column")
        direction = direction.upper()
        if direction not in ORDER_DIRECTIONS:
            raise SecurityViolationError(
                "Invalid sort direction",
                violations=[f"Invalid sort direction: {direction!r}"],
            )
        return replace(self, ordering=self.ordering + (f"{column} {direction}",))

    def limit(self, count: int) -> "SecureQueryBuilder":
        return replace(self, limit_clause=f"LIMIT {self._non_negative(count, 'limit')}")

    def offset(self, count: int) -> "SecureQueryBuilder":
        return replace(self, offset_clause=f"OFFSET {self._non_negative(count, 'offset')}")

    def build(self) -> SecureQuery:
        if not self.table:
            raise SecurityViolationError("Query has no table; call from_() before build()")

        parts = [f"SELECT {', '.join(self.columns)} FROM {self.table}"]
        if self.conditions:
            parts.append("WHERE " + " ".join(self.conditions))
        if self.ordering:
            parts.append("ORDER BY " + ", ".join(self.ordering))
        if self.limit_clause:
            parts.append(self.limit_clause)
        if self.offset_clause:
            parts.append(self.offset_clause)

        text = " ".join(parts)
        validation = validate_parameterized_query(text, self.values)
        if not validation.is_valid:
            raise SecurityViolationError("Built query failed validation", violations=validation.errors)
        return SecureQuery(text=text, values=self.values)

    def _add_condition(self, joiner: Optional[str], condition: str, value: Any) -> "SecureQueryBuilder":
        if condition.count("?") != 1:
            raise SecurityViolationError(
                "Condition must contain exactly one '?' value marker",
                violations=[condition],
            )
        if joiner and not self.conditions:
            raise SecurityViolationError(f"{joiner} condition requires a preceding where()")
        if joiner is None and self.conditions:
            joiner = "AND"

        placeholder = f"${len(self.values) + 1}"
        clause = condition.replace("?", placeholder)
        if joiner:
            clause = f"{joiner} {clause}"
        return replace(
            self,
            conditions=self.conditions + (clause,),
            values=self.values + (value,),
        )

    @staticmethod
    def _non_negative(count: int, name: str) -> int:
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise SecurityViolationError(f"{name} must be a non-negative integer")
        return count


class SecureQueryPatterns:
    """Ready-made parameterized statements for common single-table access."""

    @staticmethod
    def find_by_id(table: str, id_value: Any, id_column: str = "id") -> SecureQuery:
        return (
            SecureQueryBuilder()
            .from_(table)
            .where(f"{validate_identifier(id_column, 'column')} = ?", id_value)
            .build()
        )

    @staticmethod
    def find_by_field(
        table: str,
        field_name: str,
        value: Any,
        columns: Sequence[str] = ("*",),
    ) -> SecureQuery:
        return (
            SecureQueryBuilder()
            .select(columns)
            .from_(table)
            .where(f"{validate_identifier(field_name, 'column')} = ?", value)
            .build()
        )

    @staticmethod
    def insert(table: str, data: Mapping[str, Any]) -> SecureQuery:
        validate_identifier(table, "table")
        if not data:
            raise SecurityViolationError("Insert requires at least one column")

        columns = [validate_identifier(column, "column") for column in data]
        placeholders = [f"${index}" for index in range(1, len(columns) + 1)]
        text = (
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({', '.join(placeholders)}) RETURNING *"
        )
        return _checked_query(text, tuple(data.values()))

    @staticmethod
    def update(
        table: str,
        data: Mapping[str, Any],
        id_value: Any,
        id_column: str = "id",
    ) -> SecureQuery:
        validate_identifier(table, "table")
        validate_identifier(id_column, "column")
        if not data:
            raise SecurityViolationError("Update requires at least one column")

        assignments = [
            f"{validate_identifier(column, 'column')} = ${index}"
            for index, column in enumerate(data, start=1)
        ]
        text = (
            f"UPDATE {table} SET {', '.join(assignments)} "
            f"WHERE {id_column} = ${len(assignments) + 1} RETURNING *"
        )
        return _checked_query(text, tuple(data.values()) + (id_value,))


def _checked_query(text: str, values: Tuple[Any, ...]) -> SecureQuery:
    validation = validate_parameterized_query(text, values)
    if not validation.is_valid:
        raise SecurityViolationError("Built query failed validation", violations=validation.errors)
    return SecureQuery(text=text, values=values)
