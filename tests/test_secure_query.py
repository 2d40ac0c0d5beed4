import math
from datetime import date
from uuid import UUID

import pytest

from app.core.exceptions import SecurityViolationError
from app.db.secure_query import (
    SecureQueryBuilder,
    SecureQueryPatterns,
    escape_identifier,
    sanitize_value,
    validate_identifier,
    validate_parameterized_query,
)

MALICIOUS = "Query contains potentially malicious SQL patterns"


def test_parameterized_query_is_valid():
    result = validate_parameterized_query("SELECT * FROM attendance_logs WHERE student_id = $1", ["S001"])
    assert result.is_valid
    assert result.errors == []


def test_query_without_placeholders_needs_no_values():
    assert validate_parameterized_query("SELECT 1").is_valid


@pytest.mark.parametrize(
    "query",
    [
        "SELECT * FROM users; DROP TABLE users",
        "SELECT id FROM a UNION SELECT password FROM users",
        "SELECT * FROM users WHERE name = '' OR '1'='1'",
        "SELECT * FROM users WHERE id = 1 --",
        "SELECT * FROM users /* hidden */",
        "EXEC(some_proc)",
        "SELECT xp_cmdshell",
    ],
)
def test_injection_signatures_are_rejected(query):
    result = validate_parameterized_query(query)
    assert not result.is_valid
    assert MALICIOUS in result.errors


def test_parameter_count_mismatch_is_reported():
    result = validate_parameterized_query("SELECT * FROM attendance_logs WHERE student_id = $1 AND date = $2", ["S001"])
    assert not result.is_valid
    assert result.errors == ["Parameter count mismatch: query has 2 placeholders but 1 values provided"]


def test_repeated_placeholder_counts_once():
    result = validate_parameterized_query("SELECT * FROM t WHERE a = $1 OR b = $1", ["x"])
    assert result.is_valid


def test_gap_in_placeholder_numbering_is_rejected():
    result = validate_parameterized_query("SELECT * FROM t WHERE a = $1 AND b = $3", ["x", "y", "z"])
    assert result.errors == ["Query placeholders must be numbered consecutively from $1"]


def test_string_concatenation_is_rejected():
    result = validate_parameterized_query("SELECT * FROM t WHERE name = '' + name", [])
    assert "Query appears to use string concatenation instead of parameters" in result.errors


def test_every_failure_is_reported():
    result = validate_parameterized_query("SELECT * FROM t WHERE a = $1; DROP TABLE t", [])
    assert len(result.errors) == 2


def test_identifier_validation():
    assert validate_identifier("attendance_logs") == "attendance_logs"
    assert validate_identifier("public.attendance_logs") == "public.attendance_logs"
    with pytest.raises(SecurityViolationError):
        validate_identifier("logs; DROP TABLE x")
    with pytest.raises(SecurityViolationError):
        validate_identifier("1abc")


def test_escape_identifier_quotes_each_part():
    assert escape_identifier("public.attendance_logs") == '"public"."attendance_logs"'


def test_sanitize_value():
    assert sanitize_value("ab\x00c\x1f") == "abc"
    assert sanitize_value(None) is None
    assert sanitize_value(True) is True
    assert sanitize_value(7) == 7
    assert sanitize_value(date(2024, 1, 15)) == date(2024, 1, 15)
    assert sanitize_value(UUID("12345678-1234-5678-1234-567812345678")) == "12345678-1234-5678-1234-567812345678"
    with pytest.raises(SecurityViolationError):
        sanitize_value(math.inf)


class TestSecureQueryBuilder:
    def test_builds_select_with_positional_placeholders(self):
        query = (
            SecureQueryBuilder()
            .select(["id", "status"])
            .from_("attendance_logs")
            .where("student_id = ?", "S001")
            .and_("status = ?", "present")
            .order_by("date", "desc")
            .limit(10)
            .offset(5)
            .build()
        )
        assert query.text == (
            "SELECT id, status FROM attendance_logs "
            "WHERE student_id = $1 AND status = $2 "
            "ORDER BY date DESC LIMIT 10 OFFSET 5"
        )
        assert query.values == ("S001", "present")

    def test_second_where_joins_with_and(self):
        query = SecureQueryBuilder().from_("t").where("a = ?", 1).where("b = ?", 2).build()
        assert query.text == "SELECT * FROM t WHERE a = $1 AND b = $2"

    def test_or_condition(self):
        query = SecureQueryBuilder().from_("t").where("a = ?", 1).or_("b = ?", 2).build()
        assert query.text == "SELECT * FROM t WHERE a = $1 OR b = $2"

    def test_builder_is_immutable(self):
        base = SecureQueryBuilder().from_("t")
        filtered = base.where("a = ?", 1)
        assert base.build().values == ()
        assert filtered.build().values == (1,)

    def test_hostile_identifiers_are_rejected(self):
        with pytest.raises(SecurityViolationError):
            SecureQueryBuilder().from_("t; DROP TABLE t")
        with pytest.raises(SecurityViolationError):
            SecureQueryBuilder().select(["id, password"])
        with pytest.raises(SecurityViolationError):
            SecureQueryBuilder().from_("t").order_by("date", "sideways")

    def test_condition_needs_one_marker(self):
        with pytest.raises(SecurityViolationError):
            SecureQueryBuilder().from_("t").where("a = 1", None)

    def test_and_requires_where(self):
        with pytest.raises(SecurityViolationError):
            SecureQueryBuilder().from_("t").and_("a = ?", 1)

    def test_negative_limit_is_rejected(self):
        with pytest.raises(SecurityViolationError):
            SecureQueryBuilder().from_("t").limit(-1)

    def test_build_requires_table(self):
        with pytest.raises(SecurityViolationError):
            SecureQueryBuilder().build()


class TestSecureQueryPatterns:
    def test_find_by_id(self):
        query = SecureQueryPatterns.find_by_id("attendance_logs", "abc")
        assert query.text == "SELECT * FROM attendance_logs WHERE id = $1"
        assert query.values == ("abc",)

    def test_insert(self):
        query = SecureQueryPatterns.insert("attendance_logs", {"student_id": "S001", "status": "present"})
        assert query.text == "INSERT INTO attendance_logs (student_id, status) VALUES ($1, $2) RETURNING *"
        assert query.values == ("S001", "present")

    def test_update(self):
        query = SecureQueryPatterns.update("attendance_logs", {"status": "absent"}, "abc")
        assert query.text == "UPDATE attendance_logs SET status = $1 WHERE id = $2 RETURNING *"
        assert query.values == ("absent", "abc")

    def test_insert_rejects_hostile_column(self):
        with pytest.raises(SecurityViolationError):
            SecureQueryPatterns.insert("attendance_logs", {"status; --": "x"})


@pytest.mark.parametrize(
    "fragment",
    ["'; DROP TABLE x; --", "' OR '1'='1", "UNION SELECT * FROM t"],
)
def test_classic_injection_payloads_in_query_text(fragment):
    query = f"SELECT * FROM t WHERE name = '{fragment}'"
    assert not validate_parameterized_query(query).is_valid


def test_too_many_values_for_placeholders():
    result = validate_parameterized_query("SELECT * FROM t WHERE id = $1", [1, 2])
    assert result.errors == ["Parameter count mismatch: query has 1 placeholders but 2 values provided"]
