import pytest

from app.core.error_translation import (
    build_error_response,
    category_for_status,
    get_error_type,
    get_suggested_actions,
    get_user_friendly_message,
    is_recoverable_error,
)
from app.core.exceptions import ErrorCategory


def test_expired_session_translation():
    body = build_error_response(401, ErrorCategory.AUTHENTICATION)
    error = body["error"]

    assert body["success"] is False
    assert error["code"] == 401
    assert error["type"] == "AUTHENTICATION_ERROR"
    assert error["message"] == "Your session has expired. Please log in again."
    assert error["is_recoverable"] is True
    assert error["suggested_actions"] == ["Log out and log in again", "Clear app cache", "Check your credentials"]


def test_category_message_takes_precedence_over_status():
    assert get_user_friendly_message(500, ErrorCategory.DATABASE).startswith("Database error occurred")
    assert get_user_friendly_message(500) == "Internal server error. Please try again later."


def test_unknown_status_uses_defaults():
    assert get_user_friendly_message(418) == "An unexpected error occurred. Please try again."
    assert get_suggested_actions(418) == ["Try again later", "Contact support if problem persists"]
    assert get_error_type(418) == "CLIENT_ERROR"
    assert get_error_type(599) == "SERVER_ERROR"


@pytest.mark.parametrize(
    "status, recoverable",
    [(400, True), (401, True), (403, False), (404, False), (422, False), (429, True), (503, True)],
)
def test_recoverability(status, recoverable):
    assert is_recoverable_error(status) is recoverable


def test_category_fallback():
    assert category_for_status(422) is ErrorCategory.VALIDATION
    assert category_for_status(429) is ErrorCategory.SECURITY
    assert category_for_status(500) is ErrorCategory.SYSTEM


def test_raw_detail_hidden_outside_development():
    body = build_error_response(500, ErrorCategory.DATABASE, original_message="relation does not exist")
    assert "original_message" not in body["error"]
    assert "details" not in body["error"]


def test_debug_mode_exposes_context():
    body = build_error_response(
        500,
        original_message="relation does not exist",
        path="/api/v1/attendance/sync",
        method="POST",
        debug=True,
    )
    assert body["error"]["original_message"] == "relation does not exist"
    assert body["error"]["path"] == "/api/v1/attendance/sync"
    assert body["error"]["method"] == "POST"


def test_validation_details_always_returned():
    details = {"field_errors": [{"field": "records", "message": "too short"}]}
    body = build_error_response(422, ErrorCategory.VALIDATION, details=details)
    assert body["error"]["details"] == details
