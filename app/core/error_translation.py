"""
User-facing error translation.

Maps (status code, category) pairs to a stable message, a recoverability
flag and suggested next steps. Category-specific entries take precedence
over the per-status defaults. Raw exception text is only exposed in
development mode.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.core.exceptions import ErrorCategory

STATUS_MESSAGES: Dict[int, str] = {
    400: "Invalid request data. Please check your input and try again.",
    401: "Authentication required. Please log in to continue.",
    403: "Access denied. You don't have permission to perform this action.",
    404: "The requested resource was not found.",
    409: "Data conflict detected. Please refresh and try again.",
    422: "Invalid data provided. Please check your input.",
    429: "Too many requests. Please wait a moment before trying again.",
    500: "Internal server error. Please try again later.",
    502: "Service temporarily unavailable. Please try again later.",
    503: "Service is currently under maintenance. Please try again later.",
    504: "Request timed out. Please try again.",
}

CATEGORY_MESSAGES: Dict[ErrorCategory, Dict[int, str]] = {
    ErrorCategory.AUTHENTICATION: {
        401: "Your session has expired. Please log in again.",
        403: "Invalid credentials. Please check your username and password.",
    },
    ErrorCategory.DATABASE: {
        500: "Database error occurred. Your data is safe and the issue will be resolved automatically.",
        503: "Database is temporarily unavailable. Please try again in a few moments.",
    },
    ErrorCategory.VALIDATION: {
        400: "Please check your input data for errors.",
        422: "Some required fields are missing or invalid.",
    },
}

DEFAULT_MESSAGE = "An unexpected error occurred. Please try again."

STATUS_ACTIONS: Dict[int, List[str]] = {
    400: ["Check your input data", "Ensure all required fields are filled", "Try again with valid data"],
    401: ["Log in to your account", "Check your credentials", "Refresh your session"],
    403: ["Contact administrator for access", "Check your permissions", "Log in with appropriate account"],
    404: ["Check the URL or resource path", "Refresh the page", "Contact support if problem persists"],
    409: ["Refresh the page to get latest data", "Try again after a moment", "Check for conflicting changes"],
    422: ["Review and correct input data", "Ensure all required fields are provided", "Check data format requirements"],
    429: ["Wait a few moments before trying again", "Reduce request frequency", "Try again later"],
    500: ["Try again in a few moments", "Refresh the page", "Contact support if problem persists"],
    502: ["Try again later", "Check your internet connection", "Contact support if problem continues"],
    503: ["Wait for service to become available", "Try again in a few minutes", "Check service status"],
    504: ["Try again with a shorter request", "Check your internet connection", "Retry the operation"],
}

CATEGORY_ACTIONS: Dict[ErrorCategory, Dict[int, List[str]]] = {
    ErrorCategory.AUTHENTICATION: {
        401: ["Log out and log in again", "Clear app cache", "Check your credentials"],
        403: ["Contact administrator", "Check account permissions", "Verify account status"],
    },
    ErrorCategory.DATABASE: {
        500: ["The system will retry automatically", "Your data is safe", "Try again in a moment"],
        503: ["Database maintenance in progress", "Try again shortly", "Data will be available soon"],
    },
}

DEFAULT_ACTIONS = ["Try again later", "Contact support if problem persists"]

NON_RECOVERABLE_STATUSES = frozenset({403, 404, 422})
RECOVERABLE_STATUSES = frozenset({400, 401, 409, 429, 500, 502, 503, 504})

CLIENT_ERROR_TYPES = {
    400: "VALIDATION_ERROR",
    401: "AUTHENTICATION_ERROR",
    403: "AUTHORIZATION_ERROR",
    404: "NOT_FOUND_ERROR",
    409: "CONFLICT_ERROR",
    422: "VALIDATION_ERROR",
    429: "RATE_LIMIT_ERROR",
}

SERVER_ERROR_TYPES = {
    500: "INTERNAL_SERVER_ERROR",
    502: "BAD_GATEWAY_ERROR",
    503: "SERVICE_UNAVAILABLE_ERROR",
    504: "GATEWAY_TIMEOUT_ERROR",
}


def get_error_type(status_code: int) -> str:
    if 400 <= status_code < 500:
        return CLIENT_ERROR_TYPES.get(status_code, "CLIENT_ERROR")
    if status_code >= 500:
        return SERVER_ERROR_TYPES.get(status_code, "SERVER_ERROR")
    return "UNKNOWN_ERROR"


def category_for_status(status_code: int) -> ErrorCategory:
    """Fallback category for errors that do not carry one."""
    if status_code in (400, 422):
        return ErrorCategory.VALIDATION
    if status_code == 401:
        return ErrorCategory.AUTHENTICATION
    if status_code == 403:
        return ErrorCategory.AUTHORIZATION
    if status_code == 429:
        return ErrorCategory.SECURITY
    if status_code in (502, 504):
        return ErrorCategory.NETWORK
    return ErrorCategory.SYSTEM


def get_user_friendly_message(status_code: int, category: Optional[ErrorCategory] = None) -> str:
    if category in CATEGORY_MESSAGES and status_code in CATEGORY_MESSAGES[category]:
        return CATEGORY_MESSAGES[category][status_code]
    return STATUS_MESSAGES.get(status_code, DEFAULT_MESSAGE)


def is_recoverable_error(status_code: int, category: Optional[ErrorCategory] = None) -> bool:
    if status_code in NON_RECOVERABLE_STATUSES:
        return False
    if category is ErrorCategory.AUTHENTICATION and status_code == 401:
        return True
    if category is ErrorCategory.DATABASE and status_code >= 500:
        return True
    return status_code in RECOVERABLE_STATUSES


def get_suggested_actions(status_code: int, category: Optional[ErrorCategory] = None) -> List[str]:
    if category in CATEGORY_ACTIONS and status_code in CATEGORY_ACTIONS[category]:
        return list(CATEGORY_ACTIONS[category][status_code])
    return list(STATUS_ACTIONS.get(status_code, DEFAULT_ACTIONS))


def build_error_response(
    status_code: int,
    category: Optional[ErrorCategory] = None,
    *,
    original_message: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
    path: Optional[str] = None,
    method: Optional[str] = None,
    debug: bool = False,
) -> Dict[str, Any]:
    """
    Render the JSON body of an error response.

    Validation details are always returned since they only echo the
    client's own input; everything else is development mode only.
    """
    category = category or category_for_status(status_code)
    error: Dict[str, Any] = {
        "code": status_code,
        "type": get_error_type(status_code),
        "category": category.value,
        "message": get_user_friendly_message(status_code, category),
        "is_recoverable": is_recoverable_error(status_code, category),
        "suggested_actions": get_suggested_actions(status_code, category),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": request_id,
    }

    if category is ErrorCategory.VALIDATION and details:
        error["details"] = details

    if debug:
        error["original_message"] = original_message
        error["path"] = path
        error["method"] = method
        error["details"] = details or {}

    return {"success": False, "error": error}
