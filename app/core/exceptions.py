"""
Custom Exceptions for the Attendance Backend

This module defines custom exception classes used throughout the application
for better error handling and debugging. Every exception carries an HTTP
status code and an error category used when rendering user-facing responses.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCategory(str, Enum):
    """Broad error families used for user-facing translation"""
    VALIDATION = "VALIDATION"
    AUTHENTICATION = "AUTHENTICATION"
    AUTHORIZATION = "AUTHORIZATION"
    DATABASE = "DATABASE"
    NETWORK = "NETWORK"
    SECURITY = "SECURITY"
    SYSTEM = "SYSTEM"


class ErrorCode(str, Enum):
    """Standard error codes for the application"""
    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"

    # Authentication
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_INVALID = "TOKEN_INVALID"

    # Database errors
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"

    # Security errors
    SECURITY_VIOLATION = "SECURITY_VIOLATION"
    SUSPICIOUS_REQUEST = "SUSPICIOUS_REQUEST"

    # Performance errors
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"


class BaseAppException(Exception):
    """
    Base exception class for all application exceptions.

    Provides consistent error handling across the application with
    structured error information.
    """

    category: ErrorCategory = ErrorCategory.SYSTEM
    security_event: bool = False

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format"""
        return {
            "error": {
                "message": self.message,
                "code": self.error_code.value,
                "category": self.category.value,
                "details": self.details,
                "type": self.__class__.__name__
            }
        }

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}', error_code='{self.error_code.value}')"


# ========================================
# General Application Exceptions
# ========================================

class BadRequestError(BaseAppException):
    """Exception raised for malformed requests"""

    category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str = "Invalid request",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, ErrorCode.INVALID_REQUEST, details, 400)


# ========================================
# Authentication Exceptions
# ========================================

class AuthenticationError(BaseAppException):
    """Exception raised when authentication fails"""

    category = ErrorCategory.AUTHENTICATION

    def __init__(
        self,
        message: str = "Authentication failed",
        error_code: ErrorCode = ErrorCode.AUTHENTICATION_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details, 401)


class TokenError(AuthenticationError):
    """Exception raised for token-related authentication errors"""

    def __init__(
        self,
        message: str = "Invalid token",
        error_code: ErrorCode = ErrorCode.TOKEN_INVALID,
        token_type: str = "access"
    ):
        details = {"token_type": token_type}
        super().__init__(message, error_code, details)


class TokenExpiredError(TokenError):
    """Exception raised when a token has expired"""

    def __init__(
        self,
        message: str = "Token has expired",
        token_type: str = "access"
    ):
        super().__init__(message, ErrorCode.TOKEN_EXPIRED, token_type)


class InvalidTokenError(TokenError):
    """Exception raised when token is invalid"""

    def __init__(
        self,
        message: str = "Invalid token",
        token_type: str = "access",
        reason: Optional[str] = None
    ):
        super().__init__(message, ErrorCode.TOKEN_INVALID, token_type)
        if reason:
            self.details["reason"] = reason


# ========================================
# Database Exceptions
# ========================================

class DatabaseError(BaseAppException):
    """Exception raised when database operations fail"""

    category = ErrorCategory.DATABASE

    def __init__(
        self,
        message: str = "Database operation failed",
        operation: Optional[str] = None,
        table: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.DATABASE_ERROR,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        merged = {
            "operation": operation,
            "table": table
        }
        merged.update(details or {})
        super().__init__(message, error_code, merged, status_code)


class DatabaseConnectionError(DatabaseError):
    """Exception raised when database connection fails"""

    def __init__(
        self,
        message: str = "Database connection failed",
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message,
            operation=operation,
            error_code=ErrorCode.CONNECTION_ERROR,
            status_code=503,
            details=details
        )


# ========================================
# Security Exceptions
# ========================================

class SecurityViolationError(BaseAppException):
    """Exception raised when input fails a security check"""

    category = ErrorCategory.SECURITY
    security_event = True

    def __init__(
        self,
        message: str = "Security validation failed",
        violations: Optional[List[str]] = None,
        error_code: ErrorCode = ErrorCode.SECURITY_VIOLATION,
        status_code: int = 400
    ):
        details = {"violations": violations} if violations else {}
        super().__init__(message, error_code, details, status_code)


class SuspiciousRequestError(SecurityViolationError):
    """Exception raised when a request payload matches an attack signature"""

    def __init__(
        self,
        message: str = "Suspicious activity detected",
        patterns: Optional[List[str]] = None
    ):
        super().__init__(message, patterns, ErrorCode.SUSPICIOUS_REQUEST, 403)


# ========================================
# Performance Exceptions
# ========================================

class OperationTimeoutError(BaseAppException):
    """Exception raised when operations timeout"""

    category = ErrorCategory.NETWORK

    def __init__(
        self,
        message: str = "Operation timed out",
        timeout_seconds: Optional[float] = None,
        operation: Optional[str] = None
    ):
        details = {
            "timeout_seconds": timeout_seconds,
            "operation": operation
        }
        super().__init__(message, ErrorCode.TIMEOUT_ERROR, details, 504)


class RateLimitExceededError(BaseAppException):
    """Exception raised when rate limit is exceeded"""

    category = ErrorCategory.SECURITY
    security_event = True

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        limit: Optional[int] = None,
        reset_time: Optional[int] = None,
        identifier: Optional[str] = None,
        total_hits: Optional[int] = None
    ):
        details = {
            "limit": limit,
            "reset_time": reset_time,
            "identifier": identifier,
            "total_hits": total_hits
        }
        super().__init__(message, ErrorCode.RATE_LIMIT_EXCEEDED, details, 429)


__all__ = [
    'ErrorCategory',
    'ErrorCode',
    'BaseAppException',
    'BadRequestError',
    'AuthenticationError',
    'TokenError',
    'TokenExpiredError',
    'InvalidTokenError',
    'DatabaseError',
    'DatabaseConnectionError',
    'SecurityViolationError',
    'SuspiciousRequestError',
    'OperationTimeoutError',
    'RateLimitExceededError',
]
