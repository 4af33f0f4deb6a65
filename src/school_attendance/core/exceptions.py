from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    """Base exception for business rule violations.

    Each subclass carries the HTTP status and error code the API layer
    reports for it.
    """

    status_code = 400
    error_code = "DOMAIN_ERROR"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    status_code = 400
    error_code = "VALIDATION_ERROR"


class InvalidSessionError(ValidationError):
    """Raised when a session label is not configured for a class/subject."""

    error_code = "INVALID_SESSION"


class AuthenticationError(DomainError):
    """Raised when login credentials or tokens are invalid."""

    status_code = 401
    error_code = "AUTHENTICATION_ERROR"


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""

    status_code = 403
    error_code = "AUTHORIZATION_ERROR"


class AttendanceAuthorizationError(AuthorizationError):
    error_code = "ATTENDANCE_AUTHORIZATION_ERROR"


class NotFoundError(DomainError):
    status_code = 404
    error_code = "NOT_FOUND"


class StudentNotEnrolledError(NotFoundError):
    """Raised when a student does not belong to the class being marked."""

    error_code = "STUDENT_NOT_ENROLLED"


class ConflictError(DomainError):
    status_code = 409
    error_code = "CONFLICT"


class AttendanceAlreadyMarkedError(ConflictError):
    error_code = "ATTENDANCE_ALREADY_MARKED"


class BulkOperationError(DomainError):
    """Raised when a bulk operation could not complete any of its items."""

    status_code = 207
    error_code = "BULK_OPERATION_ERROR"

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        success_count: int = 0,
        failure_count: int = 0,
        failures: Optional[list] = None,
    ):
        super().__init__(
            message,
            details={
                "operation": operation,
                "successCount": success_count,
                "failureCount": failure_count,
                "failures": list(failures or []),
            },
        )
        self.operation = operation
        self.success_count = success_count
        self.failure_count = failure_count
        self.failures = list(failures or [])


class DatabaseError(DomainError):
    """Wraps unexpected storage failures."""

    status_code = 500
    error_code = "DATABASE_ERROR"
