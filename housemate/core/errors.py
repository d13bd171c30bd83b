"""Typed errors and error classification for housemate.

Every failure a repository can surface is one of the ``HousemateError``
subclasses below. Each carries an error code, an HTTP status for the
boundary layer and a severity for logging.
"""

from enum import Enum

from pydantic import BaseModel


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_FORBIDDEN = "ERR_FORBIDDEN"
    ERR_CONFLICT = "ERR_CONFLICT"
    ERR_INVALID_INPUT = "ERR_INVALID_INPUT"
    ERR_UPSTREAM = "ERR_UPSTREAM"
    ERR_STORE = "ERR_STORE"

    # Generic errors
    ERR_UNKNOWN = "ERR_UNKNOWN"


class HousemateError(Exception):
    """Base exception for all housemate errors."""

    code: str = ErrorCode.ERR_UNKNOWN
    http_status: int = 500
    severity: ErrorSeverity = ErrorSeverity.MEDIUM

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(HousemateError):
    """A user, group, task or invite does not exist."""

    code = ErrorCode.ERR_NOT_FOUND
    http_status = 404
    severity = ErrorSeverity.LOW


class ForbiddenError(HousemateError):
    """The acting user lacks the membership the operation requires."""

    code = ErrorCode.ERR_FORBIDDEN
    http_status = 403
    severity = ErrorSeverity.MEDIUM


class ConflictError(HousemateError):
    """The user is already a member of the group."""

    code = ErrorCode.ERR_CONFLICT
    http_status = 409
    severity = ErrorSeverity.LOW


class InvalidInputError(HousemateError):
    """A required field is missing or blank."""

    code = ErrorCode.ERR_INVALID_INPUT
    http_status = 400
    severity = ErrorSeverity.LOW

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.fields = fields or []


class UpstreamError(HousemateError):
    """An external collaborator failed in transport or returned garbage."""

    code = ErrorCode.ERR_UPSTREAM
    http_status = 502
    severity = ErrorSeverity.HIGH


class StoreError(HousemateError):
    """A store operation failed."""

    code = ErrorCode.ERR_STORE
    http_status = 500
    severity = ErrorSeverity.CRITICAL

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    status: int
    severity: ErrorSeverity


def classify_error_with_response(exception: Exception) -> ErrorResponse:
    """Classify an error and return a structured response.

    Typed housemate errors keep their own message. Store failures and anything
    unclassified get a generic message so internal details are not leaked.

    Args:
        exception: The exception raised during execution

    Returns:
        ErrorResponse with code, message, status, and severity
    """
    if isinstance(exception, StoreError):
        return ErrorResponse(
            code=exception.code,
            message="The data store could not complete the request.",
            status=exception.http_status,
            severity=exception.severity,
        )

    if isinstance(exception, HousemateError):
        return ErrorResponse(
            code=exception.code,
            message=exception.message,
            status=exception.http_status,
            severity=exception.severity,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        status=500,
        severity=ErrorSeverity.MEDIUM,
    )
