"""
Custom exception hierarchy for the application.

Every operational error carries its HTTP status code. A single boundary
translator (see app.main) renders them as:

    {"status": "error", "message": ..., "statusCode": ..., "timestamp": ..., "path": ...}
"""

from datetime import datetime, timezone
from typing import Any

from fastapi import status
from fastapi.responses import JSONResponse


class AppException(Exception):
    """Base exception for all application exceptions."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal Server Error"

    def __init__(
        self,
        message: str | None = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.message = message or self.default_message
        self.data = data
        self.headers = headers
        super().__init__(self.message)


class NotFoundError(AppException):
    """Raised when a requested resource doesn't exist."""
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class BadRequestError(AppException):
    """Raised when a request violates a precondition."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"


class ValidationFailedError(AppException):
    """Raised when request input fails schema validation."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Validation failed"


class UnauthorizedError(AppException):
    """Raised when authentication fails."""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"

    def __init__(self, message: str | None = None, data: dict[str, Any] | None = None):
        super().__init__(message, data, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(AppException):
    """Raised when the caller lacks rights on the resource."""
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class ConflictError(AppException):
    """Raised when a unique value (email, orgname) is already taken."""
    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource conflict"


class PaymentRequiredError(AppException):
    """Raised by the subscription gate for tenants without an active plan."""
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_message = "Active subscription required"


class LimitExceededError(AppException):
    """Raised when an owner exceeds a resource quota."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Limit exceeded"


class RateLimitExceededError(AppException):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests, please try again later."


def error_body(
    message: str,
    status_code: int,
    path: str,
    data: dict[str, Any] | None = None,
    errors: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Build the structured error payload shared by every error response."""
    body: dict[str, Any] = {
        "status": "error",
        "message": message,
        "statusCode": status_code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": path,
    }
    if data is not None:
        body["data"] = data
    if errors is not None:
        body["errors"] = errors
    return body


def error_response(exc: AppException, path: str) -> JSONResponse:
    """Render an application exception as a JSON response."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.status_code, path, data=exc.data),
        headers=exc.headers,
    )
