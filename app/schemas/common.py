"""
Common/shared Pydantic schemas.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# Base configuration for all schemas
class BaseSchema(BaseModel):
    """
    Base schema with common configuration.

    All schemas should inherit from this.
    """

    model_config = ConfigDict(
        from_attributes=True,  # Allow ORM mode (SQLAlchemy objects)
        populate_by_name=True,  # Allow population by field name or alias
        str_strip_whitespace=True,  # Strip whitespace from strings
        validate_assignment=True,  # Validate on assignment, not just creation
    )


class MessageResponse(BaseModel):
    """Simple message response."""
    message: str


class ErrorDetail(BaseModel):
    """Field-level validation error."""
    field: str | None = None
    message: str


class ErrorResponse(BaseModel):
    """Standardized error response, as rendered by app.core.exceptions.error_body."""

    model_config = ConfigDict(populate_by_name=True)

    status: str = "error"
    message: str
    status_code: int = Field(..., alias="statusCode")
    timestamp: datetime
    path: str
    data: dict[str, Any] | None = None
    errors: list[ErrorDetail] | None = None
