"""
Identity schemas.
"""

from typing import Any

from pydantic import BaseModel, Field


class Identity(BaseModel):
    """Caller identity established from a verified identity-provider token."""

    user_id: str = Field(..., description="Identity-provider subject")
    email: str | None = None
    claims: dict[str, Any] = Field(default_factory=dict)
