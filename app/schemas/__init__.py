"""
Pydantic schemas package.
"""

from app.schemas.common import (
    BaseSchema,
    ErrorDetail,
    ErrorResponse,
    MessageResponse,
)
from app.schemas.organization import (
    CompanyAddress,
    OrganizationCreate,
    OrganizationMetadata,
    OrganizationPublic,
    OrganizationRead,
    OrganizationUpdate,
    OrgnameAvailability,
    Phase1Response,
    SetOrgnameRequest,
    SubscriptionRead,
    SubscriptionStatusResponse,
    VerifyEmailRequest,
)
from app.schemas.plan import PlanCreate, PlanLimits, PlanRead

__all__ = [
    # Common
    "BaseSchema",
    "MessageResponse",
    "ErrorDetail",
    "ErrorResponse",
    # Organization
    "CompanyAddress",
    "OrganizationCreate",
    "OrganizationMetadata",
    "OrganizationPublic",
    "OrganizationRead",
    "OrganizationUpdate",
    "OrgnameAvailability",
    "Phase1Response",
    "SetOrgnameRequest",
    "SubscriptionRead",
    "SubscriptionStatusResponse",
    "VerifyEmailRequest",
    # Plan
    "PlanCreate",
    "PlanLimits",
    "PlanRead",
]
