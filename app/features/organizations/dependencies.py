"""
Organization service wiring.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.orgname_cache import OrgnameCache
from app.features.organizations.service import OrganizationService


def get_orgname_cache(request: Request) -> OrgnameCache:
    return request.app.state.orgname_cache


def get_organization_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    cache: Annotated[OrgnameCache, Depends(get_orgname_cache)],
) -> OrganizationService:
    return OrganizationService(db, cache)


OrganizationServiceDep = Annotated[OrganizationService, Depends(get_organization_service)]
