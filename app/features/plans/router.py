"""
Subscription plan endpoints.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import RedisCache, get_redis_cache
from app.core.database import get_db
from app.features.plans.service import PlanService
from app.schemas.plan import PlanRead

router = APIRouter(prefix="/plans", tags=["Plans"])


def get_plan_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    cache: Annotated[RedisCache, Depends(get_redis_cache)],
) -> PlanService:
    return PlanService(db, cache)


PlanServiceDep = Annotated[PlanService, Depends(get_plan_service)]


@router.get("", response_model=list[PlanRead])
async def list_plans(service: PlanServiceDep) -> list[PlanRead]:
    """List active plans sorted by price."""
    return await service.list_active()


@router.get("/{plan_id}", response_model=PlanRead)
async def get_plan(plan_id: str, service: PlanServiceDep) -> PlanRead:
    plan = await service.get(plan_id)
    return PlanRead.model_validate(plan)
