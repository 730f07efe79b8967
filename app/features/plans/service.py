"""
Plan catalog reads.

The active catalog changes only when plans are seeded or toggled, so it is
served from Redis for ``cache_plans_ttl`` seconds.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.cache import RedisCache
from app.core.exceptions import NotFoundError
from app.models.plan import Plan
from app.schemas.plan import PlanRead

logger = logging.getLogger(__name__)

PLANS_NAMESPACE = "plans"
ACTIVE_PLANS_KEY = "active"


class PlanService:
    def __init__(self, session: AsyncSession, cache: RedisCache | None = None) -> None:
        self.session = session
        self.cache = cache

    async def list_active(self) -> list[PlanRead]:
        """Active plans, cheapest first."""
        if self.cache is not None and self.cache.available:
            cached = await self.cache.get(PLANS_NAMESPACE, ACTIVE_PLANS_KEY)
            if cached is not None:
                logger.debug("Cache hit: plans:active")
                return [PlanRead.model_validate(item) for item in cached]

        result = await self.session.execute(
            select(Plan).where(Plan.is_active.is_(True)).order_by(Plan.price.asc())
        )
        plans = [PlanRead.model_validate(plan) for plan in result.scalars().all()]

        if self.cache is not None and self.cache.available:
            await self.cache.set(
                PLANS_NAMESPACE,
                ACTIVE_PLANS_KEY,
                [plan.model_dump(mode="json") for plan in plans],
                ttl=settings.cache_plans_ttl,
            )

        return plans

    async def invalidate_cache(self) -> bool:
        """Drop the cached active catalog after plans are added or toggled."""
        if self.cache is None or not self.cache.available:
            return False
        return await self.cache.delete(PLANS_NAMESPACE, ACTIVE_PLANS_KEY)

    async def get(self, plan_id: str) -> Plan:
        plan = await self.session.get(Plan, plan_id)
        if plan is None:
            raise NotFoundError("Plan not found")
        return plan

    async def get_active(self, plan_id: str) -> Plan:
        """Plans that can still be purchased."""
        plan = await self.get(plan_id)
        if not plan.is_active:
            raise NotFoundError("Plan not found")
        return plan
