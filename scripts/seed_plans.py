"""
Seed the database with the default subscription plan catalog.
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import func, select

from app.config import settings
from app.core.cache import RedisCache
from app.core.database import DatabaseManager
from app.features.plans.service import PlanService
from app.models.plan import Plan
from app.schemas.plan import PlanCreate, PlanLimits

DEFAULT_PLANS = [
    PlanCreate(
        name="Starter",
        description="Perfect for small teams and startups",
        price=999,
        billing_cycle="monthly",
        features=[
            "Up to 10 users",
            "5 GB storage",
            "10,000 API calls/month",
            "Email support",
            "Basic analytics",
        ],
        limits=PlanLimits(users=10, storage_gb=5, api_calls=10_000, custom_domain=False),
    ),
    PlanCreate(
        name="Professional",
        description="For growing businesses that need more",
        price=2999,
        billing_cycle="monthly",
        features=[
            "Up to 50 users",
            "50 GB storage",
            "100,000 API calls/month",
            "Priority email support",
            "Advanced analytics",
            "Custom domain",
            "API access",
        ],
        limits=PlanLimits(users=50, storage_gb=50, api_calls=100_000, custom_domain=True),
    ),
    PlanCreate(
        name="Enterprise",
        description="For large organizations with advanced needs",
        price=9999,
        billing_cycle="monthly",
        features=[
            "Unlimited users",
            "500 GB storage",
            "Unlimited API calls",
            "24/7 phone & email support",
            "Custom domain",
            "SLA guarantee",
            "Dedicated account manager",
        ],
        limits=PlanLimits(users=999_999, storage_gb=500, api_calls=999_999_999, custom_domain=True),
    ),
    PlanCreate(
        name="Yearly Starter",
        description="Starter plan with yearly billing (2 months free)",
        price=9990,
        billing_cycle="yearly",
        features=[
            "Up to 10 users",
            "5 GB storage",
            "10,000 API calls/month",
            "Email support",
            "Save 2 months",
        ],
        limits=PlanLimits(users=10, storage_gb=5, api_calls=10_000, custom_domain=False),
    ),
    PlanCreate(
        name="Yearly Professional",
        description="Professional plan with yearly billing (2 months free)",
        price=29990,
        billing_cycle="yearly",
        features=[
            "Up to 50 users",
            "50 GB storage",
            "100,000 API calls/month",
            "Priority email support",
            "Custom domain",
            "Save 2 months",
        ],
        limits=PlanLimits(users=50, storage_gb=50, api_calls=100_000, custom_domain=True),
    ),
]


async def seed_plans() -> None:
    """Insert the default plans unless any plan already exists."""
    print("🌱 Seeding plans...")

    db = DatabaseManager(settings.database_url, pooled=False)
    db.init()
    await db.create_all()

    cache = RedisCache(str(settings.redis_url))
    try:
        await cache.init()
    except Exception as e:
        print(f"⚠️  Redis unavailable, cached plan catalog will expire on its own: {e}")
        await cache.close()

    try:
        async with db.session() as session:
            existing = (await session.execute(select(func.count()).select_from(Plan))).scalar_one()
            if existing:
                print(f"⚠️  {existing} plans already exist. Skipping seed.")
                return

            for data in DEFAULT_PLANS:
                session.add(Plan(**data.model_dump()))
            await session.commit()

            if await PlanService(session, cache).invalidate_cache():
                print("🧹 Cleared cached plan catalog")

            for data in DEFAULT_PLANS:
                print(f"✅ {data.name}: {data.currency} {data.price:.2f}/{data.billing_cycle}")
    finally:
        await cache.close()
        await db.close()

    print("🎉 Seeding complete!")


if __name__ == "__main__":
    asyncio.run(seed_plans())
