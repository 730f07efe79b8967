"""
API v1 router aggregator.

All v1 routes are registered here. Tenant-scoped ``/site`` routes are
mounted at the root by the application factory.
"""

from fastapi import APIRouter

from app.features.organizations.router import router as organizations_router
from app.features.payments.router import router as payments_router
from app.features.plans.router import router as plans_router

# V1 API router
v1_router = APIRouter(prefix="/v1")

# Register all feature routers
v1_router.include_router(organizations_router)
v1_router.include_router(plans_router)
v1_router.include_router(payments_router)
