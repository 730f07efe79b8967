"""
Subdomain-based tenant resolution.

A request to ``acme.example.com`` (or ``acme.localhost:3000`` in development)
is scoped to the organization whose orgname is ``acme``. Unknown or
inactive orgnames are answered with 404 before any router runs.
"""

from dataclasses import dataclass
from typing import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import settings
from app.core.context import set_request_context
from app.core.exceptions import NotFoundError, error_response
from app.core.metrics import subdomain_resolutions_total
from app.core.orgname import is_reserved
from app.features.organizations.repository import OrganizationRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TenantContext:
    """The resolved organization attached to ``request.state.organization``."""

    id: str
    orgname: str
    owner_id: str
    has_active_subscription: bool


def extract_subdomain(host: str | None) -> str | None:
    """
    Extract the tenant label from a Host header.

    >>> extract_subdomain("acme.localhost:3000")
    'acme'
    >>> extract_subdomain("acme.example.com")
    'acme'
    >>> extract_subdomain("example.com") is None
    True
    """
    if not host:
        return None

    hostname = host.split(":", 1)[0].strip().lower().rstrip(".")
    labels = [label for label in hostname.split(".") if label]

    if labels and labels[-1] == "localhost":
        if len(labels) < 2:
            return None
    elif len(labels) < 3:
        return None

    candidate = labels[0]
    if candidate == "www":
        return None
    return candidate


class SubdomainResolverMiddleware(BaseHTTPMiddleware):
    """
    Attach the tenant context for subdomain requests.

    Sets ``request.state.is_subdomain`` and ``request.state.organization``
    on every request. Tenant lookups consult the process-local orgname
    cache first and only ever read from the store.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.is_subdomain = False
        request.state.organization = None

        path = request.url.path
        if any(path == exempt or path.startswith(exempt + "/") for exempt in settings.subdomain_exempt_paths):
            subdomain_resolutions_total.labels(outcome="exempt").inc()
            return await call_next(request)

        orgname = extract_subdomain(request.headers.get("host"))
        if orgname is None or is_reserved(orgname):
            subdomain_resolutions_total.labels(outcome="not_tenant_scoped").inc()
            return await call_next(request)

        cache = request.app.state.orgname_cache
        if cache.get(orgname) is False:
            subdomain_resolutions_total.labels(outcome="cache_not_found").inc()
            logger.info("subdomain_not_found", orgname=orgname, source="cache")
            return error_response(NotFoundError("Organization not found"), path)

        async with request.app.state.db.session() as session:
            organization = await OrganizationRepository(session).get_active_by_orgname(orgname)
            tenant = None
            if organization is not None:
                tenant = TenantContext(
                    id=organization.id,
                    orgname=organization.orgname,
                    owner_id=organization.owner_id,
                    has_active_subscription=organization.has_active_subscription,
                )

        if tenant is None:
            subdomain_resolutions_total.labels(outcome="not_found").inc()
            logger.info("subdomain_not_found", orgname=orgname, source="store")
            return error_response(NotFoundError("Organization not found"), path)

        cache.set(orgname, True)

        request.state.is_subdomain = True
        request.state.organization = tenant
        set_request_context(organization_id=tenant.id)

        subdomain_resolutions_total.labels(outcome="resolved").inc()
        logger.debug("subdomain_resolved", orgname=orgname, organization_id=tenant.id)
        return await call_next(request)
