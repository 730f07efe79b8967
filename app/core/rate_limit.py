"""
Rate limiting implementation using Redis.

Fixed window: count requests per identifier in a time window. When Redis
is unavailable the check fails open.
"""

import logging
from dataclasses import dataclass

from fastapi import Request

from app.config import settings
from app.core.cache import RedisCache
from app.core.exceptions import RateLimitExceededError
from app.features.auth.dependencies import OptionalIdentity

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Configuration for a rate limit rule."""

    requests: int     # Max requests
    window: int       # Time window in seconds
    key_prefix: str   # Key prefix for namespacing


# Predefined rate limit tiers
RATE_LIMITS = {
    "default": RateLimitConfig(requests=60, window=60, key_prefix="rl"),
    "orgname_check": RateLimitConfig(requests=30, window=60, key_prefix="rl_orgname"),
    "onboarding": RateLimitConfig(requests=10, window=60, key_prefix="rl_onboarding"),
    "payments": RateLimitConfig(requests=20, window=60, key_prefix="rl_payments"),
}


async def check_rate_limit(
    cache: RedisCache | None,
    identifier: str,
    limit_type: str = "default",
) -> dict:
    """
    Check if identifier has exceeded rate limit.

    Args:
        cache: Shared Redis cache (None or unavailable = no limiting)
        identifier: Unique identifier (user_id or client ip)
        limit_type: Rate limit tier to apply

    Returns:
        Dict with rate limit info

    Raises:
        RateLimitExceededError: 429 if rate limit exceeded
    """
    config = RATE_LIMITS.get(limit_type, RATE_LIMITS["default"])
    unlimited = {"limit": config.requests, "remaining": config.requests, "reset": 0}

    if cache is None or not cache.available:
        return unlimited

    key = f"{identifier}:{limit_type}"

    try:
        current_count = await cache.increment(
            namespace=config.key_prefix,
            key=key,
            ttl=config.window,
        )
        ttl = await cache.get_ttl(config.key_prefix, key)
    except Exception as e:
        # If Redis is down, fail open (don't block requests)
        logger.error(f"Rate limit check error: {e}")
        return unlimited

    if current_count > config.requests:
        logger.warning(
            f"Rate limit exceeded: {identifier} ({limit_type}) "
            f"{current_count}/{config.requests}"
        )
        raise RateLimitExceededError(
            data={"limit": config.requests, "window": config.window, "retry_after": ttl},
            headers={
                "X-RateLimit-Limit": str(config.requests),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(ttl),
                "Retry-After": str(ttl),
            },
        )

    return {
        "limit": config.requests,
        "remaining": max(0, config.requests - current_count),
        "reset": ttl,
        "current": current_count,
    }


def rate_limit(limit_type: str = "default", by: str = "ip"):
    """
    Rate limiting dependency factory.

    Args:
        limit_type: Rate limit tier (default, orgname_check, onboarding, payments)
        by: How to identify the requester (user, ip)

    Usage:
        @router.get("/check-orgname/{orgname}")
        async def check(
            orgname: str,
            _: dict = Depends(rate_limit("orgname_check")),
        ):
            ...
    """
    async def dependency(request: Request, identity: OptionalIdentity) -> dict:
        if not settings.rate_limit_enabled:
            return {}

        # request.state.user_id is not bound yet when decorator dependencies run
        if by == "user" and identity is not None:
            identifier = f"user:{identity.user_id}"
        else:
            identifier = request.client.host if request.client else "unknown"

        cache = getattr(request.app.state, "redis", None)
        return await check_rate_limit(cache, identifier, limit_type)

    return dependency
