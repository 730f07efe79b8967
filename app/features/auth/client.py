"""
Identity provider API client.

Only the user-profile lookup is needed: phase 1 falls back to the owner's
primary email address when the session token carries no email claim.
"""

import httpx
import structlog

from app.config import Settings

logger = structlog.get_logger(__name__)


class IdentityProviderClient:
    """Thin async wrapper over the identity provider's backend API."""

    def __init__(
        self,
        config: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = config.identity_api_url.rstrip("/")
        self.secret_key = config.identity_secret_key
        self.timeout = config.identity_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def is_configured(self) -> bool:
        """Check if backend API credentials are configured"""
        return bool(self.secret_key)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Authorization": f"Bearer {self.secret_key}"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_user(self, user_id: str) -> dict:
        """
        Fetch a user profile.

        Raises:
            httpx.HTTPStatusError: on non-2xx responses
        """
        response = await self.client.get(f"/users/{user_id}")
        response.raise_for_status()
        return response.json()

    async def fetch_primary_email(self, user_id: str) -> str | None:
        """
        Resolve the user's primary email address.

        Returns None when the API is not configured or the profile has no
        email address.
        """
        if not self.is_configured():
            return None

        user = await self.fetch_user(user_id)
        addresses = user.get("email_addresses") or []
        primary_id = user.get("primary_email_address_id")

        primary = next(
            (address for address in addresses if address.get("id") == primary_id),
            addresses[0] if addresses else None,
        )
        if primary is None:
            logger.warning("identity_user_without_email", user_id=user_id)
            return None

        return primary.get("email_address")
