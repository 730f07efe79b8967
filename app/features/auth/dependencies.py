"""
Authentication dependencies for dependency injection.

Authentication is delegated to the identity provider: a request is
authenticated when it carries a valid provider session token.
"""

import logging
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from app.core.context import set_request_context
from app.core.exceptions import UnauthorizedError
from app.core.security import decode_token
from app.features.auth.client import IdentityProviderClient
from app.features.auth.schemas import Identity

logger = logging.getLogger(__name__)

# Security schemes
bearer_scheme = HTTPBearer(auto_error=False)


def _identity_from_token(token: str) -> Identity:
    try:
        payload = decode_token(token)
    except JWTError:
        raise UnauthorizedError("Invalid or expired token")

    user_id: str | None = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Invalid token payload")

    return Identity(user_id=user_id, email=payload.get("email"), claims=payload)


def _bind(request: Request, identity: Identity) -> Identity:
    request.state.user_id = identity.user_id
    set_request_context(user_id=identity.user_id)
    return identity


async def get_current_identity(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Identity:
    """Require a valid identity-provider session token."""
    if not credentials:
        raise UnauthorizedError("No token provided")

    identity = _identity_from_token(credentials.credentials)
    logger.debug(f"Authenticated identity: {identity.user_id}")
    return _bind(request, identity)


async def get_optional_identity(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Identity | None:
    """Attach the identity when a valid token is present; never fail."""
    if not credentials:
        return None

    try:
        identity = _identity_from_token(credentials.credentials)
    except UnauthorizedError:
        logger.debug("Optional authentication failed")
        return None

    return _bind(request, identity)


def get_identity_client(request: Request) -> IdentityProviderClient:
    return request.app.state.identity_client


# Type aliases for cleaner code
CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
OptionalIdentity = Annotated[Identity | None, Depends(get_optional_identity)]
IdentityClient = Annotated[IdentityProviderClient, Depends(get_identity_client)]
