"""
Security utilities for identity-provider tokens and one-time secrets.

Provides:
- Identity-provider JWT validation (session tokens)
- Token minting for development and tests
- Verification token generation and constant-time comparison
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from app.config import settings

logger = logging.getLogger(__name__)

# 32 random bytes -> 64 hex characters (256 bits of entropy)
VERIFICATION_TOKEN_BYTES = 32


def generate_verification_token() -> str:
    """Random hex token for the email verification phase."""
    return secrets.token_hex(VERIFICATION_TOKEN_BYTES)


def tokens_match(expected: str | None, supplied: str) -> bool:
    """Constant-time comparison that treats a missing token as a mismatch."""
    if not expected:
        return False
    return secrets.compare_digest(expected.encode(), supplied.encode())


def create_access_token(
    subject: str,
    email: str | None = None,
    expires_delta: timedelta | None = None,
    extra_claims: dict[str, Any] | None = None,
) -> str:
    """
    Mint an identity token signed with the configured key.

    Production tokens come from the identity provider; this exists for local
    development and the test-suite, where the key is a shared HS256 secret.
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=30)

    now = datetime.now(timezone.utc)
    to_encode: dict[str, Any] = {
        "sub": str(subject),
        "iat": now,
        "exp": now + expires_delta,
    }
    if email:
        to_encode["email"] = email
    if settings.identity_issuer:
        to_encode["iss"] = settings.identity_issuer
    if extra_claims:
        to_encode.update(extra_claims)

    return jwt.encode(
        to_encode,
        settings.identity_jwt_key,
        algorithm=settings.identity_jwt_algorithms[0],
    )


def decode_token(token: str) -> dict[str, Any]:
    """
    Decode and validate an identity-provider session token.

    Args:
        token: JWT from the Authorization header

    Returns:
        Decoded token payload

    Raises:
        JWTError: If token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            settings.identity_jwt_key,
            algorithms=settings.identity_jwt_algorithms,
            issuer=settings.identity_issuer,
            options={"verify_aud": False},
        )
    except JWTError as e:
        logger.warning(f"JWT decode error: {e}")
        raise
