"""
Orgname rules shared by onboarding and subdomain resolution.
"""

import re

from app.config import settings

ORGNAME_MIN_LENGTH = 3
ORGNAME_MAX_LENGTH = 50
ORGNAME_PATTERN = re.compile(r"^[a-z0-9-]+$")


def normalize_orgname(orgname: str) -> str:
    """Orgnames compare and store case-insensitively."""
    return orgname.strip().lower()


def orgname_format_error(orgname: str) -> str | None:
    """
    Check a normalized orgname against the format rules.

    Returns:
        A user-facing message describing the first violated rule, or None
    """
    if len(orgname) < ORGNAME_MIN_LENGTH:
        return f"Orgname must be at least {ORGNAME_MIN_LENGTH} characters"

    if len(orgname) > ORGNAME_MAX_LENGTH:
        return f"Orgname must be at most {ORGNAME_MAX_LENGTH} characters"

    if not ORGNAME_PATTERN.fullmatch(orgname):
        return "Orgname can only contain lowercase letters, numbers, and hyphens"

    if orgname.startswith("-") or orgname.endswith("-"):
        return "Orgname cannot start or end with a hyphen"

    return None


def is_reserved(orgname: str) -> bool:
    return orgname in settings.reserved_orgnames
