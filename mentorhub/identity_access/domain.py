"""
Identity domain: roles and their parsing.

Why:
- Centralize the closed set of roles so the resolver, the web layer and the
  admin tooling cannot drift apart.
- Role strings arrive from the profile store (and, in corrupted cases, from
  anywhere). Parsing is total and fails closed to the lowest privilege.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class Role(str, Enum):
    """Stored classification of a profile."""

    ADMIN = "admin"
    MENTOR = "mentor"
    MENTEE = "mentee"


# Lowest-privilege role; used whenever a role is unknown or unreadable.
FALLBACK_ROLE = Role.MENTEE

# Roles an admin may preview as. Immutable to prevent accidental mutation.
PREVIEW_ROLES = frozenset({Role.MENTOR, Role.MENTEE})

ALLOWED_ROLES = frozenset(role.value for role in Role)


def parse_role(raw: Any) -> Role:
    """Map any raw value to a `Role`, failing closed to `mentee`.

    Accepts `Role` members and strings (case and surrounding whitespace are
    ignored). Everything else, including None and unknown strings, yields the
    fallback role. Never raises.
    """
    if isinstance(raw, Role):
        return raw
    if not isinstance(raw, str):
        return FALLBACK_ROLE
    try:
        return Role(raw.strip().lower())
    except ValueError:
        return FALLBACK_ROLE


def parse_optional_role(raw: Any) -> Role | None:
    """Like `parse_role` but returns None for unknown values instead of a fallback.

    Used where "unknown" must be a no-op (e.g. preview requests) rather than a
    downgrade.
    """
    if isinstance(raw, Role):
        return raw
    if not isinstance(raw, str):
        return None
    try:
        return Role(raw.strip().lower())
    except ValueError:
        return None


__all__ = [
    "Role",
    "FALLBACK_ROLE",
    "PREVIEW_ROLES",
    "ALLOWED_ROLES",
    "parse_role",
    "parse_optional_role",
]
