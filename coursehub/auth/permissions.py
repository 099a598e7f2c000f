"""Marketplace roles.

- ADMIN: Full access to every course and dashboard
- INSTRUCTOR: Owns courses; full access to their own courses
- STUDENT: Access through a paid enrollment
- NONE: Anonymous caller (no credential presented)
"""

from enum import Enum


class UserRole(str, Enum):
    """Caller roles."""

    NONE = "none"
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


def parse_role(role: UserRole | str | None) -> UserRole:
    """Coerce a claim value into a UserRole.

    Unknown or missing values collapse to ``NONE`` so that a malformed claim
    can never widen access.
    """
    if isinstance(role, UserRole):
        return role
    if role is None:
        return UserRole.NONE
    try:
        return UserRole(role.lower())
    except ValueError:
        return UserRole.NONE


def is_admin(role: UserRole | str | None) -> bool:
    """Check if role is ADMIN."""
    return parse_role(role) == UserRole.ADMIN


def is_instructor(role: UserRole | str | None) -> bool:
    """Check if role is INSTRUCTOR."""
    return parse_role(role) == UserRole.INSTRUCTOR
