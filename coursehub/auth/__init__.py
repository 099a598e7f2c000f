"""Caller identity module.

Provides:
- UserRole (none, student, instructor, admin)
- Identity value passed explicitly into engine calls
- IdentityProvider port with a JWT implementation
"""

from .identity import Identity, IdentityProvider, JWTIdentityProvider
from .permissions import UserRole, parse_role


__all__ = [
    "Identity",
    "IdentityProvider",
    "JWTIdentityProvider",
    "UserRole",
    "parse_role",
]
