"""Caller identity and the identity provider port.

An ``Identity`` is an explicit value handed to every entitlement and
lifecycle call. Nothing in the engine reads "the current user" from ambient
state.
"""

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from jose import JWTError

from coursehub.config.settings import Settings, get_settings
from coursehub.core.errors import UnauthenticatedError

from .permissions import UserRole, parse_role
from .security import decode_access_token


@dataclass(frozen=True)
class Identity:
    """Who is calling. ``user_id`` is None only for anonymous callers."""

    user_id: UUID | None
    role: UserRole = UserRole.NONE

    @classmethod
    def anonymous(cls) -> "Identity":
        return cls(user_id=None, role=UserRole.NONE)

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None


class IdentityProvider(Protocol):
    """Verifies a credential and returns the caller identity."""

    async def verify(self, credential: str) -> Identity:
        """Return the identity or raise UnauthenticatedError."""
        ...


class JWTIdentityProvider:
    """Identity provider backed by signed JWT access tokens."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    async def verify(self, credential: str) -> Identity:
        if not credential:
            raise UnauthenticatedError("Missing credential")

        try:
            payload = decode_access_token(credential, self.settings)
            user_id = UUID(str(payload["sub"]))
        except (JWTError, ValueError) as e:
            raise UnauthenticatedError("Invalid or expired token") from e

        role = parse_role(payload.get("role"))
        if role == UserRole.NONE:
            # An authenticated caller with no usable role is a student
            role = UserRole.STUDENT

        return Identity(user_id=user_id, role=role)
