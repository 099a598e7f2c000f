"""FastAPI dependencies for caller identity.

Provides:
- Bearer token extraction
- ``CurrentIdentity``: authenticated caller (401 otherwise)
- ``OptionalIdentity``: authenticated caller or the anonymous identity
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from coursehub.core.context import set_user_id
from coursehub.core.errors import UnauthenticatedError

from .identity import Identity, IdentityProvider


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


def get_identity_provider(request: Request) -> IdentityProvider:
    """Get identity provider from app state."""
    provider = getattr(request.app.state, "identity_provider", None)
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Identity provider not available",
        )
    return provider


async def get_optional_identity(
    request: Request,
    token: Annotated[str | None, Depends(get_token_from_header)],
    provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
) -> Identity:
    """Resolve the caller, falling back to anonymous when no token is sent.

    A token that is present but invalid is still rejected with 401.
    """
    if not token:
        return Identity.anonymous()

    try:
        identity = await provider.verify(token)
    except UnauthenticatedError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    # Request state reaches the logging middleware; context vars do not
    request.state.user_id = identity.user_id
    set_user_id(identity.user_id)
    return identity


async def get_current_identity(
    identity: Annotated[Identity, Depends(get_optional_identity)],
) -> Identity:
    """Require an authenticated caller."""
    if identity.is_anonymous:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token not provided",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


OptionalIdentity = Annotated[Identity, Depends(get_optional_identity)]
CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
