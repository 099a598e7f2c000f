"""JWT helpers for the identity provider.

Access tokens carry ``sub`` (user id) and ``role`` claims. Token issuance is
the identity provider's job; ``create_access_token`` exists for local
development and tests.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from coursehub.config.settings import Settings, get_settings


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
    settings: Settings | None = None,
) -> str:
    """Create a signed JWT access token.

    Args:
        data: Payload data (typically {"sub": user_id, "role": role})
        expires_delta: Token lifetime (default from settings)
        settings: Settings override

    Returns:
        Encoded JWT string
    """
    settings = settings or get_settings()

    now = datetime.now(UTC)
    to_encode = data.copy()
    to_encode.update(
        {
            "exp": now
            + (
                expires_delta
                or timedelta(minutes=settings.auth_access_token_expire_minutes)
            ),
            "iat": now,
            "type": "access",
        }
    )

    return jwt.encode(
        to_encode,
        settings.auth_secret_key,
        algorithm=settings.auth_algorithm,
    )


def decode_access_token(token: str, settings: Settings | None = None) -> dict[str, Any]:
    """Decode and validate an access token.

    Validates signature, expiration and ``type == "access"``.

    Raises:
        JWTError: If token is invalid, expired, or wrong type
    """
    settings = settings or get_settings()

    payload = jwt.decode(
        token,
        settings.auth_secret_key,
        algorithms=[settings.auth_algorithm],
    )

    if payload.get("type") != "access":
        msg = "Invalid token type: expected 'access'"
        raise JWTError(msg)

    if "sub" not in payload:
        msg = "Access token missing sub claim"
        raise JWTError(msg)

    return payload
