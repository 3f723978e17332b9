"""
HS256 access tokens.

Roles are baked into the token at login. Protected routes authorise from
these claims alone, so a role change takes effect at the next login.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from meetup.config import Settings, get_settings


def create_access_token(
    user_id: int,
    email: str,
    roles: Iterable[str],
    settings: Settings | None = None,
) -> str:
    """
    Create an access token for a signed-in user.

    Args:
        user_id: The user's database ID.
        email: The account email, used to match anonymous-style registrations.
        roles: Role tags held by the user at issuance time.
        settings: The application's settings; the process-wide ones when omitted.

    Returns:
        Encoded JWT string.
    """
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "email": email,
        "roles": sorted(set(roles)),
        "iat": now,
        "exp": now + timedelta(hours=settings.jwt_access_token_expire_hours),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str, settings: Settings | None = None) -> dict[str, Any]:
    """
    Verify and decode an access token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, issued for a
            different audience, or not an access token.
    """
    settings = settings or get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type") != "access":
        msg = f"Expected token type 'access', got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)

    return payload
