"""FastAPI authentication dependencies.

The caller's identity is rebuilt from token claims on every request; the
database is never consulted here.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from meetup.auth.jwt import verify_token
from meetup.config import Settings
from meetup.dependencies import get_app_settings

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    id: int
    email: str
    roles: frozenset[str] = field(default_factory=frozenset)

    def has_role(self, *roles: str) -> bool:
        return any(role in self.roles for role in roles)


def _user_from_token(token: str, settings: Settings) -> CurrentUser:
    try:
        payload = verify_token(token, settings)
        user_id = int(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        raise HTTPException(
            status_code=401,
            detail=str(e) or "Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
    roles = payload.get("roles") or []
    return CurrentUser(id=user_id, email=str(payload.get("email", "")), roles=frozenset(roles))


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    settings: Settings = Depends(get_app_settings),
) -> CurrentUser:
    """Require a valid bearer token. Raises 401 when it is missing or invalid."""
    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _user_from_token(credentials.credentials, settings)


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    settings: Settings = Depends(get_app_settings),
) -> CurrentUser | None:
    """Anonymous callers get None; a present but broken token is still a 401."""
    if credentials is None:
        return None
    return _user_from_token(credentials.credentials, settings)


def require_roles(*roles: str) -> Callable[..., Awaitable[CurrentUser]]:
    """Dependency factory: 403 unless the caller holds at least one of ``roles``."""

    async def _check(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not user.has_role(*roles):
            raise HTTPException(status_code=403, detail="Insufficient role")
        return user

    return _check
