"""Authentication router: /api/v1/auth/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from meetup.auth.jwt import create_access_token
from meetup.auth.password import PasswordStrengthError
from meetup.auth.schemas import LoginRequest, RegisterRequest, RegisterResponse, TokenResponse
from meetup.auth.service import authenticate_user, register_user
from meetup.config import Settings
from meetup.dependencies import get_app_settings, get_db

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> RegisterResponse:
    """Create an organizer or participant account."""
    try:
        user = await register_user(db, body, settings)
    except PasswordStrengthError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return RegisterResponse(id=user.id, email=user.email, role=body.role)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> TokenResponse:
    """Exchange email + password for a bearer token."""
    user = await authenticate_user(db, body.email, body.password)
    token = create_access_token(user.id, user.email, user.role_names, settings)
    logger.info("user_logged_in", user_id=user.id)
    return TokenResponse(
        token=token,
        token_type="bearer",
        expires_in=settings.jwt_access_token_expire_hours * 3600,
    )
