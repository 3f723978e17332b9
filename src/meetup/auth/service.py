"""
Account creation and credential checks.

Passwords are argon2id hashes; roles and profiles are written in the same
transaction as the user row.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from meetup.auth.password import (
    check_needs_rehash,
    hash_password,
    validate_password_strength,
    verify_password,
)
from meetup.db.models import (
    ROLE_ORGANIZER,
    ROLE_PARTICIPANT,
    OrganizerProfile,
    ParticipantProfile,
    User,
    UserRole,
)
from meetup.errors import ConflictError, InvalidInputError, UnauthorizedError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from meetup.auth.schemas import RegisterRequest
    from meetup.config import Settings

logger = structlog.get_logger()

SELF_SERVICE_ROLES = (ROLE_ORGANIZER, ROLE_PARTICIPANT)


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower().strip()))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def _required(value: str | None, field_name: str) -> str:
    if value is None or not value.strip():
        msg = f"{field_name} is required"
        raise InvalidInputError(msg)
    return value.strip()


async def register_user(
    db: AsyncSession,
    data: RegisterRequest,
    settings: Settings | None = None,
) -> User:
    """
    Create a user, its role row and the matching profile.

    Raises:
        PasswordStrengthError: If the password is too weak.
        InvalidInputError: Unknown role or missing profile fields.
        ConflictError: The email is already taken.
    """
    if data.role not in SELF_SERVICE_ROLES:
        msg = f"Role must be one of: {', '.join(SELF_SERVICE_ROLES)}"
        raise InvalidInputError(msg)
    validate_password_strength(data.password, settings)

    email = data.email.lower().strip()
    if data.role == ROLE_ORGANIZER:
        name = _required(data.name, "name")
    else:
        first_name = _required(data.first_name, "first_name")
        last_name = _required(data.last_name, "last_name")

    if await get_user_by_email(db, email) is not None:
        msg = "Email already registered"
        raise ConflictError(msg)

    user = User(email=email, password_hash=hash_password(data.password))
    user.roles.append(UserRole(role=data.role))
    db.add(user)
    await db.flush()

    if data.role == ROLE_ORGANIZER:
        db.add(OrganizerProfile(user_id=user.id, name=name, description=data.description))
    else:
        db.add(
            ParticipantProfile(
                user_id=user.id,
                first_name=first_name,
                last_name=last_name,
                middle_name=data.middle_name,
                email=email,
                phone=data.phone,
            )
        )

    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        msg = "Email already registered"
        raise ConflictError(msg) from e

    logger.info("user_created", user_id=user.id, role=data.role)
    return user


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User:
    """
    Check email + password.

    Unknown email, blocked account and wrong password all produce the same
    UnauthorizedError so the response does not reveal which one it was.
    """
    user = await get_user_by_email(db, email)
    if user is None or user.is_blocked or not verify_password(password, user.password_hash):
        logger.info("login_failed", email=email)
        msg = "Invalid email or password"
        raise UnauthorizedError(msg)

    if check_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        await db.commit()
        logger.info("password_rehashed", user_id=user.id)

    return user
