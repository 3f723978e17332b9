"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field, field_validator


class RegisterRequest(BaseModel):
    """Account sign-up. ``role`` picks which profile gets created."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=256)
    role: str
    name: str | None = Field(None, max_length=256)
    description: str | None = None
    first_name: str | None = Field(None, max_length=128)
    last_name: str | None = Field(None, max_length=128)
    middle_name: str | None = Field(None, max_length=128)
    phone: str | None = Field(None, max_length=64)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class RegisterResponse(BaseModel):
    id: int
    email: str
    role: str


class LoginRequest(BaseModel):
    """Login with email + password."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=256)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
