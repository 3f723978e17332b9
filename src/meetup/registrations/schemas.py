"""Request/response schemas for registrations."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator


class RegistrationCreate(BaseModel):
    """Contact fields are optional: signed-in participants get them from their profile."""

    ticket_type_id: int
    first_name: str | None = Field(None, max_length=128)
    last_name: str | None = Field(None, max_length=128)
    middle_name: str | None = Field(None, max_length=128)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=64)
    payment_completed: bool = False

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_missing(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class RegistrationCreated(BaseModel):
    id: int


class RegistrationResponse(BaseModel):
    """Row of an organizer's participant list."""

    id: int
    ticket_type_id: int
    ticket_type_name: str
    user_id: int | None = None
    email: str
    first_name: str
    last_name: str
    middle_name: str | None = None
    phone: str | None = None
    status: str
    checked_in_at: datetime | None = None
    created_at: datetime


class MyRegistrationResponse(BaseModel):
    id: int
    event_id: int
    event_title: str
    event_start_at: datetime
    event_status: str
    ticket_type_name: str
    status: str
    checked_in_at: datetime | None = None
    created_at: datetime


class CheckInResponse(BaseModel):
    id: int
    status: str
    checked_in_at: datetime | None = None
