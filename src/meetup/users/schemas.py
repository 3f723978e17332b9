"""Schemas for the signed-in user's own resources."""

from __future__ import annotations

from pydantic import BaseModel


class MeResponse(BaseModel):
    id: int
    email: str
    roles: list[str]


class ParticipantProfileResponse(BaseModel):
    first_name: str
    last_name: str
    middle_name: str | None = None
    email: str
    phone: str | None = None
