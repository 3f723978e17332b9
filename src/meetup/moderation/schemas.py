"""Admin request/response schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CategoryCreate(BaseModel):
    name: str = Field(..., max_length=128)
    sort_order: int = 0


class CategoryUpdate(BaseModel):
    """Partial update: only the fields present in the request are touched."""

    name: str | None = Field(None, max_length=128)
    is_archived: bool | None = None
    sort_order: int | None = None


class AdminCategoryResponse(BaseModel):
    id: int
    name: str
    is_archived: bool
    sort_order: int


class AdminEventResponse(BaseModel):
    id: int
    title: str
    organizer_id: int
    organizer_name: str | None = None
    start_at: datetime
    status: str
    is_public: bool


class AdminUserResponse(BaseModel):
    id: int
    email: str
    is_blocked: bool
    roles: list[str]
    created_at: datetime


class ModerationResponse(BaseModel):
    id: int
    status: str
