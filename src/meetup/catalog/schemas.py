"""Request/response schemas for the event catalog."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TicketTypeCreate(BaseModel):
    name: str = Field(..., max_length=128)
    price: Decimal = Decimal("0")
    capacity: int


class EventCreate(BaseModel):
    """New event with its ticket types. Semantic checks happen in the service."""

    title: str = Field(..., max_length=256)
    description: str | None = None
    start_at: datetime
    end_at: datetime
    location: str | None = Field(None, max_length=512)
    is_online: bool = False
    is_public: bool = True
    category_ids: list[int] = Field(default_factory=list)
    ticket_types: list[TicketTypeCreate] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class CreatedResponse(BaseModel):
    id: int


class StatusResponse(BaseModel):
    status: str


class TicketTypeResponse(BaseModel):
    id: int
    name: str
    price: float
    capacity: int
    registered_count: int
    available: int


class EventListItem(BaseModel):
    id: int
    organizer_id: int
    organizer_name: str | None = None
    title: str
    description: str | None = None
    start_at: datetime
    end_at: datetime
    location: str | None = None
    is_online: bool
    status: str
    created_at: datetime
    category_ids: list[int] = Field(default_factory=list)


class EventPage(BaseModel):
    items: list[EventListItem]
    next_cursor: str | None = None


class EventDetail(EventListItem):
    is_public: bool
    ticket_types: list[TicketTypeResponse] = Field(default_factory=list)
    image_ids: list[int] = Field(default_factory=list)


class CategoryResponse(BaseModel):
    id: int
    name: str


class OrganizerResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    has_avatar: bool
