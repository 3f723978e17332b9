"""
Event catalog business logic.

Public reads only ever see events that are public and not blocked. Writes
are restricted to the owning organizer and report foreign events as missing.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import ColumnElement, Select, func, select
from sqlalchemy.orm import undefer

from meetup.catalog.pagination import (
    EventSort,
    apply_sort_and_cursor,
    clamp_limit,
    encode_cursor,
    sort_value,
)
from meetup.db.models import (
    EVENT_ACTIVE,
    EVENT_BLOCKED,
    EVENT_CANCELLED,
    ROLE_ORGANIZER,
    Category,
    Event,
    EventCategory,
    EventImage,
    OrganizerProfile,
    TicketType,
    UserRole,
)
from meetup.errors import InvalidInputError, InvalidStateError, NotFoundError
from meetup.registrations.service import current_registrations, notify_event_cancelled

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from meetup.catalog.schemas import EventCreate
    from meetup.email.dispatcher import EmailDispatcher

logger = structlog.get_logger()


@dataclass
class EventView:
    """An event plus the related ids and names the API responses need."""

    event: Event
    organizer_name: str | None = None
    category_ids: list[int] = field(default_factory=list)
    ticket_types: list[TicketType] = field(default_factory=list)
    image_ids: list[int] = field(default_factory=list)


def _visible() -> tuple[ColumnElement[bool], ...]:
    return (Event.is_public.is_(True), Event.status != EVENT_BLOCKED)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def _category_ids_by_event(db: AsyncSession, event_ids: Sequence[int]) -> dict[int, list[int]]:
    if not event_ids:
        return {}
    result = await db.execute(
        select(EventCategory.event_id, EventCategory.category_id)
        .where(EventCategory.event_id.in_(event_ids))
        .order_by(EventCategory.category_id)
    )
    by_event: dict[int, list[int]] = defaultdict(list)
    for event_id, category_id in result.all():
        by_event[event_id].append(category_id)
    return by_event


async def _views(db: AsyncSession, rows: Sequence[tuple[Event, str | None]]) -> list[EventView]:
    categories = await _category_ids_by_event(db, [event.id for event, _ in rows])
    return [
        EventView(event=event, organizer_name=name, category_ids=categories.get(event.id, []))
        for event, name in rows
    ]


def _with_organizer_name() -> Select[tuple[Event, str | None]]:
    return select(Event, OrganizerProfile.name).outerjoin(
        OrganizerProfile, OrganizerProfile.user_id == Event.organizer_id
    )


# ---------------------------------------------------------------------------
# Public listing
# ---------------------------------------------------------------------------


async def list_events(
    db: AsyncSession,
    *,
    cursor: str | None = None,
    limit: int | None = None,
    category_ids: Sequence[int] | None = None,
    sort_by: str | None = None,
    default_limit: int = 20,
) -> tuple[list[EventView], str | None]:
    """Fetch one page of the public catalog.

    Returns:
        Tuple of (events, next_cursor or None).

    Raises:
        InvalidInputError: If the cursor is malformed.
    """
    sort = EventSort.parse(sort_by)
    limit = clamp_limit(limit, default_limit)

    query = _with_organizer_name().where(*_visible())
    if category_ids:
        query = query.where(
            Event.id.in_(select(EventCategory.event_id).where(EventCategory.category_id.in_(category_ids)))
        )
    query = apply_sort_and_cursor(query, sort, cursor)

    # Fetch one extra to detect has_more
    result = await db.execute(query.limit(limit + 1))
    rows = [(event, name) for event, name in result.all()]

    has_more = len(rows) > limit
    rows = rows[:limit]

    next_cursor = None
    if has_more and rows:
        last = rows[-1][0]
        next_cursor = encode_cursor(sort_value(last, sort), last.id)

    return await _views(db, rows), next_cursor


async def get_event(db: AsyncSession, event_id: int) -> EventView:
    """Public event detail. Private and blocked events are reported as missing."""
    row = (await db.execute(_with_organizer_name().where(Event.id == event_id, *_visible()))).one_or_none()
    if row is None:
        msg = "Event not found"
        raise NotFoundError(msg)
    event, organizer_name = row

    ticket_types = await db.execute(
        select(TicketType).where(TicketType.event_id == event_id).order_by(TicketType.id)
    )
    image_ids = await db.execute(
        select(EventImage.id).where(EventImage.event_id == event_id).order_by(EventImage.sort_order, EventImage.id)
    )
    categories = await _category_ids_by_event(db, [event_id])
    return EventView(
        event=event,
        organizer_name=organizer_name,
        category_ids=categories.get(event_id, []),
        ticket_types=list(ticket_types.scalars().all()),
        image_ids=list(image_ids.scalars().all()),
    )


# ---------------------------------------------------------------------------
# Organizer writes
# ---------------------------------------------------------------------------


async def _validate_event(db: AsyncSession, data: EventCreate) -> None:
    if not data.title.strip():
        msg = "title is required"
        raise InvalidInputError(msg)
    if _as_utc(data.end_at) < _as_utc(data.start_at):
        msg = "end_at must not be before start_at"
        raise InvalidInputError(msg)
    if not data.ticket_types:
        msg = "At least one ticket type is required"
        raise InvalidInputError(msg)
    for ticket_type in data.ticket_types:
        if not ticket_type.name.strip():
            msg = "Ticket type name is required"
            raise InvalidInputError(msg)
        if ticket_type.capacity <= 0:
            msg = "Ticket type capacity must be positive"
            raise InvalidInputError(msg)
        if ticket_type.price < 0:
            msg = "Ticket type price must not be negative"
            raise InvalidInputError(msg)

    wanted = set(data.category_ids)
    if wanted:
        result = await db.execute(
            select(Category.id).where(Category.id.in_(wanted), Category.is_archived.is_(False))
        )
        missing = wanted - set(result.scalars().all())
        if missing:
            msg = f"Unknown or archived categories: {sorted(missing)}"
            raise InvalidInputError(msg)


async def create_event(db: AsyncSession, organizer_id: int, data: EventCreate) -> int:
    """Create an event with its ticket types and category links in one transaction."""
    await _validate_event(db, data)

    event = Event(
        organizer_id=organizer_id,
        title=data.title.strip(),
        description=data.description,
        start_at=_as_utc(data.start_at),
        end_at=_as_utc(data.end_at),
        location=data.location,
        is_online=data.is_online,
        is_public=data.is_public,
        status=EVENT_ACTIVE,
    )
    db.add(event)
    try:
        await db.flush()
        for ticket_type in data.ticket_types:
            db.add(
                TicketType(
                    event_id=event.id,
                    name=ticket_type.name.strip(),
                    price=ticket_type.price,
                    capacity=ticket_type.capacity,
                    registered_count=0,
                )
            )
        for category_id in sorted(set(data.category_ids)):
            db.add(EventCategory(event_id=event.id, category_id=category_id))
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("event_created", event_id=event.id, organizer_id=organizer_id)
    return event.id


async def cancel_event(
    db: AsyncSession,
    dispatcher: EmailDispatcher,
    event_id: int,
    organizer_id: int,
) -> int:
    """
    Cancel an owned active event and notify its current registrants.

    Returns the number of notices queued.

    Raises:
        NotFoundError: The caller does not own the event.
        InvalidStateError: The event is already cancelled or blocked.
    """
    event = await db.scalar(select(Event).where(Event.id == event_id, Event.organizer_id == organizer_id))
    if event is None:
        msg = "Event not found"
        raise NotFoundError(msg)
    if event.status != EVENT_ACTIVE:
        msg = f"Event is {event.status}"
        raise InvalidStateError(msg)

    event.status = EVENT_CANCELLED
    registrations = await current_registrations(db, event_id)
    await db.commit()

    queued = notify_event_cancelled(dispatcher, event, registrations)
    logger.info("event_cancelled", event_id=event_id, notified=queued)
    return queued


async def add_event_image(
    db: AsyncSession,
    event_id: int,
    organizer_id: int,
    content: bytes,
    content_type: str | None,
    file_name: str | None,
) -> int:
    """Attach an image to an owned event; it is appended after existing ones."""
    owned = await db.scalar(select(Event.id).where(Event.id == event_id, Event.organizer_id == organizer_id))
    if owned is None:
        msg = "Event not found"
        raise NotFoundError(msg)
    if not content:
        msg = "Image file is empty"
        raise InvalidInputError(msg)

    next_order = await db.scalar(
        select(func.coalesce(func.max(EventImage.sort_order) + 1, 0)).where(EventImage.event_id == event_id)
    )
    image = EventImage(
        event_id=event_id,
        content=content,
        content_type=content_type or "application/octet-stream",
        file_name=file_name,
        sort_order=next_order or 0,
    )
    db.add(image)
    await db.commit()
    logger.info("event_image_added", event_id=event_id, image_id=image.id, size=len(content))
    return image.id


async def get_event_image(db: AsyncSession, event_id: int, image_id: int) -> EventImage:
    image = await db.scalar(
        select(EventImage)
        .join(Event, Event.id == EventImage.event_id)
        .options(undefer(EventImage.content))
        .where(EventImage.id == image_id, EventImage.event_id == event_id, *_visible())
    )
    if image is None:
        msg = "Image not found"
        raise NotFoundError(msg)
    return image


# ---------------------------------------------------------------------------
# Organizers and categories
# ---------------------------------------------------------------------------


async def get_organizer(db: AsyncSession, organizer_id: int, *, with_avatar: bool = False) -> OrganizerProfile:
    query = (
        select(OrganizerProfile)
        .join(UserRole, UserRole.user_id == OrganizerProfile.user_id)
        .where(OrganizerProfile.user_id == organizer_id, UserRole.role == ROLE_ORGANIZER)
    )
    if with_avatar:
        query = query.options(undefer(OrganizerProfile.avatar_content))
    profile = await db.scalar(query)
    if profile is None:
        msg = "Organizer not found"
        raise NotFoundError(msg)
    return profile


async def list_organizer_events(db: AsyncSession, organizer_id: int) -> list[EventView]:
    profile = await get_organizer(db, organizer_id)
    result = await db.execute(
        select(Event)
        .where(Event.organizer_id == organizer_id, *_visible())
        .order_by(Event.start_at, Event.id)
    )
    return await _views(db, [(event, profile.name) for event in result.scalars().all()])


async def list_own_events(db: AsyncSession, organizer_id: int) -> list[EventView]:
    """Everything the organizer created, including private, cancelled and blocked events."""
    result = await db.execute(
        _with_organizer_name()
        .where(Event.organizer_id == organizer_id)
        .order_by(Event.start_at.desc(), Event.id.desc())
    )
    return await _views(db, [(event, name) for event, name in result.all()])


async def list_categories(db: AsyncSession) -> list[Category]:
    result = await db.execute(
        select(Category).where(Category.is_archived.is_(False)).order_by(Category.sort_order, Category.id)
    )
    return list(result.scalars().all())


async def set_organizer_avatar(
    db: AsyncSession,
    organizer_id: int,
    content: bytes,
    content_type: str | None,
) -> None:
    profile = await db.get(OrganizerProfile, organizer_id)
    if profile is None:
        msg = "Organizer profile not found"
        raise NotFoundError(msg)
    if not content:
        msg = "Avatar file is empty"
        raise InvalidInputError(msg)
    profile.avatar_content = content
    profile.avatar_content_type = content_type or "application/octet-stream"
    await db.commit()
    logger.info("organizer_avatar_updated", organizer_id=organizer_id, size=len(content))
