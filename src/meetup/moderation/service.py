"""
Admin moderation.

Block/unblock operations report a three-way ``ModerationOutcome`` so that a
transition from the wrong state is distinguishable from a missing target.
Cascading emails are queued only after the transaction commits.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from meetup.db.models import (
    CURRENT_REGISTRATION_STATUSES,
    EVENT_ACTIVE,
    EVENT_BLOCKED,
    EVENT_CANCELLED,
    REGISTRATION_CANCELLED,
    ROLE_ORGANIZER,
    Category,
    Event,
    OrganizerProfile,
    Registration,
    User,
    UserRole,
)
from meetup.errors import ConflictError, InvalidInputError, NotFoundError
from meetup.registrations.service import (
    current_registrations,
    notify_event_cancelled,
    notify_organizer_of_cancellation,
    organizer_contact,
    release_slot,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from meetup.email.dispatcher import EmailDispatcher
    from meetup.moderation.schemas import CategoryCreate, CategoryUpdate

logger = structlog.get_logger()


class ModerationOutcome(enum.Enum):
    OK = "ok"
    INVALID_STATE = "invalid_state"
    NOT_FOUND = "not_found"


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


async def _move_event(db: AsyncSession, event_id: int, from_status: str, to_status: str) -> ModerationOutcome:
    exists = await db.scalar(select(Event.id).where(Event.id == event_id))
    if exists is None:
        return ModerationOutcome.NOT_FOUND
    result = await db.execute(
        update(Event)
        .where(Event.id == event_id, Event.status == from_status)
        .values(status=to_status)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        return ModerationOutcome.INVALID_STATE
    await db.commit()
    logger.info("event_status_changed", event_id=event_id, status=to_status)
    return ModerationOutcome.OK


async def block_event(db: AsyncSession, event_id: int) -> ModerationOutcome:
    """active -> blocked. Registrations are left as they are."""
    return await _move_event(db, event_id, EVENT_ACTIVE, EVENT_BLOCKED)


async def unblock_event(db: AsyncSession, event_id: int) -> ModerationOutcome:
    return await _move_event(db, event_id, EVENT_BLOCKED, EVENT_ACTIVE)


# ---------------------------------------------------------------------------
# Organizers
# ---------------------------------------------------------------------------


async def _get_organizer(db: AsyncSession, user_id: int) -> User | None:
    return await db.scalar(
        select(User)
        .join(UserRole, UserRole.user_id == User.id)
        .where(User.id == user_id, UserRole.role == ROLE_ORGANIZER)
    )


async def block_organizer(db: AsyncSession, dispatcher: EmailDispatcher, user_id: int) -> ModerationOutcome:
    """
    Block an organizer and cancel every one of their active events.

    Already cancelled or blocked events are left alone. Each current
    registrant of a cancelled event is emailed.
    """
    user = await _get_organizer(db, user_id)
    if user is None:
        return ModerationOutcome.NOT_FOUND

    user.is_blocked = True
    result = await db.execute(
        select(Event).where(Event.organizer_id == user_id, Event.status == EVENT_ACTIVE).order_by(Event.id)
    )
    cancelled: list[tuple[Event, list[Registration]]] = []
    for event in result.scalars().all():
        event.status = EVENT_CANCELLED
        cancelled.append((event, await current_registrations(db, event.id)))
    await db.commit()

    queued = sum(notify_event_cancelled(dispatcher, event, regs) for event, regs in cancelled)
    logger.info(
        "organizer_blocked",
        user_id=user_id,
        cancelled_events=[event.id for event, _ in cancelled],
        notified=queued,
    )
    return ModerationOutcome.OK


async def unblock_organizer(db: AsyncSession, user_id: int) -> ModerationOutcome:
    """Clear the flag only; cancelled events stay cancelled."""
    user = await _get_organizer(db, user_id)
    if user is None:
        return ModerationOutcome.NOT_FOUND
    user.is_blocked = False
    await db.commit()
    logger.info("organizer_unblocked", user_id=user_id)
    return ModerationOutcome.OK


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


async def block_user(db: AsyncSession, dispatcher: EmailDispatcher, user_id: int) -> ModerationOutcome:
    """Block an account and cancel its live registrations, telling each organizer."""
    user = await db.get(User, user_id)
    if user is None:
        return ModerationOutcome.NOT_FOUND

    user.is_blocked = True
    result = await db.execute(
        select(Registration, Event)
        .join(Event, Event.id == Registration.event_id)
        .where(
            Registration.user_id == user_id,
            Registration.status.in_(CURRENT_REGISTRATION_STATUSES),
        )
        .order_by(Registration.id)
    )
    affected = [(registration, event) for registration, event in result.all()]
    for registration, _ in affected:
        registration.status = REGISTRATION_CANCELLED
        await release_slot(db, registration.ticket_type_id)
    await db.commit()

    contacts: dict[int, tuple[str, str] | None] = {}
    for registration, event in affected:
        if event.organizer_id not in contacts:
            contacts[event.organizer_id] = await organizer_contact(db, event.organizer_id)
        contact = contacts[event.organizer_id]
        if contact is not None:
            notify_organizer_of_cancellation(dispatcher, contact, registration, event)

    logger.info("user_blocked", user_id=user_id, cancelled_registrations=len(affected))
    return ModerationOutcome.OK


async def unblock_user(db: AsyncSession, user_id: int) -> ModerationOutcome:
    user = await db.get(User, user_id)
    if user is None:
        return ModerationOutcome.NOT_FOUND
    user.is_blocked = False
    await db.commit()
    logger.info("user_unblocked", user_id=user_id)
    return ModerationOutcome.OK


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


async def list_events(db: AsyncSession) -> list[tuple[Event, str | None]]:
    """Active and blocked events, the ones an admin can act on."""
    result = await db.execute(
        select(Event, OrganizerProfile.name)
        .outerjoin(OrganizerProfile, OrganizerProfile.user_id == Event.organizer_id)
        .where(Event.status.in_((EVENT_ACTIVE, EVENT_BLOCKED)))
        .order_by(Event.start_at, Event.id)
    )
    return [(event, name) for event, name in result.all()]


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
    return list(result.scalars().all())


async def list_categories(db: AsyncSession) -> list[Category]:
    result = await db.execute(select(Category).order_by(Category.sort_order, Category.id))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


async def _name_taken(db: AsyncSession, name: str, *, exclude_id: int | None = None) -> bool:
    query = select(Category.id).where(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        query = query.where(Category.id != exclude_id)
    return await db.scalar(query) is not None


async def create_category(db: AsyncSession, data: CategoryCreate) -> int:
    name = data.name.strip()
    if not name:
        msg = "Category name is required"
        raise InvalidInputError(msg)
    if await _name_taken(db, name):
        msg = f"Category '{name}' already exists"
        raise ConflictError(msg)

    category = Category(name=name, sort_order=data.sort_order, is_archived=False)
    db.add(category)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        msg = f"Category '{name}' already exists"
        raise ConflictError(msg) from e
    logger.info("category_created", category_id=category.id, name=name)
    return category.id


async def update_category(db: AsyncSession, category_id: int, data: CategoryUpdate) -> Category:
    """Apply the supplied fields. An empty update on an existing category succeeds."""
    category = await db.get(Category, category_id)
    if category is None:
        msg = "Category not found"
        raise NotFoundError(msg)

    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in changes:
        name = changes["name"].strip()
        if not name:
            msg = "Category name must not be blank"
            raise InvalidInputError(msg)
        if await _name_taken(db, name, exclude_id=category_id):
            msg = f"Category '{name}' already exists"
            raise ConflictError(msg)
        category.name = name
    if "is_archived" in changes:
        category.is_archived = changes["is_archived"]
    if "sort_order" in changes:
        category.sort_order = changes["sort_order"]

    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        msg = "Category name already exists"
        raise ConflictError(msg) from e
    if changes:
        logger.info("category_updated", category_id=category_id, fields=sorted(changes))
    return category
