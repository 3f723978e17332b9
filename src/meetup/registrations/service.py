"""
Registration business logic.

Capacity lives on ``ticket_types.registered_count``. A slot is taken with a
conditional UPDATE that only succeeds while the counter is below capacity, and
returned with the mirror-image decrement whenever a registration is cancelled.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError

from meetup.db.models import (
    CURRENT_REGISTRATION_STATUSES,
    EVENT_ACTIVE,
    REGISTRATION_CANCELLED,
    REGISTRATION_CHECKED_IN,
    REGISTRATION_REGISTERED,
    Event,
    OrganizerProfile,
    ParticipantProfile,
    Registration,
    TicketType,
    User,
)
from meetup.errors import (
    CapacityExceededError,
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    PaymentRequiredError,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from meetup.auth.dependencies import CurrentUser
    from meetup.email.dispatcher import EmailDispatcher
    from meetup.registrations.schemas import RegistrationCreate

logger = structlog.get_logger()


def participant_name(registration: Registration) -> str:
    return f"{registration.first_name} {registration.last_name}".strip()


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


# ---------------------------------------------------------------------------
# Slot accounting
# ---------------------------------------------------------------------------


async def reserve_slot(db: AsyncSession, ticket_type_id: int) -> bool:
    """Take one slot if any is left. Returns False when the ticket type is full."""
    result = await db.execute(
        update(TicketType)
        .where(TicketType.id == ticket_type_id, TicketType.registered_count < TicketType.capacity)
        .values(registered_count=TicketType.registered_count + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def release_slot(db: AsyncSession, ticket_type_id: int) -> None:
    await db.execute(
        update(TicketType)
        .where(TicketType.id == ticket_type_id, TicketType.registered_count > 0)
        .values(registered_count=TicketType.registered_count - 1)
        .execution_options(synchronize_session=False)
    )


# ---------------------------------------------------------------------------
# Notifications shared with catalog and moderation
# ---------------------------------------------------------------------------


async def current_registrations(db: AsyncSession, event_id: int) -> list[Registration]:
    """Registrations of an event that still hold a slot."""
    result = await db.execute(
        select(Registration)
        .where(
            Registration.event_id == event_id,
            Registration.status.in_(CURRENT_REGISTRATION_STATUSES),
        )
        .order_by(Registration.id)
    )
    return list(result.scalars().all())


def notify_event_cancelled(
    dispatcher: EmailDispatcher,
    event: Event,
    registrations: list[Registration],
) -> int:
    """Queue an event-cancelled notice per registrant. Returns how many were queued."""
    queued = 0
    for registration in registrations:
        if dispatcher.dispatch(
            registration.email,
            "event_cancelled",
            {
                "participant_name": participant_name(registration),
                "event_title": event.title,
                "start_at": event.start_at,
            },
        ):
            queued += 1
    return queued


async def organizer_contact(db: AsyncSession, organizer_id: int) -> tuple[str, str] | None:
    """(email, display name) of an organizer, or None for an unknown user."""
    result = await db.execute(
        select(User.email, OrganizerProfile.name)
        .outerjoin(OrganizerProfile, OrganizerProfile.user_id == User.id)
        .where(User.id == organizer_id)
    )
    row = result.one_or_none()
    if row is None:
        return None
    return row.email, row.name or row.email


def notify_organizer_of_cancellation(
    dispatcher: EmailDispatcher,
    contact: tuple[str, str],
    registration: Registration,
    event: Event,
) -> None:
    organizer_email, organizer_name = contact
    dispatcher.dispatch(
        organizer_email,
        "registration_cancelled",
        {
            "organizer_name": organizer_name,
            "participant_name": participant_name(registration),
            "participant_email": registration.email,
            "event_title": event.title,
            "start_at": event.start_at,
        },
    )


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


@dataclass
class _Contact:
    first_name: str | None
    last_name: str | None
    middle_name: str | None
    email: str | None
    phone: str | None

    def backfill(self, profile: ParticipantProfile) -> None:
        self.first_name = self.first_name or _clean(profile.first_name)
        self.last_name = self.last_name or _clean(profile.last_name)
        self.middle_name = self.middle_name or _clean(profile.middle_name)
        self.email = self.email or _clean(profile.email)
        self.phone = self.phone or _clean(profile.phone)


async def create_registration(
    db: AsyncSession,
    dispatcher: EmailDispatcher,
    event_id: int,
    data: RegistrationCreate,
    user_id: int | None = None,
) -> int:
    """
    Register a participant for one ticket type of an event.

    Raises:
        NotFoundError: The event is missing, private or not active.
        InvalidInputError: Foreign ticket type, or contact fields still empty.
        ConflictError: The email already holds a live registration for the event.
        CapacityExceededError: No slot left on the ticket type.
        PaymentRequiredError: Paid ticket without ``payment_completed``.
    """
    event = await db.scalar(
        select(Event).where(
            Event.id == event_id,
            Event.is_public.is_(True),
            Event.status == EVENT_ACTIVE,
        )
    )
    if event is None:
        msg = "Event not found"
        raise NotFoundError(msg)

    ticket_type = await db.scalar(
        select(TicketType).where(TicketType.id == data.ticket_type_id, TicketType.event_id == event_id)
    )
    if ticket_type is None:
        msg = "Ticket type does not belong to this event"
        raise InvalidInputError(msg)

    contact = _Contact(
        first_name=_clean(data.first_name),
        last_name=_clean(data.last_name),
        middle_name=_clean(data.middle_name),
        email=_clean(data.email),
        phone=_clean(data.phone),
    )
    if user_id is not None:
        profile = await db.get(ParticipantProfile, user_id)
        if profile is not None:
            contact.backfill(profile)
    email = contact.email.lower() if contact.email else None

    if email is not None:
        duplicate = await db.scalar(
            select(Registration.id).where(
                Registration.event_id == event_id,
                func.lower(Registration.email) == email,
                Registration.status != REGISTRATION_CANCELLED,
            )
        )
        if duplicate is not None:
            msg = "This email is already registered for the event"
            raise ConflictError(msg)

    if ticket_type.registered_count >= ticket_type.capacity:
        msg = "No places left for this ticket type"
        raise CapacityExceededError(msg)

    if ticket_type.price > 0 and not data.payment_completed:
        msg = "Payment is required for this ticket type"
        raise PaymentRequiredError(msg)

    if not contact.first_name or not contact.last_name or email is None:
        msg = "first_name, last_name and email are required"
        raise InvalidInputError(msg)

    if not await reserve_slot(db, ticket_type.id):
        await db.rollback()
        msg = "No places left for this ticket type"
        raise CapacityExceededError(msg)

    registration = Registration(
        event_id=event_id,
        ticket_type_id=ticket_type.id,
        user_id=user_id,
        email=email,
        first_name=contact.first_name,
        last_name=contact.last_name,
        middle_name=contact.middle_name,
        phone=contact.phone,
        status=REGISTRATION_REGISTERED,
    )
    db.add(registration)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        msg = "This email is already registered for the event"
        raise ConflictError(msg) from e

    logger.info(
        "registration_created",
        registration_id=registration.id,
        event_id=event_id,
        ticket_type_id=ticket_type.id,
    )
    dispatcher.dispatch(
        registration.email,
        "registration_confirmation",
        {
            "participant_name": participant_name(registration),
            "event_title": event.title,
            "start_at": event.start_at,
            "location": event.location,
        },
    )
    return registration.id


# ---------------------------------------------------------------------------
# Cancel / check-in
# ---------------------------------------------------------------------------


async def cancel_registration(
    db: AsyncSession,
    dispatcher: EmailDispatcher,
    registration_id: int,
    caller: CurrentUser,
) -> None:
    """
    Cancel a live registration and give its slot back.

    Only the event organizer or the participant (matched by email) may cancel.
    A registration that is already cancelled is reported as missing.
    """
    row = (
        await db.execute(
            select(Registration, Event)
            .join(Event, Event.id == Registration.event_id)
            .where(
                Registration.id == registration_id,
                Registration.status.in_(CURRENT_REGISTRATION_STATUSES),
            )
        )
    ).one_or_none()
    if row is None:
        msg = "Registration not found"
        raise NotFoundError(msg)
    registration, event = row

    by_organizer = event.organizer_id == caller.id
    if not by_organizer and registration.email.lower() != caller.email.lower():
        msg = "Only the participant or the event organizer can cancel this registration"
        raise ForbiddenError(msg)

    result = await db.execute(
        update(Registration)
        .where(
            Registration.id == registration_id,
            Registration.status.in_(CURRENT_REGISTRATION_STATUSES),
        )
        .values(status=REGISTRATION_CANCELLED)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        msg = "Registration not found"
        raise NotFoundError(msg)
    await release_slot(db, registration.ticket_type_id)
    await db.commit()

    logger.info(
        "registration_cancelled",
        registration_id=registration_id,
        event_id=event.id,
        by_organizer=by_organizer,
    )
    if not by_organizer:
        contact = await organizer_contact(db, event.organizer_id)
        if contact is not None:
            notify_organizer_of_cancellation(dispatcher, contact, registration, event)


async def check_in(db: AsyncSession, registration_id: int, caller_id: int) -> Registration:
    """Mark attendance. Checking in twice keeps the first timestamp."""
    row = (
        await db.execute(
            select(Registration, Event.organizer_id)
            .join(Event, Event.id == Registration.event_id)
            .where(Registration.id == registration_id)
        )
    ).one_or_none()
    if row is None:
        msg = "Registration not found"
        raise NotFoundError(msg)
    registration, organizer_id = row

    if organizer_id != caller_id:
        msg = "Only the event organizer can check participants in"
        raise ForbiddenError(msg)
    if registration.status == REGISTRATION_CANCELLED:
        msg = "Registration is cancelled"
        raise InvalidStateError(msg)
    if registration.status == REGISTRATION_CHECKED_IN:
        return registration

    registration.status = REGISTRATION_CHECKED_IN
    registration.checked_in_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("registration_checked_in", registration_id=registration_id)
    return registration


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


async def get_owned_event(db: AsyncSession, event_id: int, organizer_id: int) -> Event:
    """Event owned by the caller, whatever its status. NotFound otherwise."""
    event = await db.scalar(select(Event).where(Event.id == event_id, Event.organizer_id == organizer_id))
    if event is None:
        msg = "Event not found"
        raise NotFoundError(msg)
    return event


async def list_event_registrations(
    db: AsyncSession,
    event_id: int,
    organizer_id: int,
    *,
    include_cancelled: bool = True,
) -> list[tuple[Registration, str]]:
    """All registrations of an owned event with their ticket type names."""
    await get_owned_event(db, event_id, organizer_id)
    query = (
        select(Registration, TicketType.name)
        .join(TicketType, TicketType.id == Registration.ticket_type_id)
        .where(Registration.event_id == event_id)
        .order_by(Registration.last_name, Registration.first_name, Registration.id)
    )
    if not include_cancelled:
        query = query.where(Registration.status != REGISTRATION_CANCELLED)
    result = await db.execute(query)
    return [(registration, ticket_name) for registration, ticket_name in result.all()]


async def list_my_registrations(db: AsyncSession, user_id: int, email: str) -> list[tuple[Registration, Event, str]]:
    """Registrations made by the account, or under its email while signed out."""
    result = await db.execute(
        select(Registration, Event, TicketType.name)
        .join(Event, Event.id == Registration.event_id)
        .join(TicketType, TicketType.id == Registration.ticket_type_id)
        .where(
            or_(
                Registration.user_id == user_id,
                func.lower(Registration.email) == email.lower(),
            )
        )
        .order_by(Registration.created_at.desc(), Registration.id.desc())
    )
    return [(registration, event, ticket_name) for registration, event, ticket_name in result.all()]


async def get_participant_profile(db: AsyncSession, user_id: int) -> ParticipantProfile | None:
    return await db.get(ParticipantProfile, user_id)
