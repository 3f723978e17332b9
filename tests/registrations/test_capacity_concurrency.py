"""Concurrent registrations and cancellations against the same ticket type."""

import asyncio

import pytest
from sqlalchemy import func, select

from meetup.auth.dependencies import CurrentUser
from meetup.db.models import REGISTRATION_CANCELLED, Registration, TicketType
from meetup.errors import CapacityExceededError, NotFoundError
from meetup.registrations.schemas import RegistrationCreate
from meetup.registrations.service import cancel_registration, create_registration


async def _counts(database, ticket_type_id):
    async with database.session() as db:
        registered_count = await db.scalar(
            select(TicketType.registered_count).where(TicketType.id == ticket_type_id)
        )
        live = await db.scalar(
            select(func.count())
            .select_from(Registration)
            .where(Registration.ticket_type_id == ticket_type_id, Registration.status != REGISTRATION_CANCELLED)
        )
    return registered_count, live


async def test_parallel_registrations_never_oversell(organizer, make_event, database, dispatcher):
    event = await make_event(organizer, capacity=3)

    async def attempt(n):
        data = RegistrationCreate(
            ticket_type_id=event.ticket_type_id,
            first_name="Racer",
            last_name=str(n),
            email=f"racer{n}@example.com",
        )
        async with database.session() as db:
            return await create_registration(db, dispatcher, event.id, data)

    results = await asyncio.gather(*(attempt(n) for n in range(10)), return_exceptions=True)

    successes = [r for r in results if isinstance(r, int)]
    failures = [r for r in results if not isinstance(r, int)]
    assert len(successes) == 3
    assert all(isinstance(f, CapacityExceededError) for f in failures), failures
    assert await _counts(database, event.ticket_type_id) == (3, 3)


async def test_parallel_cancellations_release_one_slot(organizer, make_event, register, database, dispatcher):
    event = await make_event(organizer, capacity=2)
    created = await register(event.id, event.ticket_type_id, "x@example.com")
    await register(event.id, event.ticket_type_id, "y@example.com")
    caller = CurrentUser(id=organizer.id, email=organizer.email, roles=frozenset(organizer.roles))

    async def attempt():
        async with database.session() as db:
            await cancel_registration(db, dispatcher, created.json()["id"], caller)

    results = await asyncio.gather(*(attempt() for _ in range(4)), return_exceptions=True)

    assert results.count(None) == 1
    assert all(isinstance(r, NotFoundError) for r in results if r is not None), results
    assert await _counts(database, event.ticket_type_id) == (1, 1)


@pytest.mark.parametrize("capacity", [1, 2])
async def test_cancel_then_register_reuses_slot(organizer, make_event, register, client, capacity):
    event = await make_event(organizer, capacity=capacity)
    ids = [
        (await register(event.id, event.ticket_type_id, f"p{n}@example.com")).json()["id"] for n in range(capacity)
    ]
    assert (await register(event.id, event.ticket_type_id, "late@example.com")).status_code == 400

    await client.delete(f"/api/v1/registrations/{ids[0]}", headers=organizer.headers)
    assert (await register(event.id, event.ticket_type_id, "late@example.com")).status_code == 201
