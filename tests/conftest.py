"""Shared test fixtures.

Every test gets a fresh SQLite database file, an app whose outgoing mail is
captured by ``RecordingProvider``, and helpers to create users and events.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from meetup.auth.jwt import create_access_token
from meetup.auth.password import hash_password
from meetup.config import Settings
from meetup.database import Database
from meetup.db.models import (
    ROLE_ADMIN,
    ROLE_ORGANIZER,
    ROLE_PARTICIPANT,
    OrganizerProfile,
    ParticipantProfile,
    TicketType,
    User,
    UserRole,
)
from meetup.email.dispatcher import EmailDispatcher
from meetup.email.service import BaseEmailProvider
from meetup.main import close_services, create_app, init_services

TEST_PASSWORD = "SecureP@ss1"


@dataclass
class SentEmail:
    to: str
    subject: str
    body: str


class RecordingProvider(BaseEmailProvider):
    """Email provider that keeps messages in memory."""

    def __init__(self) -> None:
        self.sent: list[SentEmail] = []

    async def send(self, to_email: str, subject: str, text_body: str) -> bool:
        self.sent.append(SentEmail(to=to_email, subject=subject, body=text_body))
        return True

    def to(self, address: str) -> list[SentEmail]:
        return [m for m in self.sent if m.to == address]


@dataclass
class AuthedUser:
    id: int
    email: str
    roles: list[str]
    token: str
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@dataclass
class CreatedEvent:
    id: int
    ticket_type_ids: list[int]

    @property
    def ticket_type_id(self) -> int:
        return self.ticket_type_ids[0]


# ---------------------------------------------------------------------------
# App and infrastructure
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'meetup_test.db'}",
        redis_url=None,
        reminders_enabled=False,
        email_workers=2,
        log_format="console",
        log_level="WARNING",
    )


@pytest.fixture
def mail() -> RecordingProvider:
    return RecordingProvider()


@pytest_asyncio.fixture
async def app(settings: Settings, mail: RecordingProvider) -> AsyncGenerator[FastAPI, None]:
    """App with services started (ASGITransport does not run the lifespan)."""
    application = create_app(settings, email_provider=mail)
    await init_services(application)
    await application.state.db.create_all()
    yield application
    await close_services(application)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def database(app: FastAPI) -> Database:
    return app.state.db


@pytest.fixture
def dispatcher(app: FastAPI) -> EmailDispatcher:
    return app.state.email_dispatcher


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Direct session for assertions."""
    async with database.session() as session:
        yield session


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(database: Database, settings: Settings) -> Callable[..., Awaitable[AuthedUser]]:
    """Insert a user with roles and profiles, and mint a token for it."""

    async def _make(
        email: str,
        *roles: str,
        name: str | None = None,
        first_name: str = "Test",
        last_name: str = "User",
        phone: str | None = None,
    ) -> AuthedUser:
        async with database.session() as db:
            user = User(email=email, password_hash=hash_password(TEST_PASSWORD))
            for role in roles:
                user.roles.append(UserRole(role=role))
            db.add(user)
            await db.flush()
            if ROLE_ORGANIZER in roles:
                db.add(OrganizerProfile(user_id=user.id, name=name or email.split("@")[0]))
            if ROLE_PARTICIPANT in roles:
                db.add(
                    ParticipantProfile(
                        user_id=user.id,
                        first_name=first_name,
                        last_name=last_name,
                        email=email,
                        phone=phone,
                    )
                )
            await db.commit()
            user_id = user.id
        return AuthedUser(
            id=user_id,
            email=email,
            roles=list(roles),
            token=create_access_token(user_id, email, roles, settings),
        )

    return _make


@pytest_asyncio.fixture
async def organizer(make_user: Callable[..., Awaitable[AuthedUser]]) -> AuthedUser:
    return await make_user("org@example.com", ROLE_ORGANIZER, name="PyCon Team")


@pytest_asyncio.fixture
async def participant(make_user: Callable[..., Awaitable[AuthedUser]]) -> AuthedUser:
    return await make_user(
        "alice@example.com", ROLE_PARTICIPANT, first_name="Alice", last_name="Smith", phone="+100200300"
    )


@pytest_asyncio.fixture
async def admin(make_user: Callable[..., Awaitable[AuthedUser]]) -> AuthedUser:
    return await make_user("admin@example.com", ROLE_ADMIN)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def event_payload(**overrides: Any) -> dict[str, Any]:
    start = datetime.now(timezone.utc) + timedelta(days=7)
    payload: dict[str, Any] = {
        "title": "Python Meetup",
        "description": "Talks and pizza",
        "start_at": start.isoformat(),
        "end_at": (start + timedelta(hours=3)).isoformat(),
        "location": "Main hall",
        "is_online": False,
        "is_public": True,
        "category_ids": [],
        "ticket_types": [{"name": "Standard", "price": "0", "capacity": 10}],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_event(client: AsyncClient, database: Database) -> Callable[..., Awaitable[CreatedEvent]]:
    """Create an event through the API and return its id with ticket type ids."""

    async def _make(
        owner: AuthedUser,
        *,
        capacity: int = 10,
        price: Decimal | str | int = 0,
        **overrides: Any,
    ) -> CreatedEvent:
        overrides.setdefault("ticket_types", [{"name": "Standard", "price": str(price), "capacity": capacity}])
        response = await client.post("/api/v1/events", json=event_payload(**overrides), headers=owner.headers)
        assert response.status_code == 201, response.text
        event_id = response.json()["id"]
        async with database.session() as db:
            result = await db.execute(
                select(TicketType.id).where(TicketType.event_id == event_id).order_by(TicketType.id)
            )
            ticket_type_ids = list(result.scalars().all())
        return CreatedEvent(id=event_id, ticket_type_ids=ticket_type_ids)

    return _make


@pytest.fixture
def new_event_payload() -> Callable[..., dict[str, Any]]:
    return event_payload


@pytest.fixture
def register(client: AsyncClient) -> Callable[..., Awaitable[Response]]:
    """POST a registration for ``email``; extra keyword arguments override the body.

    With ``email=None`` nothing but the ticket goes in, so a keyword ``email``
    can still be sent on its own.
    """

    async def _register(
        event_id: int,
        ticket_type_id: int,
        email: str | None,
        /,
        *,
        headers: dict[str, str] | None = None,
        **overrides: Any,
    ) -> Response:
        body: dict[str, Any] = {"ticket_type_id": ticket_type_id}
        if email is not None:
            body.update(
                first_name="Guest",
                last_name=email.split("@")[0].capitalize(),
                email=email,
            )
        body.update(overrides)
        return await client.post(f"/api/v1/events/{event_id}/registrations", json=body, headers=headers or {})

    return _register
