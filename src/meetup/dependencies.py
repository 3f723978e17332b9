"""Shared FastAPI dependencies.

Everything here resolves objects built by ``meetup.main.init_services`` and
stored on ``app.state``.
"""

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from meetup.config import Settings
from meetup.database import Database
from meetup.email.dispatcher import EmailDispatcher


def get_database(request: Request) -> Database:
    return request.app.state.db


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session for the duration of one request."""
    database: Database = request.app.state.db
    async with database.session() as session:
        yield session


def get_email_dispatcher(request: Request) -> EmailDispatcher:
    return request.app.state.email_dispatcher


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
