"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from meetup.auth.router import router as auth_router
from meetup.catalog.router import router as catalog_router
from meetup.config import Settings, get_settings
from meetup.database import Database
from meetup.email.dispatcher import EmailDispatcher
from meetup.email.service import BaseEmailProvider, EmailService, create_provider
from meetup.export.router import router as export_router
from meetup.health.router import router as health_router
from meetup.middleware import setup_middleware
from meetup.moderation.router import router as admin_router
from meetup.redis_client import close_redis, create_redis
from meetup.registrations.router import router as registrations_router
from meetup.reminders.sweeper import ReminderSweeper
from meetup.users.router import router as users_router

logger = structlog.get_logger()


async def init_services(app: FastAPI) -> None:
    """Build the per-process collaborators and hang them on ``app.state``."""
    settings: Settings = app.state.settings
    provider: BaseEmailProvider = app.state.email_provider or create_provider(settings)

    database = Database(settings.database_url, echo=settings.debug)
    dispatcher = EmailDispatcher(
        EmailService(provider),
        queue_size=settings.email_queue_size,
        workers=settings.email_workers,
    )
    dispatcher.start()
    sweeper = ReminderSweeper(database, dispatcher, interval_seconds=settings.reminder_interval_seconds)
    if settings.reminders_enabled:
        sweeper.start()

    app.state.db = database
    app.state.email_dispatcher = dispatcher
    app.state.reminder_sweeper = sweeper
    app.state.redis = create_redis(settings.redis_url) if settings.redis_url else None
    logger.info("services_started", environment=settings.environment)


async def close_services(app: FastAPI) -> None:
    """Stop background work first, then release connections."""
    await app.state.reminder_sweeper.stop()
    await app.state.email_dispatcher.stop()
    await close_redis(app.state.redis)
    await app.state.db.dispose()
    logger.info("services_stopped")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    await init_services(app)
    yield
    await close_services(app)


def create_app(settings: Settings | None = None, *, email_provider: BaseEmailProvider | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Meetup Reservation API",
        description="Event registration and ticketing backend",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.email_provider = email_provider
    app.state.redis = None

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(catalog_router)
    app.include_router(registrations_router)
    app.include_router(export_router)
    app.include_router(admin_router)

    return app


app = create_app()
