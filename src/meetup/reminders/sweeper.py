"""
Periodic reminder emails.

Every tick looks at two look-ahead windows (about a day and about an hour
before start) and emails the current registrants of active events in them.
``reminder_sent`` holds one row per (event, window kind) and makes each batch
go out once, across ticks and across sweeper processes.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from meetup.database import Database
from meetup.db.models import EVENT_ACTIVE, Event, ReminderSent
from meetup.email.dispatcher import EmailDispatcher
from meetup.registrations.service import current_registrations, participant_name

logger = structlog.get_logger()


@dataclass(frozen=True)
class ReminderWindow:
    kind: str
    template: str
    starts_after: timedelta
    starts_before: timedelta


WINDOWS: tuple[ReminderWindow, ...] = (
    ReminderWindow("24h", "reminder_24h", timedelta(hours=23), timedelta(hours=25)),
    ReminderWindow("1h", "reminder_1h", timedelta(minutes=50), timedelta(minutes=70)),
)


class ReminderSweeper:
    """Cancellable background loop bound to the application lifespan."""

    def __init__(self, database: Database, dispatcher: EmailDispatcher, interval_seconds: float = 300) -> None:
        self.database = database
        self.dispatcher = dispatcher
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="reminder-sweeper")
        logger.info("reminder_sweeper_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("reminder_sweeper_stopped")

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("reminder_sweep_failed")
            await asyncio.sleep(self.interval_seconds)

    async def run_once(self, now: datetime | None = None) -> int:
        """Run one tick. Returns the number of reminder emails queued."""
        now = now or datetime.now(timezone.utc)
        queued = 0
        for window in WINDOWS:
            async with self.database.session() as db:
                queued += await self._sweep_window(db, window, now)
        return queued

    async def _sweep_window(self, db: AsyncSession, window: ReminderWindow, now: datetime) -> int:
        already_sent = exists().where(
            ReminderSent.event_id == Event.id,
            ReminderSent.reminder_type == window.kind,
        )
        result = await db.execute(
            select(Event.id, Event.title, Event.start_at, Event.location)
            .where(
                Event.status == EVENT_ACTIVE,
                Event.start_at >= now + window.starts_after,
                Event.start_at <= now + window.starts_before,
                ~already_sent,
            )
            .order_by(Event.start_at, Event.id)
        )
        # Plain rows: a rollback below must not expire what later iterations read.
        events = result.all()

        queued = 0
        for event in events:
            registrations = await current_registrations(db, event.id)
            if not registrations:
                # No marker: people who register later still get the reminder.
                continue

            db.add(ReminderSent(event_id=event.id, reminder_type=window.kind, sent_at=now))
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                logger.info("reminder_already_claimed", event_id=event.id, kind=window.kind)
                continue

            for registration in registrations:
                if self.dispatcher.dispatch(
                    registration.email,
                    window.template,
                    {
                        "participant_name": participant_name(registration),
                        "event_title": event.title,
                        "start_at": event.start_at,
                        "location": event.location,
                    },
                ):
                    queued += 1
            logger.info(
                "reminder_batch_sent",
                event_id=event.id,
                kind=window.kind,
                recipients=len(registrations),
            )
        return queued
