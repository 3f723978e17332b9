"""
Fire-and-forget email delivery.

Request handlers and the reminder sweep enqueue messages and move on. A fixed
pool of worker tasks drains the bounded queue; when it is full new messages
are dropped and logged instead of blocking the caller.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field
from typing import Any

import structlog

from meetup.email.service import TEMPLATE_NAMES, EmailService

logger = structlog.get_logger()


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    template_name: str
    context: dict[str, Any] = field(default_factory=dict)


class EmailDispatcher:
    """Bounded queue plus worker pool in front of an ``EmailService``."""

    def __init__(self, service: EmailService, *, queue_size: int = 1000, workers: int = 4) -> None:
        self.service = service
        self._queue: asyncio.Queue[OutgoingEmail] = asyncio.Queue(maxsize=queue_size)
        self._worker_count = max(1, workers)
        self._workers: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"email-worker-{i}") for i in range(self._worker_count)
        ]
        logger.info("email_dispatcher_started", workers=self._worker_count)

    async def stop(self) -> None:
        """Cancel the workers. Messages still queued are discarded."""
        workers, self._workers = self._workers, []
        for task in workers:
            task.cancel()
        for task in workers:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if workers:
            logger.info("email_dispatcher_stopped", pending=self._queue.qsize())

    async def join(self) -> None:
        """Wait until every queued message has been attempted."""
        await self._queue.join()

    def dispatch(self, to: str, template_name: str, context: dict[str, Any]) -> bool:
        """
        Enqueue a templated email without waiting for delivery.

        Returns False when the message was dropped.
        """
        if template_name not in TEMPLATE_NAMES:
            msg = f"Unknown template: {template_name}"
            raise ValueError(msg)
        try:
            self._queue.put_nowait(OutgoingEmail(to=to, template_name=template_name, context=context))
        except asyncio.QueueFull:
            logger.warning("email_dropped", to=to, template=template_name, reason="queue_full")
            return False
        return True

    async def _worker(self, index: int) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self.service.send_template(message.to, message.template_name, message.context)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "email_send_failed",
                    to=message.to,
                    template=message.template_name,
                    worker=index,
                )
            finally:
                self._queue.task_done()
