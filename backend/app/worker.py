"""Notification dispatcher.

Runs inside the API process for its whole lifetime (see ``app.main``).
Drains the notification queue in FIFO order and fans each item out to the
email channel and, when the recipient has device tokens, the push channel.
Items still queued when the drain timeout expires on shutdown are lost.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from app.config import get_settings
from app.services.channels import build_channels
from app.services.employee import get_employee_service
from app.services.notification import get_notification_queue

if TYPE_CHECKING:
    from app.services.channels import NotificationChannel
    from app.services.employee import EmployeeService
    from app.services.notification import NotificationQueue, NotificationWorkItem

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Single background consumer of the notification queue."""

    def __init__(
        self,
        queue: NotificationQueue,
        email_channel: NotificationChannel,
        push_channel: NotificationChannel,
        directory: EmployeeService | None = None,
    ) -> None:
        self.queue = queue
        self.email_channel = email_channel
        self.push_channel = push_channel
        self._directory = directory
        self._task: asyncio.Task[None] | None = None
        self.delivered = 0
        self.failed = 0

    @property
    def directory(self) -> EmployeeService:
        return self._directory if self._directory is not None else get_employee_service()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="notification-dispatcher")
        logger.info("Notification dispatcher started")

    async def stop(self, drain_timeout: float | None = None) -> None:
        """Drain the queue for up to ``drain_timeout`` seconds, then cancel the loop."""
        if self._task is None:
            return
        if drain_timeout is None:
            drain_timeout = get_settings().notification_drain_timeout_seconds
        try:
            await asyncio.wait_for(self.queue.join(), timeout=drain_timeout)
        except TimeoutError:
            logger.warning(
                "Notification drain timed out after %.1fs, abandoning %d item(s)",
                drain_timeout,
                self.queue.qsize(),
            )
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info(
            "Notification dispatcher stopped: delivered=%d failed=%d",
            self.delivered,
            self.failed,
        )

    async def _run(self) -> None:
        while True:
            await self._handle(await self.queue.dequeue())

    async def drain(self) -> int:
        """Dispatch every queued item in the current task. Returns how many were handled."""
        handled = 0
        while not self.queue.empty():
            await self._handle(await self.queue.dequeue())
            handled += 1
        return handled

    async def _handle(self, item: NotificationWorkItem) -> None:
        try:
            await self.dispatch(item)
        except Exception:
            self.failed += 1
            logger.exception("Notification dispatch failed for %s", item.recipient_id)
        finally:
            self.queue.task_done()

    async def dispatch(self, item: NotificationWorkItem) -> None:
        """Send one item on every applicable channel. Channel failures are logged, not raised."""
        recipient = await self.directory.get_employee(item.recipient_id)
        if recipient is None:
            logger.warning("Notification recipient %s not found, dropping %s", item.recipient_id, item.event.value)
            self.failed += 1
            return

        channels = [self.email_channel]
        if recipient.device_tokens:
            channels.append(self.push_channel)

        results = await asyncio.gather(
            *(channel.send(recipient, item) for channel in channels),
            return_exceptions=True,
        )
        for channel, result in zip(channels, results, strict=True):
            if isinstance(result, BaseException):
                self.failed += 1
                logger.error(
                    "%s channel failed for %s (%s): %s",
                    channel.name,
                    recipient.id,
                    item.event.value,
                    result,
                    exc_info=result,
                )
            else:
                self.delivered += 1


def create_dispatcher() -> NotificationDispatcher:
    """Dispatcher wired to the process-wide queue and the configured channels."""
    email_channel, push_channel = build_channels(get_settings())
    return NotificationDispatcher(get_notification_queue(), email_channel, push_channel)

