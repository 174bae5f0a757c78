# ruff: noqa: TC003
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any

from app.config import get_settings
from app.models.enums import NotificationEvent
from app.services.templates import render_notification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationWorkItem:
    """One message for one recipient, consumed once by the dispatcher."""

    recipient_id: uuid.UUID
    event: NotificationEvent
    subject: str
    message: str
    html_body: str | None = None


def build_work_item(recipient_id: uuid.UUID, event: NotificationEvent, **context: Any) -> NotificationWorkItem:
    """Render the event's templates into a work item."""
    rendered = render_notification(event, **context)
    return NotificationWorkItem(
        recipient_id=recipient_id,
        event=event,
        subject=rendered.subject,
        message=rendered.text,
        html_body=rendered.html,
    )


class NotificationQueue:
    """FIFO buffer between business operations and the dispatcher."""

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[NotificationWorkItem] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def enqueue(self, item: NotificationWorkItem) -> bool:
        """Add an item without waiting. A full queue drops the item and returns False."""
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Notification queue full (%d items), dropping %s for %s",
                self._queue.qsize(),
                item.event.value,
                item.recipient_id,
            )
            return False
        return True

    async def dequeue(self) -> NotificationWorkItem:
        """Wait for the next item. Cancellation propagates to the caller."""
        return await self._queue.get()

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    def qsize(self) -> int:
        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()


_notification_queue: NotificationQueue | None = None


def get_notification_queue() -> NotificationQueue:
    """Return the process-wide queue, created with the configured capacity."""
    global _notification_queue
    if _notification_queue is None:
        _notification_queue = NotificationQueue(maxsize=get_settings().notification_queue_size)
    return _notification_queue


def set_notification_queue(queue: NotificationQueue | None) -> None:
    """Override the queue (for testing). ``None`` recreates it on next access."""
    global _notification_queue
    _notification_queue = queue


def notify(recipient_id: uuid.UUID, event: NotificationEvent, **context: Any) -> bool:
    """Render and enqueue a notification. Never raises."""
    try:
        item = build_work_item(recipient_id, event, **context)
    except Exception:
        logger.exception("Failed to render %s notification for %s", event.value, recipient_id)
        return False
    return get_notification_queue().enqueue(item)
