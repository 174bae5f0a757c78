import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from app.config import get_settings
from app.db import SessionDep
from app.services.notification import get_notification_queue

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok", "degraded"]
    version: str
    environment: str
    database: bool
    notification_queue_depth: int
    notifications_dropped: int


@router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep) -> HealthResponse:
    """Report database connectivity and notification backlog."""
    settings = get_settings()
    queue = get_notification_queue()

    database = True
    try:
        await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check: database connectivity failed")
        database = False

    return HealthResponse(
        status="ok" if database else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database=database,
        notification_queue_depth=queue.qsize(),
        notifications_dropped=queue.dropped,
    )
