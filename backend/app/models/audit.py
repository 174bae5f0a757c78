# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import UUIDBase


def _now_utc() -> datetime:
    return datetime.now(UTC)


class LeaveAuditLog(UUIDBase, table=True):
    """Immutable record of one leave request status transition."""

    __tablename__ = "leave_audit_log"
    __table_args__ = (sa.Index("ix_leave_audit_request_created", "request_id", "created_at"),)

    request_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("leave_request.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    actor_id: uuid.UUID = Field(index=True)
    action: str = Field(max_length=50)
    new_status: str = Field(max_length=50)
    comment: str | None = Field(default=None, max_length=1000)
    snapshot_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    created_at: datetime = Field(
        default_factory=_now_utc,
        index=True,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
