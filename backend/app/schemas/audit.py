# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel

from app.models.enums import LeaveAuditAction, LeaveStatus, LeaveType


class AuditEntryResponse(BaseModel):
    """One transition in a request's history."""

    id: uuid.UUID
    request_id: uuid.UUID
    actor_id: uuid.UUID
    action: LeaveAuditAction
    new_status: LeaveStatus
    comment: str | None
    created_at: datetime


class AuditEntryListResponse(BaseModel):
    """Ordered audit trail."""

    items: list[AuditEntryResponse]
    total: int


class DecisionLogEntry(BaseModel):
    """A decision taken by the caller, joined with the request it concerned."""

    audit_id: uuid.UUID
    request_id: uuid.UUID
    employee_id: uuid.UUID
    leave_type: LeaveType
    start_date: date
    end_date: date
    days: int
    current_status: LeaveStatus
    action: LeaveAuditAction
    comment: str | None
    created_at: datetime


class DecisionLogResponse(BaseModel):
    """Decisions taken by the caller, newest first."""

    items: list[DecisionLogEntry]
    total: int
