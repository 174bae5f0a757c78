# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Self

from pydantic import BaseModel, Field, model_validator

from app.models.enums import LeaveStatus, LeaveType

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class SubmitLeavePayload(BaseModel):
    """Request body for submitting a new leave request."""

    leave_type: LeaveType
    start_date: date
    end_date: date
    note: str | None = Field(default=None, max_length=1000)
    attachment_url: str | None = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end_date < self.start_date:
            msg = "end_date must not be before start_date"
            raise ValueError(msg)
        return self


class DecisionPayload(BaseModel):
    """Request body for manager and HR decisions."""

    approve: bool
    comment: str | None = Field(default=None, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class LeaveRequestResponse(BaseModel):
    """Response schema for a single leave request."""

    id: uuid.UUID
    employee_id: uuid.UUID
    manager_id: uuid.UUID
    leave_type: LeaveType
    start_date: date
    end_date: date
    days: int
    note: str | None
    attachment_url: str | None
    status: LeaveStatus
    created_at: datetime
    updated_at: datetime


class LeaveRequestListResponse(BaseModel):
    """Paginated list of leave requests."""

    items: list[LeaveRequestResponse]
    total: int


class ConflictCheckResponse(BaseModel):
    """Outcome of a conflict preview for a date range."""

    has_conflict: bool
    conflicting_request_id: uuid.UUID | None = None
    message: str


class PendingApprovalCountResponse(BaseModel):
    """Requests waiting on the caller's decision."""

    pending_manager: int
    pending_hr: int
    total: int
