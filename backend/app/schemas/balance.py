# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from app.models.enums import LeaveType

MAX_BALANCE_BATCH = 1000

# ---------------------------------------------------------------------------
# Balance response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    """Balance of one leave type for one employee and year."""

    leave_type: LeaveType
    year: int
    total_days: int
    used_days: int
    remaining_days: int
    is_default: bool  # True when no row exists yet and the policy default is shown
    updated_at: datetime | None


class BalanceListResponse(BaseModel):
    """All leave type balances of an employee for a year."""

    employee_id: uuid.UUID
    year: int
    items: list[BalanceResponse]


# ---------------------------------------------------------------------------
# Administration payloads
# ---------------------------------------------------------------------------


class InitializeBalancesRequest(BaseModel):
    """Create missing balance rows with policy defaults."""

    employee_ids: list[uuid.UUID] = Field(min_length=1, max_length=MAX_BALANCE_BATCH)
    year: int | None = Field(default=None, ge=2000, le=2100)


class BalanceTotalUpdate(BaseModel):
    """New allotment for one leave type."""

    leave_type: LeaveType
    total_days: int = Field(ge=0)


class UpdateBalancesRequest(BaseModel):
    """Set total allotments for a batch of employees. Used days are preserved."""

    employee_ids: list[uuid.UUID] = Field(min_length=1, max_length=MAX_BALANCE_BATCH)
    year: int | None = Field(default=None, ge=2000, le=2100)
    updates: list[BalanceTotalUpdate] = Field(min_length=1)


class BalanceBatchResponse(BaseModel):
    """Result of a batch balance operation."""

    year: int
    employees: int
    created: int
    updated: int
