# ruff: noqa: TC001
from __future__ import annotations

from datetime import datetime
from typing import Self

from pydantic import BaseModel, Field, model_validator

from app.models.enums import LeaveType


class LeavePolicyResponse(BaseModel):
    """Effective policy of one leave type."""

    leave_type: LeaveType
    display_name: str
    default_balance: int
    auto_approve_enabled: bool
    auto_approve_threshold_days: int
    bypass_conflict_check: bool
    is_default: bool  # True when built-in defaults apply (no stored row)
    updated_at: datetime | None


class LeavePolicyListResponse(BaseModel):
    """Policies for every leave type."""

    items: list[LeavePolicyResponse]


class UpdateLeavePolicyRequest(BaseModel):
    """Upsert payload for one leave type policy."""

    leave_type: LeaveType
    display_name: str | None = Field(default=None, max_length=100)
    default_balance: int = Field(ge=0)
    auto_approve_enabled: bool = False
    auto_approve_threshold_days: int = Field(default=0, ge=0)
    bypass_conflict_check: bool = False

    @model_validator(mode="after")
    def _validate_threshold(self) -> Self:
        if self.auto_approve_enabled and self.auto_approve_threshold_days < 1:
            msg = "auto_approve_threshold_days must be at least 1 when auto-approval is enabled"
            raise ValueError(msg)
        return self


class UpdateLeavePoliciesRequest(BaseModel):
    """Batch of policy upserts."""

    items: list[UpdateLeavePolicyRequest] = Field(min_length=1)

    @model_validator(mode="after")
    def _validate_unique_types(self) -> Self:
        types = [item.leave_type for item in self.items]
        if len(types) != len(set(types)):
            msg = "each leave_type may appear only once"
            raise ValueError(msg)
        return self
