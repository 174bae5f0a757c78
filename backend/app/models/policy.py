from __future__ import annotations

from datetime import UTC, datetime

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import SoftDeleteMixin


def _now_utc() -> datetime:
    return datetime.now(UTC)


class LeaveTypeConfig(SoftDeleteMixin, table=True):
    """Stored policy for one leave type. Missing types fall back to built-in defaults."""

    __tablename__ = "leave_type_config"

    leave_type: str = Field(primary_key=True, max_length=50)
    display_name: str = Field(max_length=100)
    default_balance: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    auto_approve_enabled: bool = Field(default=False, sa_column_kwargs={"server_default": sa.text("false")})
    auto_approve_threshold_days: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    bypass_conflict_check: bool = Field(default=False, sa_column_kwargs={"server_default": sa.text("false")})
    updated_at: datetime = Field(
        default_factory=_now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": sa.func.now()},
    )

    def auto_approves(self, days: int) -> bool:
        return self.auto_approve_enabled and days <= self.auto_approve_threshold_days
