# ruff: noqa: TC003
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import SoftDeleteMixin, TimestampMixin, UUIDBase


class LeaveBalance(UUIDBase, TimestampMixin, SoftDeleteMixin, table=True):
    """Allotment and consumption of one leave type for one employee and year."""

    __tablename__ = "leave_balance"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "year", "leave_type", name="uq_leave_balance_employee_year_type"),
    )

    employee_id: uuid.UUID = Field(index=True)
    year: int
    leave_type: str = Field(max_length=50)
    total_days: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    used_days: int = Field(default=0, sa_column_kwargs={"server_default": "0"})

    @property
    def remaining_days(self) -> int:
        return self.total_days - self.used_days
