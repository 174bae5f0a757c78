# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import SoftDeleteMixin, TimestampMixin, UUIDBase
from app.models.enums import LeaveStatus


class LeaveRequest(UUIDBase, TimestampMixin, SoftDeleteMixin, table=True):
    """One employee's request for a contiguous date range of one leave type."""

    __tablename__ = "leave_request"
    __table_args__ = (
        sa.Index("ix_leave_request_employee_status", "employee_id", "status"),
        sa.Index("ix_leave_request_manager_status", "manager_id", "status"),
        sa.CheckConstraint("start_date <= end_date", name="ck_leave_request_date_order"),
    )

    employee_id: uuid.UUID = Field(index=True)
    manager_id: uuid.UUID
    leave_type: str = Field(max_length=50)
    start_date: date
    end_date: date
    days: int
    note: str | None = Field(default=None, max_length=1000)
    attachment_url: str | None = Field(default=None, max_length=500)
    status: str = Field(
        default=LeaveStatus.PENDING_MANAGER,
        max_length=50,
        index=True,
        sa_column_kwargs={"server_default": "PENDING_MANAGER"},
    )
