from sqlmodel import SQLModel

from app.models.audit import LeaveAuditLog
from app.models.balance import LeaveBalance
from app.models.base import SoftDeleteMixin, TimestampMixin, UUIDBase
from app.models.enums import (
    DayCountMode,
    LeaveAuditAction,
    LeaveStatus,
    LeaveType,
    NotificationEvent,
)
from app.models.policy import LeaveTypeConfig
from app.models.request import LeaveRequest

__all__ = [
    "DayCountMode",
    "LeaveAuditAction",
    "LeaveAuditLog",
    "LeaveBalance",
    "LeaveRequest",
    "LeaveStatus",
    "LeaveType",
    "LeaveTypeConfig",
    "NotificationEvent",
    "SQLModel",
    "SoftDeleteMixin",
    "TimestampMixin",
    "UUIDBase",
]
