from __future__ import annotations

import enum


class LeaveType(enum.StrEnum):
    """Category of absence. Each type carries its own policy."""

    ANNUAL = "ANNUAL"
    SICK = "SICK"
    EMERGENCY = "EMERGENCY"
    UNPAID = "UNPAID"
    MATERNITY = "MATERNITY"
    PATERNITY = "PATERNITY"


class LeaveStatus(enum.StrEnum):
    """State machine for leave requests."""

    PENDING_MANAGER = "PENDING_MANAGER"
    PENDING_HR = "PENDING_HR"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (LeaveStatus.APPROVED, LeaveStatus.REJECTED, LeaveStatus.CANCELLED)


class LeaveAuditAction(enum.StrEnum):
    """Action recorded in the leave audit trail."""

    SUBMITTED = "SUBMITTED"
    MANAGER_APPROVED = "MANAGER_APPROVED"
    MANAGER_REJECTED = "MANAGER_REJECTED"
    HR_APPROVED = "HR_APPROVED"
    HR_REJECTED = "HR_REJECTED"
    CANCELLED = "CANCELLED"


class DayCountMode(enum.StrEnum):
    """How the number of leave days in a date range is counted."""

    CALENDAR = "CALENDAR"
    BUSINESS = "BUSINESS"


class NotificationEvent(enum.StrEnum):
    """Business event that produced a notification."""

    NEW_REQUEST = "NEW_REQUEST"
    STATUS_UPDATE = "STATUS_UPDATE"
    MANAGER_ACTION_TO_HR = "MANAGER_ACTION_TO_HR"
    CANCELLED = "CANCELLED"
