# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel

from app.models.enums import LeaveType

# ---------------------------------------------------------------------------
# Department coverage
# ---------------------------------------------------------------------------


class DepartmentCoverage(BaseModel):
    """Staffing of one department on a given day."""

    department_id: uuid.UUID
    total_employees: int
    on_leave: int
    available: int
    capacity_percentage: float


class CoverageResponse(BaseModel):
    """Coverage of every department the caller may see."""

    on_date: date
    items: list[DepartmentCoverage]


# ---------------------------------------------------------------------------
# Leave calendar
# ---------------------------------------------------------------------------


class CalendarLeave(BaseModel):
    """An approved leave shown on the calendar."""

    request_id: uuid.UUID
    employee_id: uuid.UUID
    employee_name: str
    leave_type: LeaveType
    start_date: date
    end_date: date
    days: int


class CalendarManagerGroup(BaseModel):
    """Approved leaves of one manager's team."""

    manager_id: uuid.UUID
    manager_name: str
    department_id: uuid.UUID | None
    leaves: list[CalendarLeave]


class CalendarResponse(BaseModel):
    """Employees and managers get a flat list. HR gets leaves grouped by manager."""

    leaves: list[CalendarLeave] | None = None
    grouped_by_manager: list[CalendarManagerGroup] | None = None


# ---------------------------------------------------------------------------
# Directory reports
# ---------------------------------------------------------------------------


class EmployeeSummary(BaseModel):
    """Directory entry listed by HR reports."""

    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    department_id: uuid.UUID | None


class EmployeeSummaryListResponse(BaseModel):
    """Paginated list of employees."""

    year: int
    items: list[EmployeeSummary]
    total: int
