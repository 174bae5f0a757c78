"""Reporting service: department coverage, the leave calendar, decision exports
and employees still missing balance rows."""

from __future__ import annotations

import csv
import io
import logging
from collections import defaultdict
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from app.config import get_settings
from app.db import INCLUDE_DELETED
from app.models.audit import LeaveAuditLog
from app.models.balance import LeaveBalance
from app.models.enums import LeaveAuditAction, LeaveStatus, LeaveType
from app.models.request import LeaveRequest
from app.schemas.report import (
    CalendarLeave,
    CalendarManagerGroup,
    CalendarResponse,
    CoverageResponse,
    DepartmentCoverage,
    EmployeeSummary,
    EmployeeSummaryListResponse,
)
from app.services.audit import DECISION_ACTIONS
from app.services.employee import get_employee_service

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import AuthContext
    from app.services.employee import EmployeeInfo, EmployeeService

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"

DECISION_EXPORT_FIELDS = [
    "Department",
    "Manager",
    "Request ID",
    "Employee",
    "Leave Type",
    "Start Date",
    "End Date",
    "Days",
    "Current Status",
    "Action",
    "Action Date",
    "Comment",
]


def _is_hr(auth: AuthContext) -> bool:
    return auth.has_role(get_settings().hr_roles)


def _is_manager(auth: AuthContext) -> bool:
    return auth.has_role(get_settings().manager_roles)


async def _lookup(
    directory: EmployeeService,
    cache: dict[uuid.UUID, EmployeeInfo | None],
    employee_id: uuid.UUID,
) -> EmployeeInfo | None:
    if employee_id not in cache:
        cache[employee_id] = await directory.get_employee(employee_id)
    return cache[employee_id]


def _full_name(info: EmployeeInfo | None) -> str:
    return info.full_name if info is not None else UNKNOWN


# ---------------------------------------------------------------------------
# Department coverage
# ---------------------------------------------------------------------------


async def department_coverage(
    session: AsyncSession,
    auth: AuthContext,
    on_date: date | None = None,
) -> CoverageResponse:
    """Headcount, people on approved leave and capacity per department.

    HR sees every department. Managers see only their own department.
    Employees without a department are not counted.
    """
    on_date = on_date or date.today()
    directory = get_employee_service()

    if _is_hr(auth):
        employees = await directory.list_employees()
    else:
        requester = await directory.get_employee(auth.user_id)
        if requester is None or requester.department_id is None:
            return CoverageResponse(on_date=on_date, items=[])
        employees = await directory.list_employees(requester.department_id)

    by_department: dict[uuid.UUID, list[uuid.UUID]] = defaultdict(list)
    for employee in employees:
        if employee.department_id is not None:
            by_department[employee.department_id].append(employee.id)

    all_ids = [employee_id for ids in by_department.values() for employee_id in ids]
    on_leave: set[uuid.UUID] = set()
    if all_ids:
        result = await session.execute(
            select(col(LeaveRequest.employee_id))
            .where(
                col(LeaveRequest.employee_id).in_(all_ids),
                col(LeaveRequest.status) == LeaveStatus.APPROVED.value,
                col(LeaveRequest.start_date) <= on_date,
                col(LeaveRequest.end_date) >= on_date,
            )
            .distinct()
        )
        on_leave = set(result.scalars().all())

    items = []
    for department_id, ids in sorted(by_department.items(), key=lambda pair: str(pair[0])):
        absent = sum(1 for employee_id in ids if employee_id in on_leave)
        available = len(ids) - absent
        items.append(
            DepartmentCoverage(
                department_id=department_id,
                total_employees=len(ids),
                on_leave=absent,
                available=available,
                capacity_percentage=round(available / len(ids) * 100, 1),
            )
        )
    return CoverageResponse(on_date=on_date, items=items)


# ---------------------------------------------------------------------------
# Leave calendar
# ---------------------------------------------------------------------------


async def leave_calendar(
    session: AsyncSession,
    auth: AuthContext,
    start_date: date | None = None,
    end_date: date | None = None,
) -> CalendarResponse:
    """Approved leave overlapping the window, scoped by the caller's role.

    HR gets every approved request grouped by manager, managers get their
    team's requests and everyone else gets their own.
    """
    query = select(LeaveRequest).where(col(LeaveRequest.status) == LeaveStatus.APPROVED.value)
    if start_date is not None:
        query = query.where(col(LeaveRequest.end_date) >= start_date)
    if end_date is not None:
        query = query.where(col(LeaveRequest.start_date) <= end_date)

    hr = _is_hr(auth)
    if not hr:
        if _is_manager(auth):
            query = query.where(col(LeaveRequest.manager_id) == auth.user_id)
        else:
            query = query.where(col(LeaveRequest.employee_id) == auth.user_id)

    result = await session.execute(query.order_by(col(LeaveRequest.start_date), col(LeaveRequest.created_at)))
    requests = list(result.scalars().all())

    directory = get_employee_service()
    cache: dict[uuid.UUID, EmployeeInfo | None] = {}
    leaves: list[tuple[uuid.UUID, CalendarLeave]] = []
    for request in requests:
        employee = await _lookup(directory, cache, request.employee_id)
        leaves.append(
            (
                request.manager_id,
                CalendarLeave(
                    request_id=request.id,
                    employee_id=request.employee_id,
                    employee_name=_full_name(employee),
                    leave_type=LeaveType(request.leave_type),
                    start_date=request.start_date,
                    end_date=request.end_date,
                    days=request.days,
                ),
            )
        )

    if not hr:
        return CalendarResponse(leaves=[leave for _, leave in leaves])

    grouped: dict[uuid.UUID, list[CalendarLeave]] = defaultdict(list)
    for manager_id, leave in leaves:
        grouped[manager_id].append(leave)

    groups = []
    for manager_id, manager_leaves in grouped.items():
        manager = await _lookup(directory, cache, manager_id)
        groups.append(
            CalendarManagerGroup(
                manager_id=manager_id,
                manager_name=_full_name(manager),
                department_id=manager.department_id if manager is not None else None,
                leaves=manager_leaves,
            )
        )
    groups.sort(key=lambda g: g.manager_name)
    return CalendarResponse(grouped_by_manager=groups)


# ---------------------------------------------------------------------------
# Decision export
# ---------------------------------------------------------------------------


async def export_decisions_csv(session: AsyncSession, auth: AuthContext) -> str:
    """CSV of every approval or rejection taken by the caller.

    Rows are newest first. HR exports are ordered by department and manager
    before date.
    """
    result = await session.execute(
        select(LeaveAuditLog, LeaveRequest)
        .join(LeaveRequest, col(LeaveRequest.id) == col(LeaveAuditLog.request_id))
        .where(
            col(LeaveAuditLog.actor_id) == auth.user_id,
            col(LeaveAuditLog.action).in_([a.value for a in DECISION_ACTIONS]),
        )
        .order_by(col(LeaveAuditLog.created_at).desc())
        .execution_options(**{INCLUDE_DELETED: True})
    )

    directory = get_employee_service()
    cache: dict[uuid.UUID, EmployeeInfo | None] = {}
    rows = []
    for entry, request in result.all():
        employee = await _lookup(directory, cache, request.employee_id)
        manager = await _lookup(directory, cache, request.manager_id)
        department = employee.department_id if employee is not None else None
        rows.append(
            {
                "Department": str(department) if department is not None else "N/A",
                "Manager": manager.full_name if manager is not None else "N/A",
                "Request ID": str(request.id),
                "Employee": _full_name(employee),
                "Leave Type": LeaveType(request.leave_type).value,
                "Start Date": request.start_date.isoformat(),
                "End Date": request.end_date.isoformat(),
                "Days": request.days,
                "Current Status": LeaveStatus(request.status).value,
                "Action": LeaveAuditAction(entry.action).value,
                "Action Date": entry.created_at.isoformat(),
                "Comment": entry.comment or "",
            }
        )

    if _is_hr(auth):
        # Stable sorts: newest first within manager within department.
        rows.sort(key=lambda row: (row["Department"], row["Manager"]))

    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=DECISION_EXPORT_FIELDS)
    writer.writeheader()
    writer.writerows(rows)
    csv_data = output.getvalue()
    output.close()

    logger.info("Exported %d decision(s) for %s", len(rows), auth.user_id)
    return csv_data


# ---------------------------------------------------------------------------
# Balance onboarding
# ---------------------------------------------------------------------------


async def employees_without_balances(
    session: AsyncSession,
    year: int | None = None,
    offset: int = 0,
    limit: int = 50,
) -> EmployeeSummaryListResponse:
    """Directory employees with no balance row at all for the year."""
    year = year or date.today().year

    result = await session.execute(
        select(col(LeaveBalance.employee_id)).where(col(LeaveBalance.year) == year).distinct()
    )
    with_balances = set(result.scalars().all())

    employees = [e for e in await get_employee_service().list_employees() if e.id not in with_balances]
    return EmployeeSummaryListResponse(
        year=year,
        items=[
            EmployeeSummary(
                id=e.id,
                first_name=e.first_name,
                last_name=e.last_name,
                email=e.email,
                department_id=e.department_id,
            )
            for e in employees[offset : offset + limit]
        ],
        total=len(employees),
    )
