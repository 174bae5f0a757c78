# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

from datetime import UTC, date, datetime

from fastapi import APIRouter, Query, Response

from app.api.deps import AuthDep, HRDep, ManagerOrHRDep
from app.db import SessionDep
from app.schemas.report import CalendarResponse, CoverageResponse, EmployeeSummaryListResponse
from app.services import report as report_service

reports_router = APIRouter(prefix="/reports", tags=["reports"])


@reports_router.get("/coverage", response_model=CoverageResponse)
async def get_department_coverage(
    session: SessionDep,
    auth: ManagerOrHRDep,
    on_date: date | None = Query(default=None, alias="date"),
) -> CoverageResponse:
    """Department staffing on a day (managers see their own department, HR sees all)."""
    return await report_service.department_coverage(session, auth, on_date)


@reports_router.get("/calendar", response_model=CalendarResponse)
async def get_leave_calendar(
    session: SessionDep,
    auth: AuthDep,
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
) -> CalendarResponse:
    """Approved leave overlapping the window, scoped to what the caller may see."""
    return await report_service.leave_calendar(session, auth, start_date, end_date)


@reports_router.get("/decisions.csv")
async def export_my_decisions(
    session: SessionDep,
    auth: ManagerOrHRDep,
) -> Response:
    """Download the caller's approvals and rejections as CSV (managers and HR)."""
    csv_data = await report_service.export_decisions_csv(session, auth)
    filename = f"leave_decisions_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S')}.csv"
    return Response(
        content=csv_data,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@reports_router.get("/employees-without-balances", response_model=EmployeeSummaryListResponse)
async def list_employees_without_balances(
    session: SessionDep,
    auth: HRDep,
    year: int | None = Query(default=None, ge=2000, le=2100),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> EmployeeSummaryListResponse:
    """Employees that have no balance rows for the year yet (HR only)."""
    return await report_service.employees_without_balances(session, year, offset, limit)
