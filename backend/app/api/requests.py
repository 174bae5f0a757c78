# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query, Response, status

from app.api.deps import AuthDep, HRDep
from app.db import SessionDep
from app.models.enums import LeaveStatus, LeaveType
from app.schemas.audit import AuditEntryListResponse
from app.schemas.request import (
    ConflictCheckResponse,
    DecisionPayload,
    LeaveRequestListResponse,
    LeaveRequestResponse,
    PendingApprovalCountResponse,
    SubmitLeavePayload,
)
from app.services import conflict as conflict_service
from app.services import request as request_service

requests_router = APIRouter(prefix="/requests", tags=["requests"])


@requests_router.post("", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED)
async def submit_request(
    payload: SubmitLeavePayload,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Submit a new leave request for the caller."""
    return await request_service.submit_request(session, auth, payload)


@requests_router.get("", response_model=LeaveRequestListResponse)
async def list_requests(
    session: SessionDep,
    auth: HRDep,
    status_filter: LeaveStatus | None = Query(default=None, alias="status"),
    leave_type: LeaveType | None = Query(default=None),
    employee_id: uuid.UUID | None = Query(default=None),
    manager_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LeaveRequestListResponse:
    """List all leave requests with optional filters (HR only)."""
    return await request_service.list_requests(
        session,
        employee_id=employee_id,
        manager_id=manager_id,
        status_filter=status_filter,
        leave_type=leave_type,
        offset=offset,
        limit=limit,
    )


@requests_router.get("/mine", response_model=LeaveRequestListResponse)
async def list_my_requests(
    session: SessionDep,
    auth: AuthDep,
    status_filter: LeaveStatus | None = Query(default=None, alias="status"),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LeaveRequestListResponse:
    """List the caller's own leave requests."""
    return await request_service.list_requests(
        session, employee_id=auth.user_id, status_filter=status_filter, offset=offset, limit=limit
    )


@requests_router.get("/team", response_model=LeaveRequestListResponse)
async def list_team_requests(
    session: SessionDep,
    auth: AuthDep,
    status_filter: LeaveStatus | None = Query(default=None, alias="status"),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LeaveRequestListResponse:
    """List requests of the employees the caller manages."""
    return await request_service.list_requests(
        session, manager_id=auth.user_id, status_filter=status_filter, offset=offset, limit=limit
    )


@requests_router.get("/conflicts", response_model=ConflictCheckResponse)
async def check_conflicts(
    session: SessionDep,
    auth: AuthDep,
    start_date: date = Query(),
    end_date: date = Query(),
) -> ConflictCheckResponse:
    """Check whether a date range overlaps one of the caller's active requests."""
    return await conflict_service.check_conflict(session, auth.user_id, start_date, end_date)


@requests_router.get("/pending-counts", response_model=PendingApprovalCountResponse)
async def pending_counts(
    session: SessionDep,
    auth: AuthDep,
) -> PendingApprovalCountResponse:
    """Number of requests waiting on the caller's decision."""
    return await request_service.pending_approval_counts(session, auth)


@requests_router.get("/{request_id}", response_model=LeaveRequestResponse)
async def get_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Get a single leave request."""
    return await request_service.get_request(session, auth, request_id)


@requests_router.get("/{request_id}/history", response_model=AuditEntryListResponse)
async def get_request_history(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> AuditEntryListResponse:
    """Ordered audit trail of a leave request."""
    return await request_service.get_request_history(session, auth, request_id)


@requests_router.post("/{request_id}/manager-decision", response_model=LeaveRequestResponse)
async def manager_decision(
    request_id: uuid.UUID,
    payload: DecisionPayload,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Approve or reject a request as its assigned manager."""
    return await request_service.manager_decide(session, auth, request_id, payload)


@requests_router.post("/{request_id}/hr-decision", response_model=LeaveRequestResponse)
async def hr_decision(
    request_id: uuid.UUID,
    payload: DecisionPayload,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Give the final HR approval or rejection."""
    return await request_service.hr_decide(session, auth, request_id, payload)


@requests_router.post("/{request_id}/cancel", response_model=LeaveRequestResponse)
async def cancel_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Cancel a pending or approved leave request."""
    return await request_service.cancel_request(session, auth, request_id)


@requests_router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: HRDep,
) -> Response:
    """Soft-delete a rejected or cancelled leave request (HR only)."""
    await request_service.delete_request(session, auth, request_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
