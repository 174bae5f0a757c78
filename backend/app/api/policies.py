# ruff: noqa: TC001
from __future__ import annotations

from fastapi import APIRouter

from app.api.deps import AuthDep, HRDep
from app.db import SessionDep
from app.schemas.policy import LeavePolicyListResponse, UpdateLeavePoliciesRequest
from app.services import policy as policy_service

router = APIRouter(prefix="/leave-types", tags=["leave-types"])


@router.get("", response_model=LeavePolicyListResponse)
async def list_leave_types(
    session: SessionDep,
    auth: AuthDep,
) -> LeavePolicyListResponse:
    """List the effective policy of every leave type."""
    return await policy_service.list_policies(session)


@router.put("", response_model=LeavePolicyListResponse)
async def update_leave_types(
    payload: UpdateLeavePoliciesRequest,
    session: SessionDep,
    auth: HRDep,
) -> LeavePolicyListResponse:
    """Create or update leave type policies (HR only)."""
    return await policy_service.update_policies(session, auth, payload)
