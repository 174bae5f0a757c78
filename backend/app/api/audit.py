# ruff: noqa: B008
from __future__ import annotations

from fastapi import APIRouter, Query

from app.api.deps import AuthDep
from app.db import SessionDep
from app.schemas.audit import DecisionLogResponse
from app.services import audit as audit_service

audit_router = APIRouter(prefix="/audit", tags=["audit"])


@audit_router.get("/decisions", response_model=DecisionLogResponse)
async def list_my_decisions(
    session: SessionDep,
    auth: AuthDep,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> DecisionLogResponse:
    """Approvals and rejections made by the caller, newest first."""
    return await audit_service.list_actor_decisions(session, auth.user_id, offset, limit)
