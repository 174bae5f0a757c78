# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query

from app.api.deps import AuthDep, HRDep
from app.config import get_settings
from app.db import SessionDep
from app.exceptions import AuthorizationError
from app.schemas.balance import (
    BalanceBatchResponse,
    BalanceListResponse,
    InitializeBalancesRequest,
    UpdateBalancesRequest,
)
from app.services import balance as balance_service

balances_router = APIRouter(prefix="/balances", tags=["balances"])

employee_balance_router = APIRouter(prefix="/employees/{employee_id}/balances", tags=["balances"])


@balances_router.get("/me", response_model=BalanceListResponse)
async def get_my_balances(
    session: SessionDep,
    auth: AuthDep,
    year: int | None = Query(default=None, ge=2000, le=2100),
) -> BalanceListResponse:
    """Get the caller's balances for every leave type."""
    return await balance_service.get_employee_balances(session, auth.user_id, year)


@balances_router.post("/initialize", response_model=BalanceBatchResponse)
async def initialize_balances(
    payload: InitializeBalancesRequest,
    session: SessionDep,
    auth: HRDep,
) -> BalanceBatchResponse:
    """Create missing balance rows with policy defaults (HR only)."""
    return await balance_service.initialize_balances(session, auth, payload)


@balances_router.put("", response_model=BalanceBatchResponse)
async def update_balances(
    payload: UpdateBalancesRequest,
    session: SessionDep,
    auth: HRDep,
) -> BalanceBatchResponse:
    """Set total allotments for a batch of employees (HR only)."""
    return await balance_service.update_balance_totals(session, auth, payload)


@employee_balance_router.get("", response_model=BalanceListResponse)
async def get_employee_balances(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    year: int | None = Query(default=None, ge=2000, le=2100),
) -> BalanceListResponse:
    """Get an employee's balances. Employees may only read their own."""
    if employee_id != auth.user_id and not auth.has_role(get_settings().hr_roles):
        raise AuthorizationError("Not authorized to view this employee's balances")
    return await balance_service.get_employee_balances(session, employee_id, year)
