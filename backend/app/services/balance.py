from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from app.exceptions import InsufficientBalanceError, ValidationError
from app.models.balance import LeaveBalance
from app.models.enums import LeaveStatus, LeaveType
from app.models.request import LeaveRequest
from app.schemas.balance import BalanceBatchResponse, BalanceListResponse, BalanceResponse
from app.services.policy import LEDGER_EXEMPT_TYPES, get_default_allotment

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import AuthContext
    from app.schemas.balance import InitializeBalancesRequest, UpdateBalancesRequest

logger = logging.getLogger(__name__)


def is_ledger_exempt(leave_type: LeaveType) -> bool:
    return leave_type in LEDGER_EXEMPT_TYPES


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_balance_response(balance: LeaveBalance) -> BalanceResponse:
    """Map a balance row to its response schema."""
    return BalanceResponse(
        leave_type=LeaveType(balance.leave_type),
        year=balance.year,
        total_days=balance.total_days,
        used_days=balance.used_days,
        remaining_days=balance.remaining_days,
        is_default=False,
        updated_at=balance.updated_at,
    )


async def _get_balance(
    session: AsyncSession,
    employee_id: uuid.UUID,
    year: int,
    leave_type: LeaveType,
    *,
    for_update: bool = False,
) -> LeaveBalance | None:
    query = select(LeaveBalance).where(
        col(LeaveBalance.employee_id) == employee_id,
        col(LeaveBalance.year) == year,
        col(LeaveBalance.leave_type) == leave_type.value,
    )
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Ledger operations (run inside the caller's transaction)
# ---------------------------------------------------------------------------


async def get_or_create_balance(
    session: AsyncSession,
    employee_id: uuid.UUID,
    year: int,
    leave_type: LeaveType,
) -> LeaveBalance:
    """Get the balance row with a FOR UPDATE lock, creating it if absent.

    A new row starts with the policy's current default allotment and no used
    days. The row is flushed but not committed.
    """
    balance = await _get_balance(session, employee_id, year, leave_type, for_update=True)
    if balance is None:
        balance = LeaveBalance(
            employee_id=employee_id,
            year=year,
            leave_type=leave_type.value,
            total_days=await get_default_allotment(session, leave_type),
            used_days=0,
        )
        session.add(balance)
        await session.flush()
    return balance


async def deduct(
    session: AsyncSession,
    employee_id: uuid.UUID,
    year: int,
    leave_type: LeaveType,
    days: int,
) -> LeaveBalance | None:
    """Consume ``days`` from the balance. Exempt types return None untouched."""
    if is_ledger_exempt(leave_type):
        return None

    balance = await get_or_create_balance(session, employee_id, year, leave_type)
    if balance.used_days + days > balance.total_days:
        raise InsufficientBalanceError(
            f"Insufficient {leave_type.value} balance: {balance.remaining_days} day(s) remaining, {days} requested"
        )
    balance.used_days += days
    await session.flush()
    logger.info(
        "Deducted %d %s day(s) for employee %s in %d (used %d/%d)",
        days,
        leave_type.value,
        employee_id,
        year,
        balance.used_days,
        balance.total_days,
    )
    return balance


async def restore(
    session: AsyncSession,
    employee_id: uuid.UUID,
    year: int,
    leave_type: LeaveType,
    days: int,
) -> LeaveBalance | None:
    """Return ``days`` to the balance. Used days never drop below zero."""
    if is_ledger_exempt(leave_type):
        return None

    balance = await get_or_create_balance(session, employee_id, year, leave_type)
    balance.used_days = max(0, balance.used_days - days)
    await session.flush()
    logger.info(
        "Restored %d %s day(s) for employee %s in %d (used %d/%d)",
        days,
        leave_type.value,
        employee_id,
        year,
        balance.used_days,
        balance.total_days,
    )
    return balance


async def pending_days(
    session: AsyncSession,
    employee_id: uuid.UUID,
    year: int,
    leave_type: LeaveType,
) -> int:
    """Days requested but not yet decided for (employee, year of start_date, type)."""
    result = await session.execute(
        select(func.coalesce(func.sum(LeaveRequest.days), 0)).where(
            col(LeaveRequest.employee_id) == employee_id,
            col(LeaveRequest.leave_type) == leave_type.value,
            col(LeaveRequest.status).in_([LeaveStatus.PENDING_MANAGER.value, LeaveStatus.PENDING_HR.value]),
            col(LeaveRequest.start_date) >= date(year, 1, 1),
            col(LeaveRequest.start_date) <= date(year, 12, 31),
        )
    )
    return int(result.scalar_one())


async def ensure_available(
    session: AsyncSession,
    employee_id: uuid.UUID,
    year: int,
    leave_type: LeaveType,
    days: int,
) -> None:
    """Raise if ``days`` exceeds what is left after pending requests are honoured."""
    if is_ledger_exempt(leave_type):
        return

    balance = await _get_balance(session, employee_id, year, leave_type)
    if balance is not None:
        remaining = balance.remaining_days
    else:
        remaining = await get_default_allotment(session, leave_type)
    available = remaining - await pending_days(session, employee_id, year, leave_type)
    if days > available:
        raise InsufficientBalanceError(
            f"Insufficient {leave_type.value} balance: {max(available, 0)} day(s) available, {days} requested"
        )


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def get_employee_balances(
    session: AsyncSession,
    employee_id: uuid.UUID,
    year: int | None = None,
) -> BalanceListResponse:
    """Balances of every leave type. Missing rows show the default without being created."""
    year = year or date.today().year
    result = await session.execute(
        select(LeaveBalance).where(
            col(LeaveBalance.employee_id) == employee_id,
            col(LeaveBalance.year) == year,
        )
    )
    rows = {balance.leave_type: balance for balance in result.scalars().all()}

    items: list[BalanceResponse] = []
    for leave_type in LeaveType:
        balance = rows.get(leave_type.value)
        if balance is not None:
            items.append(_build_balance_response(balance))
            continue
        total = await get_default_allotment(session, leave_type)
        items.append(
            BalanceResponse(
                leave_type=leave_type,
                year=year,
                total_days=total,
                used_days=0,
                remaining_days=total,
                is_default=True,
                updated_at=None,
            )
        )

    return BalanceListResponse(employee_id=employee_id, year=year, items=items)


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


async def initialize_balances(
    session: AsyncSession,
    auth: AuthContext,
    payload: InitializeBalancesRequest,
) -> BalanceBatchResponse:
    """Create every missing balance row for the employees, using policy defaults."""
    year = payload.year or date.today().year
    employee_ids = list(dict.fromkeys(payload.employee_ids))

    result = await session.execute(
        select(LeaveBalance.employee_id, LeaveBalance.leave_type).where(
            col(LeaveBalance.employee_id).in_(employee_ids),
            col(LeaveBalance.year) == year,
        )
    )
    existing = {(row.employee_id, row.leave_type) for row in result.all()}
    defaults = {leave_type: await get_default_allotment(session, leave_type) for leave_type in LeaveType}

    created = 0
    for employee_id in employee_ids:
        for leave_type, total in defaults.items():
            if is_ledger_exempt(leave_type) or (employee_id, leave_type.value) in existing:
                continue
            session.add(
                LeaveBalance(
                    employee_id=employee_id,
                    year=year,
                    leave_type=leave_type.value,
                    total_days=total,
                    used_days=0,
                )
            )
            created += 1

    await session.commit()
    logger.info(
        "Initialized %d balance row(s) for %d employee(s) in %d by %s",
        created,
        len(employee_ids),
        year,
        auth.user_id,
    )
    return BalanceBatchResponse(year=year, employees=len(employee_ids), created=created, updated=0)


async def update_balance_totals(
    session: AsyncSession,
    auth: AuthContext,
    payload: UpdateBalancesRequest,
) -> BalanceBatchResponse:
    """Set total allotments, creating rows where missing.

    Used days are preserved, so a total below the days already used is rejected
    and the whole batch is rolled back.
    """
    year = payload.year or date.today().year
    employee_ids = list(dict.fromkeys(payload.employee_ids))

    created = 0
    updated = 0
    try:
        for employee_id in employee_ids:
            for update in payload.updates:
                if is_ledger_exempt(update.leave_type):
                    continue
                balance = await _get_balance(session, employee_id, year, update.leave_type, for_update=True)
                if balance is None:
                    session.add(
                        LeaveBalance(
                            employee_id=employee_id,
                            year=year,
                            leave_type=update.leave_type.value,
                            total_days=update.total_days,
                            used_days=0,
                        )
                    )
                    created += 1
                elif update.total_days < balance.used_days:
                    raise ValidationError(
                        f"{update.leave_type.value} total of {update.total_days} for employee {employee_id} "
                        f"is below the {balance.used_days} day(s) already used"
                    )
                else:
                    balance.total_days = update.total_days
                    updated += 1
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(
        "Updated balance totals for %d employee(s) in %d by %s: created=%d updated=%d",
        len(employee_ids),
        year,
        auth.user_id,
        created,
        updated,
    )
    return BalanceBatchResponse(year=year, employees=len(employee_ids), created=created, updated=updated)
