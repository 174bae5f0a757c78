from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from app.models.enums import LeaveType
from app.models.policy import LeaveTypeConfig
from app.schemas.policy import LeavePolicyListResponse, LeavePolicyResponse

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import AuthContext
    from app.schemas.policy import UpdateLeavePoliciesRequest

logger = logging.getLogger(__name__)

_DEFAULT_BALANCE_DAYS = 7

# Built-in policy values used until HR stores a config row for the type.
_BUILTIN_DEFAULTS: dict[LeaveType, dict[str, object]] = {
    LeaveType.ANNUAL: {"display_name": "Annual", "default_balance": 21},
    LeaveType.SICK: {"display_name": "Sick"},
    LeaveType.EMERGENCY: {"display_name": "Emergency", "bypass_conflict_check": True},
    LeaveType.UNPAID: {"display_name": "Unpaid", "default_balance": 0},
    LeaveType.MATERNITY: {"display_name": "Maternity"},
    LeaveType.PATERNITY: {"display_name": "Paternity"},
}

# Types that never touch the balance ledger.
LEDGER_EXEMPT_TYPES = frozenset({LeaveType.UNPAID})


def builtin_policy(leave_type: LeaveType) -> LeaveTypeConfig:
    """Return a transient (never added to a session) config with built-in values."""
    values: dict[str, object] = {
        "display_name": leave_type.value.title(),
        "default_balance": _DEFAULT_BALANCE_DAYS,
        "auto_approve_enabled": False,
        "auto_approve_threshold_days": 0,
        "bypass_conflict_check": False,
    }
    values.update(_BUILTIN_DEFAULTS.get(leave_type, {}))
    return LeaveTypeConfig(leave_type=leave_type.value, **values)


def _build_policy_response(config: LeaveTypeConfig, *, is_default: bool) -> LeavePolicyResponse:
    return LeavePolicyResponse(
        leave_type=LeaveType(config.leave_type),
        display_name=config.display_name,
        default_balance=config.default_balance,
        auto_approve_enabled=config.auto_approve_enabled,
        auto_approve_threshold_days=config.auto_approve_threshold_days,
        bypass_conflict_check=config.bypass_conflict_check,
        is_default=is_default,
        updated_at=None if is_default else config.updated_at,
    )


async def _get_stored_policy(session: AsyncSession, leave_type: LeaveType) -> LeaveTypeConfig | None:
    result = await session.execute(
        select(LeaveTypeConfig).where(col(LeaveTypeConfig.leave_type) == leave_type.value)
    )
    return result.scalar_one_or_none()


async def get_policy(session: AsyncSession, leave_type: LeaveType) -> LeaveTypeConfig:
    """Effective policy for a leave type, read from the store on every call."""
    stored = await _get_stored_policy(session, leave_type)
    if stored is not None:
        return stored
    return builtin_policy(leave_type)


async def get_default_allotment(session: AsyncSession, leave_type: LeaveType) -> int:
    """Days granted to a balance row created on first use."""
    policy = await get_policy(session, leave_type)
    return policy.default_balance


async def list_policies(session: AsyncSession) -> LeavePolicyListResponse:
    """Effective policies for every leave type, in enum order."""
    result = await session.execute(select(LeaveTypeConfig))
    stored = {config.leave_type: config for config in result.scalars().all()}

    items: list[LeavePolicyResponse] = []
    for leave_type in LeaveType:
        config = stored.get(leave_type.value)
        if config is not None:
            items.append(_build_policy_response(config, is_default=False))
        else:
            items.append(_build_policy_response(builtin_policy(leave_type), is_default=True))
    return LeavePolicyListResponse(items=items)


async def update_policies(
    session: AsyncSession,
    auth: AuthContext,
    payload: UpdateLeavePoliciesRequest,
) -> LeavePolicyListResponse:
    """Upsert stored policies. Authorization is enforced by the API layer."""
    for item in payload.items:
        config = await _get_stored_policy(session, item.leave_type)
        if config is None:
            config = builtin_policy(item.leave_type)
            session.add(config)

        if item.display_name is not None:
            config.display_name = item.display_name
        config.default_balance = item.default_balance
        config.auto_approve_enabled = item.auto_approve_enabled
        config.auto_approve_threshold_days = item.auto_approve_threshold_days
        config.bypass_conflict_check = item.bypass_conflict_check

    await session.commit()
    logger.info(
        "Leave policies updated by %s: %s",
        auth.user_id,
        ", ".join(item.leave_type.value for item in payload.items),
    )
    return await list_policies(session)
