from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlmodel import col

from app.db import INCLUDE_DELETED
from app.models.audit import LeaveAuditLog
from app.models.enums import LeaveAuditAction, LeaveStatus, LeaveType
from app.models.request import LeaveRequest
from app.schemas.audit import (
    AuditEntryListResponse,
    AuditEntryResponse,
    DecisionLogEntry,
    DecisionLogResponse,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlmodel import SQLModel

# Actions that represent a decision by a manager or HR user.
DECISION_ACTIONS = (
    LeaveAuditAction.MANAGER_APPROVED,
    LeaveAuditAction.MANAGER_REJECTED,
    LeaveAuditAction.HR_APPROVED,
    LeaveAuditAction.HR_REJECTED,
)


def model_to_audit_dict(model: SQLModel) -> dict[str, Any]:
    """Serialize a SQLModel instance to a JSON-safe dict for audit logging."""
    data: dict[str, Any] = {}
    for key, value in model.model_dump().items():
        if isinstance(value, uuid.UUID):
            data[key] = str(value)
        elif isinstance(value, (datetime, date)):
            data[key] = value.isoformat()
        else:
            data[key] = value
    return data


def record_transition(
    session: AsyncSession,
    request: LeaveRequest,
    *,
    actor_id: uuid.UUID,
    action: LeaveAuditAction,
    comment: str | None = None,
) -> LeaveAuditLog:
    """Add an immutable audit entry within the caller's transaction.

    ``request.status`` must already hold the new status.
    """
    entry = LeaveAuditLog(
        request_id=request.id,
        actor_id=actor_id,
        action=action.value,
        new_status=request.status,
        comment=comment,
        snapshot_json=model_to_audit_dict(request),
    )
    session.add(entry)
    return entry


def _build_audit_entry_response(entry: LeaveAuditLog) -> AuditEntryResponse:
    return AuditEntryResponse(
        id=entry.id,
        request_id=entry.request_id,
        actor_id=entry.actor_id,
        action=LeaveAuditAction(entry.action),
        new_status=LeaveStatus(entry.new_status),
        comment=entry.comment,
        created_at=entry.created_at,
    )


async def list_request_history(session: AsyncSession, request_id: uuid.UUID) -> AuditEntryListResponse:
    """Audit trail of one request in the order the transitions happened."""
    result = await session.execute(
        select(LeaveAuditLog)
        .where(col(LeaveAuditLog.request_id) == request_id)
        .order_by(col(LeaveAuditLog.created_at), col(LeaveAuditLog.id))
    )
    entries = list(result.scalars().all())
    # created_at can tie within one transaction; keep workflow order.
    order = {action.value: index for index, action in enumerate(LeaveAuditAction)}
    entries.sort(key=lambda e: (e.created_at, order.get(e.action, len(order))))
    return AuditEntryListResponse(
        items=[_build_audit_entry_response(e) for e in entries],
        total=len(entries),
    )


async def list_actor_decisions(
    session: AsyncSession,
    actor_id: uuid.UUID,
    offset: int = 0,
    limit: int = 50,
) -> DecisionLogResponse:
    """Decisions taken by ``actor_id``, newest first, joined with their requests."""
    filters = [
        col(LeaveAuditLog.actor_id) == actor_id,
        col(LeaveAuditLog.action).in_([a.value for a in DECISION_ACTIONS]),
    ]

    count_result = await session.execute(select(func.count()).select_from(LeaveAuditLog).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveAuditLog, LeaveRequest)
        .join(LeaveRequest, col(LeaveRequest.id) == col(LeaveAuditLog.request_id))
        .where(*filters)
        .order_by(col(LeaveAuditLog.created_at).desc())
        .offset(offset)
        .limit(limit)
        .execution_options(**{INCLUDE_DELETED: True})
    )

    items = [
        DecisionLogEntry(
            audit_id=entry.id,
            request_id=request.id,
            employee_id=request.employee_id,
            leave_type=LeaveType(request.leave_type),
            start_date=request.start_date,
            end_date=request.end_date,
            days=request.days,
            current_status=LeaveStatus(request.status),
            action=LeaveAuditAction(entry.action),
            comment=entry.comment,
            created_at=entry.created_at,
        )
        for entry, request in result.all()
    ]
    return DecisionLogResponse(items=items, total=total)
