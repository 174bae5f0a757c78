from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from app.models.enums import LeaveStatus
from app.models.request import LeaveRequest
from app.schemas.request import ConflictCheckResponse

if TYPE_CHECKING:
    import uuid
    from datetime import date

    from sqlalchemy.ext.asyncio import AsyncSession

# Statuses that still hold the dates.
ACTIVE_STATUSES = (
    LeaveStatus.PENDING_MANAGER,
    LeaveStatus.PENDING_HR,
    LeaveStatus.APPROVED,
)


async def find_conflicting_request(
    session: AsyncSession,
    employee_id: uuid.UUID,
    start_date: date,
    end_date: date,
    exclude_request_id: uuid.UUID | None = None,
) -> LeaveRequest | None:
    """Return the earliest active request of the employee overlapping the range.

    Two inclusive ranges overlap when existing.start <= end AND existing.end >= start.
    Soft-deleted rows are filtered out at the session level.
    """
    query = (
        select(LeaveRequest)
        .where(
            col(LeaveRequest.employee_id) == employee_id,
            col(LeaveRequest.status).in_([s.value for s in ACTIVE_STATUSES]),
            col(LeaveRequest.start_date) <= end_date,
            col(LeaveRequest.end_date) >= start_date,
        )
        .order_by(col(LeaveRequest.start_date), col(LeaveRequest.created_at))
        .limit(1)
    )
    if exclude_request_id is not None:
        query = query.where(col(LeaveRequest.id) != exclude_request_id)

    result = await session.execute(query)
    return result.scalar_one_or_none()


async def check_conflict(
    session: AsyncSession,
    employee_id: uuid.UUID,
    start_date: date,
    end_date: date,
) -> ConflictCheckResponse:
    """Preview whether a range could be submitted without overlapping."""
    existing = await find_conflicting_request(session, employee_id, start_date, end_date)
    if existing is None:
        return ConflictCheckResponse(has_conflict=False, message="No conflicting leave requests")
    return ConflictCheckResponse(
        has_conflict=True,
        conflicting_request_id=existing.id,
        message=(
            f"Overlaps {existing.leave_type} request from {existing.start_date.isoformat()} "
            f"to {existing.end_date.isoformat()} ({existing.status})"
        ),
    )
