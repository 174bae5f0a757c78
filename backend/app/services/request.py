# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update
from sqlalchemy.orm.attributes import set_committed_value
from sqlmodel import col

from app.config import get_settings
from app.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from app.models.enums import LeaveAuditAction, LeaveStatus, LeaveType, NotificationEvent
from app.models.request import LeaveRequest
from app.schemas.audit import AuditEntryListResponse
from app.schemas.request import (
    LeaveRequestListResponse,
    LeaveRequestResponse,
    PendingApprovalCountResponse,
)
from app.services import balance as balance_service
from app.services.audit import list_request_history, record_transition
from app.services.conflict import find_conflicting_request
from app.services.duration import count_leave_days
from app.services.employee import EmployeeInfo, get_employee_service
from app.services.locks import employee_locks
from app.services.notification import notify
from app.services.policy import get_policy

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import AuthContext
    from app.schemas.request import DecisionPayload, SubmitLeavePayload

logger = logging.getLogger(__name__)

AUTO_APPROVAL_COMMENT = "Auto-approved by system policy"

# Legal edges of the request lifecycle. Terminal states have none.
ALLOWED_TRANSITIONS: dict[LeaveStatus, frozenset[LeaveStatus]] = {
    LeaveStatus.PENDING_MANAGER: frozenset(
        {LeaveStatus.PENDING_HR, LeaveStatus.REJECTED, LeaveStatus.CANCELLED}
    ),
    LeaveStatus.PENDING_HR: frozenset({LeaveStatus.APPROVED, LeaveStatus.REJECTED, LeaveStatus.CANCELLED}),
    LeaveStatus.APPROVED: frozenset({LeaveStatus.CANCELLED}),
    LeaveStatus.REJECTED: frozenset(),
    LeaveStatus.CANCELLED: frozenset(),
}

# Requests that no longer hold dates or balance days.
DELETABLE_STATUSES = frozenset({LeaveStatus.REJECTED, LeaveStatus.CANCELLED})

# Status wording used in employee notifications.
STATUS_AUTO_APPROVED = "Auto-Approved"
STATUS_FINAL_APPROVED = "Final Approved"
STATUS_REJECTED_BY_MANAGER = "Rejected by Manager"
STATUS_REJECTED_BY_HR = "Rejected by HR"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_request_response(request: LeaveRequest) -> LeaveRequestResponse:
    """Map a request model to its response schema."""
    return LeaveRequestResponse(
        id=request.id,
        employee_id=request.employee_id,
        manager_id=request.manager_id,
        leave_type=LeaveType(request.leave_type),
        start_date=request.start_date,
        end_date=request.end_date,
        days=request.days,
        note=request.note,
        attachment_url=request.attachment_url,
        status=LeaveStatus(request.status),
        created_at=request.created_at,
        updated_at=request.updated_at,
    )


async def _get_request_or_404(
    session: AsyncSession,
    request_id: uuid.UUID,
    *,
    refresh: bool = False,
) -> LeaveRequest:
    """Fetch a request by ID. Raises 404 if missing or soft-deleted.

    ``refresh`` overwrites any copy already in the identity map with the
    committed row, so the status guard sees other sessions' writes.
    """
    query = select(LeaveRequest).where(col(LeaveRequest.id) == request_id)
    if refresh:
        query = query.execution_options(populate_existing=True)
    result = await session.execute(query)
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFoundError("Leave request not found")
    return request


async def _transition(
    session: AsyncSession,
    request: LeaveRequest,
    new_status: LeaveStatus,
    actor_id: uuid.UUID,
    *,
    expected: LeaveStatus | None = None,
) -> LeaveStatus:
    """Move ``request`` to ``new_status`` if the edge is legal and nobody moved it first.

    ``expected`` pins the source status for operations that belong to one
    approval stage. The UPDATE is conditional on the status observed in
    memory; zero affected rows means a concurrent writer won. Returns the
    previous status.
    """
    current = LeaveStatus(request.status)
    if expected is not None and current != expected:
        raise InvalidTransitionError(f"Request is {current.value}, expected {expected.value}")
    if new_status not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(f"Cannot move a {current.value} request to {new_status.value}")

    now = datetime.now(UTC)
    result = await session.execute(
        update(LeaveRequest)
        .where(
            col(LeaveRequest.id) == request.id,
            col(LeaveRequest.status) == current.value,
        )
        .values(status=new_status.value, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:  # ty: ignore[unresolved-attribute]
        raise InvalidTransitionError(f"Leave request is no longer {current.value}")

    set_committed_value(request, "status", new_status.value)
    set_committed_value(request, "updated_at", now)
    logger.info(
        "Leave request %s: %s -> %s by %s",
        request.id,
        current.value,
        new_status.value,
        actor_id,
    )
    return current


def _ensure_not_own_request(auth: AuthContext, request: LeaveRequest) -> None:
    if auth.user_id == request.employee_id:
        raise AuthorizationError("You cannot decide on your own leave request")


def _can_view(auth: AuthContext, request: LeaveRequest) -> bool:
    return (
        auth.user_id in (request.employee_id, request.manager_id)
        or auth.has_role(get_settings().hr_roles)
    )


def _leave_label(request: LeaveRequest) -> str:
    return request.leave_type.title()


def _name_of(info: EmployeeInfo | None, fallback_id: uuid.UUID) -> str:
    return info.full_name if info is not None else str(fallback_id)


def _notify_status_update(request: LeaveRequest, status_label: str) -> None:
    notify(
        request.employee_id,
        NotificationEvent.STATUS_UPDATE,
        status=status_label,
        leave_type=_leave_label(request),
        start_date=request.start_date,
        end_date=request.end_date,
    )


# ---------------------------------------------------------------------------
# Lifecycle operations
# ---------------------------------------------------------------------------


async def submit_request(
    session: AsyncSession,
    auth: AuthContext,
    payload: SubmitLeavePayload,
) -> LeaveRequestResponse:
    """Submit a leave request for the authenticated employee.

    Flow:
    1. Resolve the employee and their manager from the directory
    2. Count the requested days
    3. Under the employee lock: check conflicts (unless the policy bypasses
       them) and, when enforced, the available balance
    4. Create the request in PENDING_MANAGER
    5. Auto-approve when the policy allows it (two system audit entries plus
       the balance deduction), otherwise write the SUBMITTED audit entry
    6. Commit, then notify the manager (or the employee if auto-approved)
    """
    settings = get_settings()
    directory = get_employee_service()

    employee = await directory.get_employee(auth.user_id)
    if employee is None:
        raise ValidationError(f"Employee {auth.user_id} not found in directory")
    if employee.manager_id is None:
        raise ValidationError("No manager is assigned to this employee")

    leave_type = payload.leave_type
    days = count_leave_days(payload.start_date, payload.end_date)
    year = payload.start_date.year

    async with employee_locks.hold(employee.id):
        try:
            policy = await get_policy(session, leave_type)

            if not policy.bypass_conflict_check:
                existing = await find_conflicting_request(
                    session, employee.id, payload.start_date, payload.end_date
                )
                if existing is not None:
                    raise ConflictError(
                        f"Requested dates overlap leave request {existing.id} "
                        f"({existing.start_date.isoformat()} to {existing.end_date.isoformat()})"
                    )

            if settings.enforce_balance_on_submit:
                await balance_service.ensure_available(session, employee.id, year, leave_type, days)

            leave_request = LeaveRequest(
                employee_id=employee.id,
                manager_id=employee.manager_id,
                leave_type=leave_type.value,
                start_date=payload.start_date,
                end_date=payload.end_date,
                days=days,
                note=payload.note,
                attachment_url=payload.attachment_url,
                status=LeaveStatus.PENDING_MANAGER.value,
            )
            session.add(leave_request)
            await session.flush()

            auto_approved = policy.auto_approves(days)
            if auto_approved:
                system_actor = settings.system_actor_id
                await _transition(
                    session, leave_request, LeaveStatus.PENDING_HR, system_actor, expected=LeaveStatus.PENDING_MANAGER
                )
                record_transition(
                    session,
                    leave_request,
                    actor_id=system_actor,
                    action=LeaveAuditAction.MANAGER_APPROVED,
                    comment=AUTO_APPROVAL_COMMENT,
                )
                await _transition(
                    session, leave_request, LeaveStatus.APPROVED, system_actor, expected=LeaveStatus.PENDING_HR
                )
                await balance_service.deduct(session, employee.id, year, leave_type, days)
                record_transition(
                    session,
                    leave_request,
                    actor_id=system_actor,
                    action=LeaveAuditAction.HR_APPROVED,
                    comment=AUTO_APPROVAL_COMMENT,
                )
            else:
                record_transition(
                    session,
                    leave_request,
                    actor_id=auth.user_id,
                    action=LeaveAuditAction.SUBMITTED,
                    comment=payload.note,
                )

            await session.commit()
        except Exception:
            await session.rollback()
            raise

    logger.info(
        "Leave request %s submitted by %s: %s %s..%s (%d day(s))%s",
        leave_request.id,
        employee.id,
        leave_type.value,
        payload.start_date,
        payload.end_date,
        days,
        " [auto-approved]" if auto_approved else "",
    )

    if auto_approved:
        _notify_status_update(leave_request, STATUS_AUTO_APPROVED)
    else:
        notify(
            leave_request.manager_id,
            NotificationEvent.NEW_REQUEST,
            requester_name=employee.full_name,
            leave_type=_leave_label(leave_request),
            start_date=leave_request.start_date,
            end_date=leave_request.end_date,
            days=days,
        )

    return _build_request_response(leave_request)


async def manager_decide(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: DecisionPayload,
) -> LeaveRequestResponse:
    """First-stage decision by the assigned manager.

    Approve moves the request to PENDING_HR and alerts the HR roster.
    Reject is terminal and informs the employee.
    """
    directory = get_employee_service()
    leave_request = await _get_request_or_404(session, request_id)
    employee = await directory.get_employee(leave_request.employee_id)

    async with employee_locks.hold(leave_request.employee_id):
        leave_request = await _get_request_or_404(session, request_id, refresh=True)
        _ensure_not_own_request(auth, leave_request)
        if auth.user_id != leave_request.manager_id:
            raise AuthorizationError("Only the assigned manager can decide on this request")

        new_status = LeaveStatus.PENDING_HR if payload.approve else LeaveStatus.REJECTED
        action = LeaveAuditAction.MANAGER_APPROVED if payload.approve else LeaveAuditAction.MANAGER_REJECTED
        try:
            await _transition(
                session, leave_request, new_status, auth.user_id, expected=LeaveStatus.PENDING_MANAGER
            )
            record_transition(
                session,
                leave_request,
                actor_id=auth.user_id,
                action=action,
                comment=payload.comment,
            )
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    if payload.approve:
        manager = await directory.get_employee(auth.user_id)
        hr_staff = await directory.list_hr_staff(employee.department_id if employee is not None else None)
        if not hr_staff:
            logger.warning("No HR staff found to review leave request %s", leave_request.id)
        for hr_user in hr_staff:
            if hr_user.id == leave_request.employee_id:
                continue
            notify(
                hr_user.id,
                NotificationEvent.MANAGER_ACTION_TO_HR,
                manager_name=_name_of(manager, auth.user_id),
                employee_name=_name_of(employee, leave_request.employee_id),
                leave_type=_leave_label(leave_request),
                days=leave_request.days,
            )
    else:
        _notify_status_update(leave_request, STATUS_REJECTED_BY_MANAGER)

    return _build_request_response(leave_request)


async def hr_decide(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: DecisionPayload,
) -> LeaveRequestResponse:
    """Final decision by HR. Approval deducts the days from the employee's balance."""
    if not auth.has_role(get_settings().hr_roles):
        raise AuthorizationError("HR role required")

    leave_request = await _get_request_or_404(session, request_id)

    async with employee_locks.hold(leave_request.employee_id):
        leave_request = await _get_request_or_404(session, request_id, refresh=True)
        _ensure_not_own_request(auth, leave_request)

        new_status = LeaveStatus.APPROVED if payload.approve else LeaveStatus.REJECTED
        action = LeaveAuditAction.HR_APPROVED if payload.approve else LeaveAuditAction.HR_REJECTED
        try:
            await _transition(session, leave_request, new_status, auth.user_id, expected=LeaveStatus.PENDING_HR)
            if payload.approve:
                await balance_service.deduct(
                    session,
                    leave_request.employee_id,
                    leave_request.start_date.year,
                    LeaveType(leave_request.leave_type),
                    leave_request.days,
                )
            record_transition(
                session,
                leave_request,
                actor_id=auth.user_id,
                action=action,
                comment=payload.comment,
            )
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    _notify_status_update(
        leave_request,
        STATUS_FINAL_APPROVED if payload.approve else STATUS_REJECTED_BY_HR,
    )
    return _build_request_response(leave_request)


async def cancel_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> LeaveRequestResponse:
    """Cancel a pending or approved request.

    The employee may cancel their own pending requests, and their approved
    ones when ``allow_self_cancel_approved`` is set. Roles listed in
    ``cancel_override_roles`` may cancel any request. Cancelling an approved
    request gives the deducted days back.
    """
    settings = get_settings()
    leave_request = await _get_request_or_404(session, request_id)

    async with employee_locks.hold(leave_request.employee_id):
        leave_request = await _get_request_or_404(session, request_id, refresh=True)
        current = LeaveStatus(leave_request.status)

        if not auth.has_role(settings.cancel_override_roles):
            if auth.user_id != leave_request.employee_id:
                raise AuthorizationError("Not authorized to cancel this request")
            if current == LeaveStatus.APPROVED and not settings.allow_self_cancel_approved:
                raise AuthorizationError("Approved requests can only be cancelled by HR")

        try:
            previous = await _transition(session, leave_request, LeaveStatus.CANCELLED, auth.user_id)
            if previous == LeaveStatus.APPROVED:
                await balance_service.restore(
                    session,
                    leave_request.employee_id,
                    leave_request.start_date.year,
                    LeaveType(leave_request.leave_type),
                    leave_request.days,
                )
            record_transition(
                session,
                leave_request,
                actor_id=auth.user_id,
                action=LeaveAuditAction.CANCELLED,
            )
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    notify(
        leave_request.employee_id,
        NotificationEvent.CANCELLED,
        start_date=leave_request.start_date,
        end_date=leave_request.end_date,
    )
    return _build_request_response(leave_request)


async def delete_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> None:
    """Soft-delete a rejected or cancelled request. Its audit trail is kept.

    Approved requests hold balance days and dates, so they must be cancelled first.
    """
    leave_request = await _get_request_or_404(session, request_id)

    async with employee_locks.hold(leave_request.employee_id):
        leave_request = await _get_request_or_404(session, request_id, refresh=True)
        if LeaveStatus(leave_request.status) not in DELETABLE_STATUSES:
            raise InvalidTransitionError("Only rejected or cancelled requests can be deleted")
        leave_request.deleted_at = datetime.now(UTC)
        try:
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    logger.info("Leave request %s soft-deleted by %s", request_id, auth.user_id)


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def get_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> LeaveRequestResponse:
    """Get a single request visible to the caller."""
    leave_request = await _get_request_or_404(session, request_id)
    if not _can_view(auth, leave_request):
        raise AuthorizationError("Not authorized to view this request")
    return _build_request_response(leave_request)


async def get_request_history(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> AuditEntryListResponse:
    """Audit trail of a request visible to the caller."""
    leave_request = await _get_request_or_404(session, request_id)
    if not _can_view(auth, leave_request):
        raise AuthorizationError("Not authorized to view this request")
    return await list_request_history(session, request_id)


async def list_requests(
    session: AsyncSession,
    *,
    employee_id: uuid.UUID | None = None,
    manager_id: uuid.UUID | None = None,
    status_filter: LeaveStatus | None = None,
    leave_type: LeaveType | None = None,
    offset: int = 0,
    limit: int = 50,
) -> LeaveRequestListResponse:
    """List requests with optional filters, ordered by created_at DESC."""
    filters = []
    if employee_id is not None:
        filters.append(col(LeaveRequest.employee_id) == employee_id)
    if manager_id is not None:
        filters.append(col(LeaveRequest.manager_id) == manager_id)
    if status_filter is not None:
        filters.append(col(LeaveRequest.status) == status_filter.value)
    if leave_type is not None:
        filters.append(col(LeaveRequest.leave_type) == leave_type.value)

    count_result = await session.execute(select(func.count()).select_from(LeaveRequest).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveRequest)
        .where(*filters)
        .order_by(col(LeaveRequest.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    requests = list(result.scalars().all())

    return LeaveRequestListResponse(
        items=[_build_request_response(r) for r in requests],
        total=total,
    )


async def pending_approval_counts(session: AsyncSession, auth: AuthContext) -> PendingApprovalCountResponse:
    """Requests waiting on the caller: as assigned manager, and as HR when the role allows."""
    manager_result = await session.execute(
        select(func.count())
        .select_from(LeaveRequest)
        .where(
            col(LeaveRequest.manager_id) == auth.user_id,
            col(LeaveRequest.status) == LeaveStatus.PENDING_MANAGER.value,
        )
    )
    pending_manager = manager_result.scalar_one()

    pending_hr = 0
    if auth.has_role(get_settings().hr_roles):
        hr_result = await session.execute(
            select(func.count())
            .select_from(LeaveRequest)
            .where(
                col(LeaveRequest.status) == LeaveStatus.PENDING_HR.value,
                col(LeaveRequest.employee_id) != auth.user_id,
            )
        )
        pending_hr = hr_result.scalar_one()

    return PendingApprovalCountResponse(
        pending_manager=pending_manager,
        pending_hr=pending_hr,
        total=pending_manager + pending_hr,
    )
