"""Tests for the leave request lifecycle: submission, auto-approval, manager and
HR decisions, cancellation, balance effects, audit trail and concurrency.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import date
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import func, select
from sqlmodel import col

from app.config import get_settings, set_settings
from app.exceptions import (
    AuthorizationError,
    ConflictError,
    InsufficientBalanceError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from app.models.audit import LeaveAuditLog
from app.models.balance import LeaveBalance
from app.models.enums import LeaveAuditAction, LeaveStatus, LeaveType, NotificationEvent
from app.models.policy import LeaveTypeConfig
from app.models.request import LeaveRequest
from app.schemas.auth import AuthContext
from app.schemas.request import DecisionPayload, SubmitLeavePayload
from app.services import request as request_service
from app.services.employee import EmployeeInfo
from app.services.request import AUTO_APPROVAL_COMMENT

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from app.services.notification import NotificationQueue, NotificationWorkItem
    from tests.conftest import People

APPROVE = DecisionPayload(approve=True, comment="ok")
REJECT = DecisionPayload(approve=False, comment="not this time")


# ---------------------------------------------------------------------------
# Test helpers
# ---------------------------------------------------------------------------


def _payload(
    start: date = date(2030, 3, 4),
    end: date = date(2030, 3, 8),
    leave_type: LeaveType = LeaveType.ANNUAL,
) -> SubmitLeavePayload:
    return SubmitLeavePayload(leave_type=leave_type, start_date=start, end_date=end, note="Family trip")


async def _drain(queue: NotificationQueue) -> list[NotificationWorkItem]:
    items = []
    while not queue.empty():
        items.append(await queue.dequeue())
        queue.task_done()
    return items


async def _submit(
    factory: async_sessionmaker[AsyncSession],
    auth: AuthContext,
    payload: SubmitLeavePayload | None = None,
) -> uuid.UUID:
    async with factory() as session:
        response = await request_service.submit_request(session, auth, payload or _payload())
    return response.id


async def _to_pending_hr(factory: async_sessionmaker[AsyncSession], people: People, **kwargs) -> uuid.UUID:
    request_id = await _submit(factory, people.auth(people.employee), **kwargs)
    async with factory() as session:
        await request_service.manager_decide(session, people.auth(people.manager), request_id, APPROVE)
    return request_id


async def _status(factory: async_sessionmaker[AsyncSession], request_id: uuid.UUID) -> str:
    async with factory() as session:
        result = await session.execute(select(LeaveRequest.status).where(col(LeaveRequest.id) == request_id))
        return result.scalar_one()


async def _audit_actions(factory: async_sessionmaker[AsyncSession], request_id: uuid.UUID) -> list[str]:
    async with factory() as session:
        history = await request_service.list_request_history(session, request_id)
    return [entry.action.value for entry in history.items]


async def _balance(
    factory: async_sessionmaker[AsyncSession],
    employee_id: uuid.UUID,
    leave_type: LeaveType = LeaveType.ANNUAL,
    year: int = 2030,
) -> LeaveBalance | None:
    async with factory() as session:
        result = await session.execute(
            select(LeaveBalance).where(
                col(LeaveBalance.employee_id) == employee_id,
                col(LeaveBalance.year) == year,
                col(LeaveBalance.leave_type) == leave_type.value,
            )
        )
        return result.scalar_one_or_none()


async def _store_policy(factory: async_sessionmaker[AsyncSession], **values) -> None:
    async with factory() as session:
        session.add(LeaveTypeConfig(**values))
        await session.commit()


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


async def test_submit_creates_pending_manager_request(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
    notification_queue: NotificationQueue,
) -> None:
    async with session_factory() as session:
        response = await request_service.submit_request(session, people.auth(people.employee), _payload())

    assert response.status == LeaveStatus.PENDING_MANAGER
    assert response.employee_id == people.employee.id
    assert response.manager_id == people.manager.id
    assert response.days == 5
    assert await _audit_actions(session_factory, response.id) == ["SUBMITTED"]

    items = await _drain(notification_queue)
    assert len(items) == 1
    assert items[0].recipient_id == people.manager.id
    assert items[0].event == NotificationEvent.NEW_REQUEST
    assert "Alice Johnson" in items[0].message


async def test_submit_does_not_touch_balance(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    await _submit(session_factory, people.auth(people.employee))
    assert await _balance(session_factory, people.employee.id) is None


async def test_submit_unknown_employee(session_factory: async_sessionmaker[AsyncSession]) -> None:
    with pytest.raises(ValidationError):
        await _submit(session_factory, AuthContext(user_id=uuid.uuid4()))


async def test_submit_without_manager(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
    notification_queue: NotificationQueue,
) -> None:
    with pytest.raises(ValidationError, match="No manager"):
        await _submit(session_factory, people.auth(people.orphan))
    assert notification_queue.empty()


async def test_submit_single_day(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    async with session_factory() as session:
        response = await request_service.submit_request(
            session, people.auth(people.employee), _payload(date(2030, 5, 1), date(2030, 5, 1))
        )
    assert response.days == 1


async def test_submit_business_day_mode(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    set_settings(get_settings().model_copy(update={"day_count_mode": "BUSINESS"}))
    async with session_factory() as session:
        # Friday 2030-03-08 through Monday 2030-03-11
        response = await request_service.submit_request(
            session, people.auth(people.employee), _payload(date(2030, 3, 8), date(2030, 3, 11))
        )
    assert response.days == 2


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


async def test_overlapping_submission_conflicts(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    auth = people.auth(people.employee)
    await _submit(session_factory, auth, _payload(date(2030, 1, 1), date(2030, 1, 5)))

    with pytest.raises(ConflictError):
        await _submit(session_factory, auth, _payload(date(2030, 1, 4), date(2030, 1, 10)))

    async with session_factory() as session:
        total = (await session.execute(select(func.count()).select_from(LeaveRequest))).scalar_one()
    assert total == 1


async def test_adjacent_submission_does_not_conflict(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    auth = people.auth(people.employee)
    await _submit(session_factory, auth, _payload(date(2030, 1, 1), date(2030, 1, 5)))
    await _submit(session_factory, auth, _payload(date(2030, 1, 6), date(2030, 1, 10)))


async def test_other_employee_dates_do_not_conflict(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    await _submit(session_factory, people.auth(people.employee), _payload(date(2030, 1, 1), date(2030, 1, 5)))
    await _submit(session_factory, people.auth(people.peer), _payload(date(2030, 1, 1), date(2030, 1, 5)))


async def test_emergency_leave_bypasses_conflict_check(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    auth = people.auth(people.employee)
    await _submit(session_factory, auth, _payload(date(2030, 1, 1), date(2030, 1, 5)))
    await _submit(
        session_factory,
        auth,
        _payload(date(2030, 1, 4), date(2030, 1, 4), leave_type=LeaveType.EMERGENCY),
    )


async def test_cancelled_and_rejected_requests_do_not_conflict(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    auth = people.auth(people.employee)
    cancelled_id = await _submit(session_factory, auth, _payload(date(2030, 1, 1), date(2030, 1, 5)))
    async with session_factory() as session:
        await request_service.cancel_request(session, auth, cancelled_id)

    rejected_id = await _submit(session_factory, auth, _payload(date(2030, 1, 3), date(2030, 1, 7)))
    async with session_factory() as session:
        await request_service.manager_decide(session, people.auth(people.manager), rejected_id, REJECT)

    await _submit(session_factory, auth, _payload(date(2030, 1, 4), date(2030, 1, 10)))


# ---------------------------------------------------------------------------
# Auto-approval
# ---------------------------------------------------------------------------


async def test_short_sick_leave_is_auto_approved(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
    notification_queue: NotificationQueue,
) -> None:
    await _store_policy(
        session_factory,
        leave_type="SICK",
        display_name="Sick",
        default_balance=7,
        auto_approve_enabled=True,
        auto_approve_threshold_days=3,
    )

    async with session_factory() as session:
        response = await request_service.submit_request(
            session,
            people.auth(people.employee),
            _payload(date(2030, 2, 4), date(2030, 2, 5), leave_type=LeaveType.SICK),
        )

    assert response.status == LeaveStatus.APPROVED
    assert response.days == 2

    async with session_factory() as session:
        history = await request_service.list_request_history(session, response.id)
    assert [e.action for e in history.items] == [LeaveAuditAction.MANAGER_APPROVED, LeaveAuditAction.HR_APPROVED]
    assert all(e.actor_id == get_settings().system_actor_id for e in history.items)
    assert all(e.comment == AUTO_APPROVAL_COMMENT for e in history.items)

    balance = await _balance(session_factory, people.employee.id, LeaveType.SICK)
    assert balance is not None
    assert balance.used_days == 2
    assert balance.total_days == 7

    items = await _drain(notification_queue)
    assert len(items) == 1
    assert items[0].recipient_id == people.employee.id
    assert items[0].event == NotificationEvent.STATUS_UPDATE
    assert "Auto-Approved" in items[0].subject


async def test_auto_approval_respects_threshold(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    await _store_policy(
        session_factory,
        leave_type="SICK",
        display_name="Sick",
        default_balance=7,
        auto_approve_enabled=True,
        auto_approve_threshold_days=3,
    )
    async with session_factory() as session:
        response = await request_service.submit_request(
            session,
            people.auth(people.employee),
            _payload(date(2030, 2, 4), date(2030, 2, 7), leave_type=LeaveType.SICK),
        )
    assert response.status == LeaveStatus.PENDING_MANAGER


async def test_failed_auto_approval_rolls_back_submission(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
    notification_queue: NotificationQueue,
) -> None:
    await _store_policy(
        session_factory,
        leave_type="SICK",
        display_name="Sick",
        default_balance=1,
        auto_approve_enabled=True,
        auto_approve_threshold_days=3,
    )

    with pytest.raises(InsufficientBalanceError):
        await _submit(
            session_factory,
            people.auth(people.employee),
            _payload(date(2030, 2, 4), date(2030, 2, 5), leave_type=LeaveType.SICK),
        )

    async with session_factory() as session:
        requests = (await session.execute(select(func.count()).select_from(LeaveRequest))).scalar_one()
        audits = (await session.execute(select(func.count()).select_from(LeaveAuditLog))).scalar_one()
    assert requests == 0
    assert audits == 0
    assert await _balance(session_factory, people.employee.id, LeaveType.SICK) is None
    assert notification_queue.empty()


# ---------------------------------------------------------------------------
# Manager decisions
# ---------------------------------------------------------------------------


async def test_manager_approval_moves_to_hr(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
    notification_queue: NotificationQueue,
) -> None:
    request_id = await _submit(session_factory, people.auth(people.employee))
    await _drain(notification_queue)

    async with session_factory() as session:
        response = await request_service.manager_decide(
            session, people.auth(people.manager), request_id, APPROVE
        )

    assert response.status == LeaveStatus.PENDING_HR
    assert await _audit_actions(session_factory, request_id) == ["SUBMITTED", "MANAGER_APPROVED"]

    items = await _drain(notification_queue)
    assert [item.recipient_id for item in items] == [people.hr.id]
    assert items[0].event == NotificationEvent.MANAGER_ACTION_TO_HR
    assert "Marcus Lee" in items[0].message


async def test_manager_rejection_is_terminal(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
    notification_queue: NotificationQueue,
) -> None:
    request_id = await _submit(session_factory, people.auth(people.employee))
    await _drain(notification_queue)

    async with session_factory() as session:
        response = await request_service.manager_decide(
            session, people.auth(people.manager), request_id, REJECT
        )
    assert response.status == LeaveStatus.REJECTED
    assert await _audit_actions(session_factory, request_id) == ["SUBMITTED", "MANAGER_REJECTED"]
    assert await _balance(session_factory, people.employee.id) is None

    items = await _drain(notification_queue)
    assert len(items) == 1
    assert items[0].recipient_id == people.employee.id
    assert "Rejected by Manager" in items[0].subject

    with pytest.raises(InvalidTransitionError):
        async with session_factory() as session:
            await request_service.manager_decide(session, people.auth(people.manager), request_id, APPROVE)
    with pytest.raises(InvalidTransitionError):
        async with session_factory() as session:
            await request_service.hr_decide(session, people.auth(people.hr), request_id, APPROVE)
    with pytest.raises(InvalidTransitionError):
        async with session_factory() as session:
            await request_service.cancel_request(session, people.auth(people.employee), request_id)

    assert await _status(session_factory, request_id) == "REJECTED"
    assert await _audit_actions(session_factory, request_id) == ["SUBMITTED", "MANAGER_REJECTED"]


async def test_only_assigned_manager_can_decide(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    request_id = await _submit(session_factory, people.auth(people.employee))

    for outsider in (people.peer, people.hr):
        with pytest.raises(AuthorizationError):
            async with session_factory() as session:
                await request_service.manager_decide(session, people.auth(outsider), request_id, APPROVE)

    assert await _status(session_factory, request_id) == "PENDING_MANAGER"


async def test_manager_decision_on_pending_hr_request(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    request_id = await _to_pending_hr(session_factory, people)
    for decision in (REJECT, APPROVE):
        with pytest.raises(InvalidTransitionError):
            async with session_factory() as session:
                await request_service.manager_decide(session, people.auth(people.manager), request_id, decision)

    assert await _status(session_factory, request_id) == "PENDING_HR"
    assert await _audit_actions(session_factory, request_id) == ["SUBMITTED", "MANAGER_APPROVED"]


async def test_decision_on_unknown_request(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    with pytest.raises(NotFoundError):
        async with session_factory() as session:
            await request_service.manager_decide(session, people.auth(people.manager), uuid.uuid4(), APPROVE)


# ---------------------------------------------------------------------------
# HR decisions
# ---------------------------------------------------------------------------


async def test_hr_approval_deducts_balance(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
    notification_queue: NotificationQueue,
) -> None:
    request_id = await _to_pending_hr(session_factory, people)
    await _drain(notification_queue)

    async with session_factory() as session:
        response = await request_service.hr_decide(session, people.auth(people.hr), request_id, APPROVE)

    assert response.status == LeaveStatus.APPROVED
    assert await _audit_actions(session_factory, request_id) == ["SUBMITTED", "MANAGER_APPROVED", "HR_APPROVED"]

    balance = await _balance(session_factory, people.employee.id)
    assert balance is not None
    assert balance.total_days == 21
    assert balance.used_days == 5

    items = await _drain(notification_queue)
    assert len(items) == 1
    assert items[0].recipient_id == people.employee.id
    assert "Final Approved" in items[0].subject


async def test_hr_rejection(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
    notification_queue: NotificationQueue,
) -> None:
    request_id = await _to_pending_hr(session_factory, people)
    await _drain(notification_queue)

    async with session_factory() as session:
        response = await request_service.hr_decide(session, people.auth(people.hr), request_id, REJECT)

    assert response.status == LeaveStatus.REJECTED
    assert await _balance(session_factory, people.employee.id) is None
    items = await _drain(notification_queue)
    assert "Rejected by HR" in items[0].subject


async def test_hr_decision_requires_hr_role(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    request_id = await _to_pending_hr(session_factory, people)
    with pytest.raises(AuthorizationError):
        async with session_factory() as session:
            await request_service.hr_decide(session, people.auth(people.manager), request_id, APPROVE)
    assert await _status(session_factory, request_id) == "PENDING_HR"


async def test_hr_decision_before_manager(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    request_id = await _submit(session_factory, people.auth(people.employee))
    with pytest.raises(InvalidTransitionError):
        async with session_factory() as session:
            await request_service.hr_decide(session, people.auth(people.hr), request_id, APPROVE)


async def test_hr_rejection_before_manager(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
    notification_queue: NotificationQueue,
) -> None:
    request_id = await _submit(session_factory, people.auth(people.employee))
    await _drain(notification_queue)

    with pytest.raises(InvalidTransitionError):
        async with session_factory() as session:
            await request_service.hr_decide(session, people.auth(people.hr), request_id, REJECT)

    assert await _status(session_factory, request_id) == "PENDING_MANAGER"
    assert await _audit_actions(session_factory, request_id) == ["SUBMITTED"]
    assert await _drain(notification_queue) == []

    async with session_factory() as session:
        response = await request_service.manager_decide(session, people.auth(people.manager), request_id, APPROVE)
    assert response.status == LeaveStatus.PENDING_HR


async def test_hr_cannot_decide_own_request(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    hr_employee = EmployeeInfo(
        id=uuid.uuid4(),
        first_name="Harriet",
        last_name="Self",
        email="harriet@example.com",
        role="hr",
        manager_id=people.manager.id,
    )
    people.directory.seed(hr_employee)

    request_id = await _submit(session_factory, people.auth(hr_employee))
    async with session_factory() as session:
        await request_service.manager_decide(session, people.auth(people.manager), request_id, APPROVE)

    with pytest.raises(AuthorizationError):
        async with session_factory() as session:
            await request_service.hr_decide(session, people.auth(hr_employee), request_id, APPROVE)

    async with session_factory() as session:
        response = await request_service.hr_decide(session, people.auth(people.hr), request_id, APPROVE)
    assert response.status == LeaveStatus.APPROVED


async def test_hr_approval_with_insufficient_balance_rolls_back(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
    notification_queue: NotificationQueue,
) -> None:
    async with session_factory() as session:
        session.add(
            LeaveBalance(employee_id=people.employee.id, year=2030, leave_type="ANNUAL", total_days=3, used_days=0)
        )
        await session.commit()

    request_id = await _to_pending_hr(session_factory, people)
    await _drain(notification_queue)

    with pytest.raises(InsufficientBalanceError):
        async with session_factory() as session:
            await request_service.hr_decide(session, people.auth(people.hr), request_id, APPROVE)

    assert await _status(session_factory, request_id) == "PENDING_HR"
    assert await _audit_actions(session_factory, request_id) == ["SUBMITTED", "MANAGER_APPROVED"]
    balance = await _balance(session_factory, people.employee.id)
    assert balance is not None
    assert balance.used_days == 0
    assert notification_queue.empty()


async def test_unpaid_leave_skips_ledger(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    request_id = await _to_pending_hr(
        session_factory, people, payload=_payload(date(2030, 6, 1), date(2030, 6, 30), LeaveType.UNPAID)
    )
    async with session_factory() as session:
        response = await request_service.hr_decide(session, people.auth(people.hr), request_id, APPROVE)
    assert response.status == LeaveStatus.APPROVED
    assert await _balance(session_factory, people.employee.id, LeaveType.UNPAID) is None


async def test_concurrent_hr_approvals_deduct_once(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    request_id = await _to_pending_hr(session_factory, people)
    second_hr = EmployeeInfo(
        id=uuid.uuid4(), first_name="Second", last_name="Reviewer", email="hr2@example.com", role="hr"
    )
    people.directory.seed(second_hr)

    async def _approve(reviewer: EmployeeInfo) -> object:
        async with session_factory() as session:
            return await request_service.hr_decide(session, people.auth(reviewer), request_id, APPROVE)

    results = await asyncio.gather(_approve(people.hr), _approve(second_hr), return_exceptions=True)

    successes = [r for r in results if not isinstance(r, BaseException)]
    failures = [r for r in results if isinstance(r, BaseException)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], InvalidTransitionError)

    balance = await _balance(session_factory, people.employee.id)
    assert balance is not None
    assert balance.used_days == 5
    assert (await _audit_actions(session_factory, request_id)).count("HR_APPROVED") == 1


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


async def test_cancel_pending_request(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
    notification_queue: NotificationQueue,
) -> None:
    request_id = await _submit(session_factory, people.auth(people.employee))
    await _drain(notification_queue)

    async with session_factory() as session:
        response = await request_service.cancel_request(session, people.auth(people.employee), request_id)

    assert response.status == LeaveStatus.CANCELLED
    assert await _audit_actions(session_factory, request_id) == ["SUBMITTED", "CANCELLED"]
    items = await _drain(notification_queue)
    assert len(items) == 1
    assert items[0].event == NotificationEvent.CANCELLED
    assert items[0].recipient_id == people.employee.id


async def test_cancel_approved_request_restores_balance(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    request_id = await _to_pending_hr(session_factory, people)
    async with session_factory() as session:
        await request_service.hr_decide(session, people.auth(people.hr), request_id, APPROVE)
    assert (await _balance(session_factory, people.employee.id)).used_days == 5  # type: ignore[union-attr]

    async with session_factory() as session:
        response = await request_service.cancel_request(session, people.auth(people.employee), request_id)

    assert response.status == LeaveStatus.CANCELLED
    balance = await _balance(session_factory, people.employee.id)
    assert balance is not None
    assert balance.used_days == 0
    assert balance.total_days == 21

    with pytest.raises(InvalidTransitionError):
        async with session_factory() as session:
            await request_service.cancel_request(session, people.auth(people.employee), request_id)
    assert (await _balance(session_factory, people.employee.id)).used_days == 0  # type: ignore[union-attr]


async def test_cancel_other_employees_request_forbidden(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    request_id = await _submit(session_factory, people.auth(people.employee))
    for outsider in (people.peer, people.manager):
        with pytest.raises(AuthorizationError):
            async with session_factory() as session:
                await request_service.cancel_request(session, people.auth(outsider), request_id)


async def test_hr_can_cancel_any_request(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    request_id = await _submit(session_factory, people.auth(people.employee))
    async with session_factory() as session:
        response = await request_service.cancel_request(session, people.auth(people.admin), request_id)
    assert response.status == LeaveStatus.CANCELLED


async def test_self_cancel_of_approved_request_can_be_disabled(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    set_settings(get_settings().model_copy(update={"allow_self_cancel_approved": False}))
    request_id = await _to_pending_hr(session_factory, people)
    async with session_factory() as session:
        await request_service.hr_decide(session, people.auth(people.hr), request_id, APPROVE)

    with pytest.raises(AuthorizationError):
        async with session_factory() as session:
            await request_service.cancel_request(session, people.auth(people.employee), request_id)

    async with session_factory() as session:
        response = await request_service.cancel_request(session, people.auth(people.hr), request_id)
    assert response.status == LeaveStatus.CANCELLED


# ---------------------------------------------------------------------------
# Submission-time balance check
# ---------------------------------------------------------------------------


async def test_enforced_balance_counts_pending_requests(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    set_settings(get_settings().model_copy(update={"enforce_balance_on_submit": True}))
    auth = people.auth(people.employee)

    # 21 ANNUAL days by default: 15 + 5 fit, one more day does not.
    await _submit(session_factory, auth, _payload(date(2030, 1, 1), date(2030, 1, 15)))
    await _submit(session_factory, auth, _payload(date(2030, 2, 1), date(2030, 2, 5)))
    await _submit(session_factory, auth, _payload(date(2030, 3, 1), date(2030, 3, 1)))
    with pytest.raises(InsufficientBalanceError):
        await _submit(session_factory, auth, _payload(date(2030, 4, 1), date(2030, 4, 1)))


# ---------------------------------------------------------------------------
# Deletion and read paths
# ---------------------------------------------------------------------------


async def test_delete_requires_terminal_status(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    request_id = await _submit(session_factory, people.auth(people.employee))
    with pytest.raises(InvalidTransitionError):
        async with session_factory() as session:
            await request_service.delete_request(session, people.auth(people.hr), request_id)

    async with session_factory() as session:
        await request_service.cancel_request(session, people.auth(people.employee), request_id)
    async with session_factory() as session:
        await request_service.delete_request(session, people.auth(people.hr), request_id)

    with pytest.raises(NotFoundError):
        async with session_factory() as session:
            await request_service.get_request(session, people.auth(people.hr), request_id)

    async with session_factory() as session:
        listing = await request_service.list_requests(session, employee_id=people.employee.id)
    assert listing.total == 0


async def test_approved_request_cannot_be_deleted(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    request_id = await _to_pending_hr(session_factory, people)
    async with session_factory() as session:
        await request_service.hr_decide(session, people.auth(people.hr), request_id, APPROVE)

    with pytest.raises(InvalidTransitionError):
        async with session_factory() as session:
            await request_service.delete_request(session, people.auth(people.hr), request_id)

    assert await _status(session_factory, request_id) == "APPROVED"
    assert (await _balance(session_factory, people.employee.id)).used_days == 5  # type: ignore[union-attr]
    with pytest.raises(ConflictError):
        await _submit(session_factory, people.auth(people.employee))

    async with session_factory() as session:
        await request_service.cancel_request(session, people.auth(people.hr), request_id)
    async with session_factory() as session:
        await request_service.delete_request(session, people.auth(people.hr), request_id)

    assert (await _balance(session_factory, people.employee.id)).used_days == 0  # type: ignore[union-attr]
    await _submit(session_factory, people.auth(people.employee))


async def test_get_request_visibility(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    request_id = await _submit(session_factory, people.auth(people.employee))
    for viewer in (people.employee, people.manager, people.hr):
        async with session_factory() as session:
            response = await request_service.get_request(session, people.auth(viewer), request_id)
        assert response.id == request_id

    with pytest.raises(AuthorizationError):
        async with session_factory() as session:
            await request_service.get_request(session, people.auth(people.peer), request_id)


async def test_list_requests_filters(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    first = await _submit(session_factory, people.auth(people.employee), _payload(date(2030, 1, 1), date(2030, 1, 2)))
    await _submit(session_factory, people.auth(people.employee), _payload(date(2030, 2, 1), date(2030, 2, 2)))
    await _submit(session_factory, people.auth(people.peer), _payload(date(2030, 1, 1), date(2030, 1, 2)))
    async with session_factory() as session:
        await request_service.manager_decide(session, people.auth(people.manager), first, APPROVE)

    async with session_factory() as session:
        mine = await request_service.list_requests(session, employee_id=people.employee.id)
        team = await request_service.list_requests(session, manager_id=people.manager.id)
        pending_hr = await request_service.list_requests(session, status_filter=LeaveStatus.PENDING_HR)
        paged = await request_service.list_requests(session, manager_id=people.manager.id, limit=2)

    assert mine.total == 2
    assert team.total == 3
    assert [r.id for r in pending_hr.items] == [first]
    assert paged.total == 3
    assert len(paged.items) == 2


async def test_pending_approval_counts(
    session_factory: async_sessionmaker[AsyncSession],
    people: People,
) -> None:
    first = await _submit(session_factory, people.auth(people.employee), _payload(date(2030, 1, 1), date(2030, 1, 2)))
    await _submit(session_factory, people.auth(people.peer), _payload(date(2030, 1, 1), date(2030, 1, 2)))
    async with session_factory() as session:
        await request_service.manager_decide(session, people.auth(people.manager), first, APPROVE)

    async with session_factory() as session:
        manager_counts = await request_service.pending_approval_counts(session, people.auth(people.manager))
        hr_counts = await request_service.pending_approval_counts(session, people.auth(people.hr))

    assert (manager_counts.pending_manager, manager_counts.pending_hr) == (1, 0)
    assert (hr_counts.pending_manager, hr_counts.pending_hr) == (0, 1)
    assert hr_counts.total == 1


def test_transitions_never_move_backwards() -> None:
    for status, allowed in request_service.ALLOWED_TRANSITIONS.items():
        assert status not in allowed
        if status.is_terminal and status != LeaveStatus.APPROVED:
            assert not allowed
        assert LeaveStatus.PENDING_MANAGER not in allowed
