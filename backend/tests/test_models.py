from __future__ import annotations

import uuid
from datetime import date

from app.models import (
    LeaveAuditLog,
    LeaveBalance,
    LeaveRequest,
    LeaveTypeConfig,
    SQLModel,
)
from app.models.enums import LeaveAuditAction, LeaveStatus

EXPECTED_TABLES = {
    "leave_audit_log",
    "leave_balance",
    "leave_request",
    "leave_type_config",
}


def test_all_tables_registered() -> None:
    table_names = set(SQLModel.metadata.tables.keys())
    assert EXPECTED_TABLES.issubset(table_names)


def test_leave_request_defaults() -> None:
    request = LeaveRequest(
        employee_id=uuid.uuid4(),
        manager_id=uuid.uuid4(),
        leave_type="ANNUAL",
        start_date=date(2030, 7, 1),
        end_date=date(2030, 7, 2),
        days=2,
    )
    assert request.status == LeaveStatus.PENDING_MANAGER
    assert request.note is None
    assert request.deleted_at is None
    assert request.id is not None


def test_leave_balance_remaining_days() -> None:
    balance = LeaveBalance(employee_id=uuid.uuid4(), year=2030, leave_type="ANNUAL", total_days=21, used_days=5)
    assert balance.remaining_days == 16


def test_leave_type_config_defaults() -> None:
    config = LeaveTypeConfig(leave_type="SICK", display_name="Sick")
    assert config.default_balance == 0
    assert config.auto_approve_enabled is False
    assert config.bypass_conflict_check is False
    assert not config.auto_approves(1)


def test_audit_log_instantiation() -> None:
    entry = LeaveAuditLog(
        request_id=uuid.uuid4(),
        actor_id=uuid.uuid4(),
        action=LeaveAuditAction.SUBMITTED,
        new_status=LeaveStatus.PENDING_MANAGER,
    )
    assert entry.comment is None
    assert entry.snapshot_json is None
    assert entry.created_at is not None


def test_terminal_statuses() -> None:
    assert {s for s in LeaveStatus if s.is_terminal} == {
        LeaveStatus.APPROVED,
        LeaveStatus.REJECTED,
        LeaveStatus.CANCELLED,
    }


def test_request_table_constraints() -> None:
    table = SQLModel.metadata.tables["leave_request"]
    constraint_names = {c.name for c in table.constraints}
    assert "ck_leave_request_date_order" in constraint_names

    balance_table = SQLModel.metadata.tables["leave_balance"]
    assert "uq_leave_balance_employee_year_type" in {c.name for c in balance_table.constraints}
