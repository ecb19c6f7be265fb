from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from leavedesk.models import (
    AccrualRun,
    AuditLog,
    Holiday,
    LeaveBalance,
    LeaveLedgerEntry,
    LeaveRequest,
    SQLModel,
    SystemConfig,
    User,
)
from leavedesk.models.enums import (
    BALANCE_LEAVE_TYPES,
    ORDINARY_LEAVE_TYPES,
    AccrualRunStatus,
    LeaveType,
    RequestKind,
    RequestStatus,
    Role,
)

EXPECTED_TABLES = {
    "accrual_run",
    "audit_log",
    "holiday",
    "leave_balance",
    "leave_ledger_entry",
    "leave_request",
    "system_config",
    "user_account",
}


def test_all_tables_registered() -> None:
    assert EXPECTED_TABLES.issubset(set(SQLModel.metadata.tables))


def test_user_defaults() -> None:
    user = User(name="A", email="a@example.com", password_hash="x", joining_date=date(2024, 1, 1))
    assert user.role == Role.EMPLOYEE
    assert user.is_active is True
    assert user.lop_days == Decimal("0")
    assert user.manager_id is None


def test_leave_balance_composite_key() -> None:
    table = LeaveBalance.__table__
    assert [c.name for c in table.primary_key.columns] == ["user_id", "leave_type"]
    balance = LeaveBalance(user_id=uuid.uuid4(), leave_type=LeaveType.SICK)
    assert balance.version == 1
    assert balance.last_accrual_period is None


def test_ledger_idempotency_constraint() -> None:
    constraint_names = {c.name for c in LeaveLedgerEntry.__table__.constraints}
    assert "uq_ledger_idempotency" in constraint_names


def test_leave_request_defaults() -> None:
    request = LeaveRequest(
        user_id=uuid.uuid4(),
        leave_type=LeaveType.SICK,
        start_date=date(2025, 7, 1),
        end_date=date(2025, 7, 2),
        reason="Feeling unwell today",
    )
    assert request.status == RequestStatus.PENDING
    assert request.kind == RequestKind.LEAVE
    assert request.balance_deducted is False


def test_holiday_is_global_by_default() -> None:
    holiday = Holiday(date=date(2025, 12, 25), name="Christmas")
    assert holiday.department is None
    assert holiday.is_active is True


def test_misc_model_defaults() -> None:
    run = AccrualRun(period="2025-01")
    assert run.status == AccrualRunStatus.COMPLETED
    assert SystemConfig().name == "system_config"
    entry = AuditLog(entity_type="USER", entity_id=uuid.uuid4(), action="CREATE")
    assert entry.actor_id is None


def test_leave_type_groups() -> None:
    assert LeaveType.COMP_OFF in BALANCE_LEAVE_TYPES
    assert LeaveType.COMP_OFF not in ORDINARY_LEAVE_TYPES
    assert LeaveType.LOP not in BALANCE_LEAVE_TYPES
    assert LeaveType.WFH not in BALANCE_LEAVE_TYPES
