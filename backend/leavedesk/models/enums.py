from __future__ import annotations

import enum


class Role(enum.StrEnum):
    """Access role of an account."""

    EMPLOYEE = "employee"
    MANAGER = "manager"
    ADMIN = "admin"


class EmploymentType(enum.StrEnum):
    """Employment type; selects the quota and accrual-rate table."""

    REGULAR = "regular"
    INTERN = "intern"


class LeaveType(enum.StrEnum):
    """Balance bucket a request draws from (or credits)."""

    SICK = "sick"
    CASUAL = "casual"
    VACATION = "vacation"
    ACADEMIC = "academic"
    COMP_OFF = "comp_off"
    LOP = "lop"
    WFH = "wfh"


# Leave types with quotas, accrual rates and LOP-convertible balances.
ORDINARY_LEAVE_TYPES: tuple[LeaveType, ...] = (
    LeaveType.SICK,
    LeaveType.CASUAL,
    LeaveType.VACATION,
    LeaveType.ACADEMIC,
)

# Leave types that own a balance row.
BALANCE_LEAVE_TYPES: tuple[LeaveType, ...] = (*ORDINARY_LEAVE_TYPES, LeaveType.COMP_OFF)


class RequestKind(enum.StrEnum):
    """Category of a request."""

    LEAVE = "leave"
    WFH = "wfh"
    COMP_OFF = "comp_off"


class RequestStatus(enum.StrEnum):
    """State machine for leave requests."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class DecisionOutcome(enum.StrEnum):
    """Outcome a manager or admin can give a pending request."""

    APPROVED = "approved"
    REJECTED = "rejected"


class HolidayType(enum.StrEnum):
    """Kind of holiday."""

    NATIONAL = "national"
    REGIONAL = "regional"
    OPTIONAL = "optional"


class LedgerEntryType(enum.StrEnum):
    """Type of ledger entry affecting balance."""

    GRANT = "GRANT"
    DEBIT = "DEBIT"
    REVERSAL = "REVERSAL"
    ACCRUAL = "ACCRUAL"
    COMP_OFF_CREDIT = "COMP_OFF_CREDIT"
    ADJUSTMENT = "ADJUSTMENT"
    CARRY_FORWARD = "CARRY_FORWARD"
    LOP_CONVERSION = "LOP_CONVERSION"


class LedgerSourceType(enum.StrEnum):
    """Origin of a ledger entry."""

    REQUEST = "REQUEST"
    ADMIN = "ADMIN"
    SYSTEM = "SYSTEM"


class LopResetPeriod(enum.StrEnum):
    """How often the LOP counter is reset for payroll."""

    MONTHLY = "monthly"
    YEARLY = "yearly"


class AccrualRunStatus(enum.StrEnum):
    """Outcome of a monthly accrual batch."""

    COMPLETED = "Completed"
    COMPLETED_WITH_ERRORS = "CompletedWithErrors"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    USER = "USER"
    REQUEST = "REQUEST"
    HOLIDAY = "HOLIDAY"
    ADJUSTMENT = "ADJUSTMENT"
    CONFIG = "CONFIG"
    ACCRUAL_RUN = "ACCRUAL_RUN"
    LOP_CONVERSION = "LOP_CONVERSION"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    APPLY = "APPLY"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"
    ACTIVATE = "ACTIVATE"
    DEACTIVATE = "DEACTIVATE"
    CONVERT = "CONVERT"
