from sqlmodel import SQLModel

from leavedesk.models.audit import AuditLog
from leavedesk.models.balance import LeaveBalance
from leavedesk.models.base import TimestampMixin, UUIDBase
from leavedesk.models.enums import (
    AccrualRunStatus,
    AuditAction,
    AuditEntityType,
    EmploymentType,
    HolidayType,
    LedgerEntryType,
    LedgerSourceType,
    LeaveType,
    RequestKind,
    RequestStatus,
    Role,
)
from leavedesk.models.holiday import Holiday
from leavedesk.models.ledger import LeaveLedgerEntry
from leavedesk.models.request import LeaveRequest
from leavedesk.models.system_config import AccrualRun, SystemConfig
from leavedesk.models.user import User

__all__ = [
    "AccrualRun",
    "AccrualRunStatus",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "EmploymentType",
    "Holiday",
    "HolidayType",
    "LeaveBalance",
    "LeaveLedgerEntry",
    "LeaveRequest",
    "LeaveType",
    "LedgerEntryType",
    "LedgerSourceType",
    "RequestKind",
    "RequestStatus",
    "Role",
    "SQLModel",
    "SystemConfig",
    "TimestampMixin",
    "UUIDBase",
    "User",
]
