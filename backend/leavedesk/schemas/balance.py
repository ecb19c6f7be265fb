# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from leavedesk.models.enums import LeaveType, LedgerEntryType, LedgerSourceType

# ---------------------------------------------------------------------------
# Balance response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    """Balance for one leave type. Negative means LOP debt."""

    leave_type: LeaveType
    balance: float
    annual_quota: float | None
    last_accrual_period: str | None
    updated_at: datetime | None


class BalanceListResponse(BaseModel):
    user_id: uuid.UUID
    items: list[BalanceResponse]
    lop_days: float
    carry_forward_days: float
    max_lop_days: float


# ---------------------------------------------------------------------------
# Ledger response schemas
# ---------------------------------------------------------------------------


class LedgerEntryResponse(BaseModel):
    """A single ledger entry."""

    id: uuid.UUID
    user_id: uuid.UUID
    leave_type: LeaveType
    entry_type: LedgerEntryType
    amount_days: float
    balance_after: float | None
    source_type: LedgerSourceType
    source_id: str
    metadata_json: dict[str, Any] | None
    created_at: datetime


class LedgerListResponse(BaseModel):
    """Paginated ledger entries."""

    items: list[LedgerEntryResponse]
    total: int


# ---------------------------------------------------------------------------
# Adjustment request schema
# ---------------------------------------------------------------------------


class CreateAdjustmentRequest(BaseModel):
    """Request body for creating an admin balance adjustment."""

    user_id: uuid.UUID
    leave_type: LeaveType
    amount_days: float = Field(
        description="Signed days: positive to add, negative to deduct",
    )
    reason: str = Field(min_length=1, max_length=1000)
