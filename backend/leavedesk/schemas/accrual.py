# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field

from leavedesk.models.enums import AccrualRunStatus
from leavedesk.schemas.settings import AccrualRates

PERIOD_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class RunAccrualRequest(BaseModel):
    """Optional body for the accrual trigger; defaults to the current month."""

    period: str | None = Field(default=None, pattern=PERIOD_PATTERN, description="YYYY-MM")


class UserAccrualResponse(BaseModel):
    """Outcome for one user in an accrual run."""

    user_id: uuid.UUID
    name: str
    status: str
    credited: dict[str, float] = {}
    carried_forward: float = 0
    converted_to_lop: float = 0
    error: str | None = None


class AccrualRunResponse(BaseModel):
    """Response from the accrual trigger endpoint."""

    period: str
    status: AccrualRunStatus
    processed: int
    credited: int
    skipped: int
    failed: int
    total_credited: float
    converted_to_lop: float
    users: list[UserAccrualResponse]


class AccrualHistoryEntry(BaseModel):
    id: uuid.UUID
    period: str
    processed: int
    credited: int
    skipped: int
    failed: int
    total_credited: float
    status: AccrualRunStatus
    run_by: uuid.UUID | None
    created_at: datetime


class AccrualInfoResponse(BaseModel):
    last_run_at: datetime | None
    next_run_date: date
    accrual_rates: AccrualRates
    history: list[AccrualHistoryEntry]


# ---------------------------------------------------------------------------
# LOP
# ---------------------------------------------------------------------------


class LopConversionResponse(BaseModel):
    """Negative balances converted to LOP for one user."""

    user_id: uuid.UUID
    name: str
    converted: dict[str, float]
    total_converted: float
    lop_days: float


class LopConversionError(BaseModel):
    user_id: uuid.UUID
    error: str


class BulkLopConversionResponse(BaseModel):
    users: list[LopConversionResponse]
    users_affected: int
    total_converted: float
    failed: int = 0
    errors: list[LopConversionError] = []


class LopReportEntry(BaseModel):
    user_id: uuid.UUID
    name: str
    email: str
    department: str | None
    lop_days: float
    negative_balances: dict[str, float]
    above_threshold: bool


class LopReportResponse(BaseModel):
    items: list[LopReportEntry]
    total: int
    alert_threshold: float
    max_lop_days: float
