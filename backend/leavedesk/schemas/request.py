# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Self

from pydantic import BaseModel, Field, model_validator

from leavedesk.models.enums import DecisionOutcome, LeaveType, RequestKind, RequestStatus

MIN_REASON_LENGTH = 10

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class DocumentReference(BaseModel):
    """Opaque pointer to a document stored elsewhere."""

    file_name: str = Field(min_length=1, max_length=255)
    file_url: str = Field(min_length=1, max_length=2048)
    file_size: int | None = Field(default=None, ge=0, description="Size in bytes")

    @property
    def extension(self) -> str:
        _, _, ext = self.file_name.rpartition(".")
        return ext.lower()


class ApplyLeavePayload(BaseModel):
    """Request body for applying for leave."""

    leave_type: LeaveType
    start_date: date
    end_date: date
    is_half_day: bool = False
    reason: str = Field(min_length=MIN_REASON_LENGTH, max_length=2000)
    documents: list[DocumentReference] = []


class WfhPayload(BaseModel):
    date: date
    reason: str = Field(min_length=MIN_REASON_LENGTH, max_length=2000)


class CompOffPayload(BaseModel):
    """A worked day (weekend, holiday or overtime) to be credited as comp-off."""

    worked_date: date
    days: float = Field(gt=0, le=5)
    reason: str = Field(min_length=MIN_REASON_LENGTH, max_length=2000)

    @model_validator(mode="after")
    def _validate_days(self) -> Self:
        if (self.days * 2) != int(self.days * 2):
            msg = "days must be a multiple of 0.5"
            raise ValueError(msg)
        return self


class DecisionPayload(BaseModel):
    """Request body for approve/reject actions."""

    outcome: DecisionOutcome
    note: str | None = Field(default=None, max_length=1000)


class CancelPayload(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class RequestResponse(BaseModel):
    """Response schema for a single request."""

    id: uuid.UUID
    user_id: uuid.UUID
    kind: RequestKind
    leave_type: LeaveType
    start_date: date
    end_date: date
    is_half_day: bool
    working_days: float
    comp_off_days: float
    reason: str
    status: RequestStatus
    documents: list[DocumentReference]
    balance_deducted: bool
    lop_converted_days: float
    decided_by: uuid.UUID | None
    decided_at: datetime | None
    decision_note: str | None
    cancelled_at: datetime | None
    cancellation_reason: str | None
    created_at: datetime


class RequestListResponse(BaseModel):
    """Paginated list of requests."""

    items: list[RequestResponse]
    total: int
