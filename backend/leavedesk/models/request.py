# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from leavedesk.models.base import DAYS_TYPE, TimestampMixin, UUIDBase
from leavedesk.models.enums import RequestKind, RequestStatus


class LeaveRequest(UUIDBase, TimestampMixin, table=True):
    """A leave, work-from-home or comp-off request with its approval state."""

    __tablename__ = "leave_request"
    __table_args__ = (
        sa.Index("ix_request_user_status", "user_id", "status"),
        sa.Index("ix_request_dates", "start_date", "end_date"),
    )

    user_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    kind: str = Field(default=RequestKind.LEAVE, max_length=50)
    leave_type: str = Field(max_length=50)
    start_date: date
    end_date: date
    is_half_day: bool = False
    working_days: Decimal = Field(default=Decimal("0"), sa_type=DAYS_TYPE)
    comp_off_days: Decimal = Field(default=Decimal("0"), sa_type=DAYS_TYPE)
    reason: str
    status: str = Field(
        default=RequestStatus.PENDING, max_length=50, index=True, sa_column_kwargs={"server_default": "pending"}
    )
    documents_json: list[dict[str, Any]] | None = Field(default=None, sa_type=sa.JSON)
    balance_deducted: bool = False
    lop_converted_days: Decimal = Field(
        default=Decimal("0"), sa_type=DAYS_TYPE, sa_column_kwargs={"server_default": "0"}
    )
    decided_by: uuid.UUID | None = None
    decided_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    decision_note: str | None = None
    cancelled_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    cancellation_reason: str | None = None
