# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from leavedesk.models.base import DAYS_TYPE


def _now_utc() -> datetime:
    return datetime.now(UTC)


class LeaveBalance(SQLModel, table=True):
    """Remaining days for one user and leave type.

    The row is the serialization point for balance changes: every write is a
    single conditional UPDATE that also bumps ``version``.
    """

    __tablename__ = "leave_balance"
    __table_args__ = (sa.PrimaryKeyConstraint("user_id", "leave_type"),)

    user_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False),
    )
    leave_type: str = Field(max_length=50)
    balance: Decimal = Field(default=Decimal("0"), sa_type=DAYS_TYPE, sa_column_kwargs={"server_default": "0"})
    last_accrual_period: str | None = Field(default=None, max_length=7)
    updated_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=_now_utc,
        sa_type=sa.DateTime(timezone=True),
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": sa.func.now()},
    )
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})
