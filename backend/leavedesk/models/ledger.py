# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from leavedesk.models.base import DAYS_TYPE, UUIDBase


def _now_utc() -> datetime:
    return datetime.now(UTC)


class LeaveLedgerEntry(UUIDBase, table=True):
    """Append-only ledger entry that records every balance-affecting event."""

    __tablename__ = "leave_ledger_entry"
    __table_args__ = (
        sa.Index("ix_ledger_user_type", "user_id", "leave_type"),
        sa.UniqueConstraint("source_type", "source_id", "entry_type", name="uq_ledger_idempotency"),
    )

    user_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    leave_type: str = Field(max_length=50)
    entry_type: str = Field(max_length=50)
    amount_days: Decimal = Field(sa_type=DAYS_TYPE)
    balance_after: Decimal | None = Field(default=None, sa_type=DAYS_TYPE)
    source_type: str = Field(max_length=50)
    source_id: str = Field(max_length=255)
    metadata_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    created_at: datetime = Field(
        default_factory=_now_utc,
        index=True,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
