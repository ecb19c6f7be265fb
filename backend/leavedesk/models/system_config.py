# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from leavedesk.models.base import DAYS_TYPE, TimestampMixin, UUIDBase
from leavedesk.models.enums import AccrualRunStatus

SYSTEM_CONFIG_NAME = "system_config"


class SystemConfig(UUIDBase, table=True):
    """Single named row holding quotas, accrual rates and system settings.

    The JSON columns are validated against the schemas in
    ``leavedesk.schemas.settings`` on every read.
    """

    __tablename__ = "system_config"

    name: str = Field(default=SYSTEM_CONFIG_NAME, max_length=100, unique=True)
    leave_quotas_json: dict[str, Any] = Field(default_factory=dict, sa_type=sa.JSON)
    accrual_rates_json: dict[str, Any] = Field(default_factory=dict, sa_type=sa.JSON)
    system_settings_json: dict[str, Any] = Field(default_factory=dict, sa_type=sa.JSON)
    last_accrual_run_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    updated_by: uuid.UUID | None = None


class AccrualRun(UUIDBase, TimestampMixin, table=True):
    """History entry for one monthly accrual batch."""

    __tablename__ = "accrual_run"

    period: str = Field(max_length=7, index=True)
    processed: int = 0
    credited: int = 0
    skipped: int = 0
    failed: int = 0
    total_credited: Decimal = Field(default=Decimal("0"), sa_type=DAYS_TYPE)
    converted_to_lop: Decimal = Field(default=Decimal("0"), sa_type=DAYS_TYPE)
    status: str = Field(default=AccrualRunStatus.COMPLETED, max_length=50)
    run_by: uuid.UUID | None = None
