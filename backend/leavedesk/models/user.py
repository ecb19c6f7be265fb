# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from leavedesk.models.base import DAYS_TYPE, TimestampMixin, UUIDBase
from leavedesk.models.enums import EmploymentType, Role


class User(UUIDBase, TimestampMixin, table=True):
    """An account: the acting identity behind every bearer token."""

    __tablename__ = "user_account"

    name: str = Field(max_length=255)
    email: str = Field(max_length=255, unique=True, index=True)
    password_hash: str = Field(max_length=255)
    role: str = Field(default=Role.EMPLOYEE, max_length=50, sa_column_kwargs={"server_default": "employee"})
    employment_type: str = Field(
        default=EmploymentType.REGULAR, max_length=50, sa_column_kwargs={"server_default": "regular"}
    )
    department: str | None = Field(default=None, max_length=255, index=True)
    manager_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("user_account.id", ondelete="SET NULL"), nullable=True, index=True),
    )
    joining_date: date
    is_active: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})
    lop_days: Decimal = Field(default=Decimal("0"), sa_type=DAYS_TYPE, sa_column_kwargs={"server_default": "0"})
    carry_forward_days: Decimal = Field(
        default=Decimal("0"), sa_type=DAYS_TYPE, sa_column_kwargs={"server_default": "0"}
    )
