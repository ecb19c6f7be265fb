from __future__ import annotations

import datetime

import sqlalchemy as sa
from sqlmodel import Field

from leavedesk.models.base import UUIDBase
from leavedesk.models.enums import HolidayType


class Holiday(UUIDBase, table=True):
    """A holiday that excludes a day from leave counts.

    ``department`` is ``None`` for holidays that apply to everyone.
    """

    __tablename__ = "holiday"
    __table_args__ = (sa.UniqueConstraint("date", "department", name="uq_holiday_date_department"),)

    date: datetime.date = Field(index=True)
    name: str = Field(max_length=255)
    type: str = Field(default=HolidayType.NATIONAL, max_length=50)
    department: str | None = Field(default=None, max_length=255)
    is_active: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})
