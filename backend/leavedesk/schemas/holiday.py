# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel, Field

from leavedesk.models.enums import HolidayType


class CreateHolidayRequest(BaseModel):
    """Request body for creating a holiday. No department means global."""

    date: date
    name: str = Field(min_length=1, max_length=255)
    type: HolidayType = HolidayType.NATIONAL
    department: str | None = Field(default=None, max_length=255)


class HolidayResponse(BaseModel):
    id: uuid.UUID
    date: date
    name: str
    type: HolidayType
    department: str | None
    is_active: bool


class HolidayListResponse(BaseModel):
    """List of holidays."""

    items: list[HolidayResponse]
    total: int
