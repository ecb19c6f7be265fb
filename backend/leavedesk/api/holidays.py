# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from leavedesk.api.deps import AdminDep, OptionalUserDep
from leavedesk.db import SessionDep
from leavedesk.schemas.holiday import CreateHolidayRequest, HolidayListResponse, HolidayResponse
from leavedesk.services import holiday as holiday_service

holidays_router = APIRouter(prefix="/holidays", tags=["holidays"])


@holidays_router.post("", response_model=HolidayResponse, status_code=status.HTTP_201_CREATED)
async def create_holiday(
    payload: CreateHolidayRequest,
    session: SessionDep,
    actor: AdminDep,
) -> HolidayResponse:
    """Create a holiday (admin only)."""
    return await holiday_service.create_holiday(session, actor, payload)


@holidays_router.get("", response_model=HolidayListResponse)
async def list_holidays(
    session: SessionDep,
    viewer: OptionalUserDep,
    year: int | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=366),
) -> HolidayListResponse:
    """List holidays. Works without a token; signed-in users also see their department's."""
    return await holiday_service.list_holidays(session, viewer, year, offset, limit)


@holidays_router.delete("/{holiday_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_holiday(
    holiday_id: uuid.UUID,
    session: SessionDep,
    actor: AdminDep,
) -> None:
    await holiday_service.delete_holiday(session, actor, holiday_id)
