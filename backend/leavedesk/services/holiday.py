from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import extract, func, select
from sqlmodel import col

from leavedesk.exceptions import NotFound, ValidationError
from leavedesk.models.enums import AuditAction, AuditEntityType, HolidayType
from leavedesk.models.holiday import Holiday
from leavedesk.schemas.holiday import HolidayListResponse, HolidayResponse
from leavedesk.services.audit import model_to_audit_dict, write_audit_log
from leavedesk.services.workdays import holiday_scope_filter

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from leavedesk.models.user import User
    from leavedesk.schemas.holiday import CreateHolidayRequest


def _build_holiday_response(holiday: Holiday) -> HolidayResponse:
    return HolidayResponse(
        id=holiday.id,
        date=holiday.date,
        name=holiday.name,
        type=HolidayType(holiday.type),
        department=holiday.department,
        is_active=holiday.is_active,
    )


async def create_holiday(
    session: AsyncSession,
    actor: User,
    payload: CreateHolidayRequest,
) -> HolidayResponse:
    """Create a holiday, global or for one department."""
    department = payload.department or None
    duplicate = await session.execute(
        select(col(Holiday.id)).where(
            col(Holiday.date) == payload.date,
            col(Holiday.department).is_(None) if department is None else col(Holiday.department) == department,
        )
    )
    if duplicate.scalar_one_or_none() is not None:
        raise ValidationError("Holiday already exists for this date")

    holiday = Holiday(
        date=payload.date,
        name=payload.name,
        type=payload.type.value,
        department=department,
    )
    session.add(holiday)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=actor.id,
        entity_type=AuditEntityType.HOLIDAY,
        entity_id=holiday.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(holiday),
    )

    await session.commit()
    await session.refresh(holiday)
    return _build_holiday_response(holiday)


async def list_holidays(
    session: AsyncSession,
    viewer: User | None,
    year: int | None = None,
    offset: int = 0,
    limit: int = 100,
) -> HolidayListResponse:
    """List active holidays visible to ``viewer``.

    Anonymous callers see global holidays only; signed-in users also see
    their own department's holidays.
    """
    base_filter = holiday_scope_filter(viewer.department if viewer is not None else None)

    if year is not None:
        base_filter.append(extract("year", col(Holiday.date)) == year)

    count_result = await session.execute(select(func.count()).select_from(Holiday).where(*base_filter))
    total = count_result.scalar_one()

    result = await session.execute(
        select(Holiday).where(*base_filter).order_by(col(Holiday.date)).offset(offset).limit(limit)
    )
    holidays = list(result.scalars().all())

    return HolidayListResponse(
        items=[_build_holiday_response(h) for h in holidays],
        total=total,
    )


async def get_holiday(session: AsyncSession, holiday_id: uuid.UUID) -> Holiday:
    """Get a single holiday or raise 404."""
    holiday = await session.get(Holiday, holiday_id)
    if holiday is None:
        raise NotFound("Holiday not found")
    return holiday


async def delete_holiday(
    session: AsyncSession,
    actor: User,
    holiday_id: uuid.UUID,
) -> None:
    """Delete a holiday."""
    holiday = await get_holiday(session, holiday_id)

    await write_audit_log(
        session,
        actor_id=actor.id,
        entity_type=AuditEntityType.HOLIDAY,
        entity_id=holiday.id,
        action=AuditAction.DELETE,
        before_json=model_to_audit_dict(holiday),
    )

    await session.delete(holiday)
    await session.commit()
