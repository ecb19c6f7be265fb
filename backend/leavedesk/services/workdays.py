"""Working-day arithmetic over the configured weekdays and holiday calendar."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import or_, select
from sqlmodel import col

from leavedesk.models.holiday import Holiday

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

HALF_DAY = Decimal("0.5")


def holiday_scope_filter(department: str | None) -> list:
    """Filters for active holidays that apply to someone in ``department``.

    Global holidays always apply; department holidays only to that department.
    """
    filters = [col(Holiday.is_active).is_(True)]
    if department:
        filters.append(or_(col(Holiday.department).is_(None), col(Holiday.department) == department))
    else:
        filters.append(col(Holiday.department).is_(None))
    return filters


async def fetch_holiday_dates(
    session: AsyncSession,
    start_date: date,
    end_date: date,
    department: str | None = None,
) -> set[date]:
    """Fetch holiday dates in the given range that apply to ``department``."""
    result = await session.execute(
        select(col(Holiday.date)).where(
            col(Holiday.date) >= start_date,
            col(Holiday.date) <= end_date,
            *holiday_scope_filter(department),
        )
    )
    return {row[0] for row in result.all()}


def is_working_day(day: date, working_weekdays: Iterable[int], holiday_dates: set[date]) -> bool:
    return day.isoweekday() in set(working_weekdays) and day not in holiday_dates


def count_working_days(
    start_date: date,
    end_date: date,
    working_weekdays: Iterable[int],
    holiday_dates: set[date],
    *,
    is_half_day: bool = False,
) -> Decimal:
    """Count working days in the inclusive range ``[start_date, end_date]``.

    A half day counts 0.5 when its single date is a working day.
    """
    weekdays = set(working_weekdays)
    total = 0
    current = start_date
    one_day = timedelta(days=1)
    while current <= end_date:
        if current.isoweekday() in weekdays and current not in holiday_dates:
            total += 1
        current += one_day

    if is_half_day:
        return HALF_DAY if total else Decimal("0")
    return Decimal(total)
