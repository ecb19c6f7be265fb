"""Org directory: which users belong to a manager's team."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import ColumnElement, false, or_, select
from sqlmodel import col

from leavedesk.models.enums import Role
from leavedesk.models.user import User
from leavedesk.schemas.user import TeamMember, TeamResponse

if TYPE_CHECKING:
    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession

UNASSIGNED_DEPARTMENT = "Unassigned"


def team_condition(manager: User) -> ColumnElement[bool]:
    """Users who report to ``manager`` or share the manager's department."""
    same_department = col(User.department) == manager.department if manager.department else false()
    return or_(col(User.manager_id) == manager.id, same_department)


def team_user_ids(manager: User) -> Select[tuple[uuid.UUID]]:
    """Subquery of team member ids, for use with ``in_``."""
    return select(col(User.id)).where(team_condition(manager))


async def is_in_team(session: AsyncSession, manager: User, user_id: uuid.UUID) -> bool:
    """Return whether ``user_id`` is the manager or one of their team."""
    if user_id == manager.id:
        return True
    result = await session.execute(select(col(User.id)).where(col(User.id) == user_id, team_condition(manager)))
    return result.scalar_one_or_none() is not None


async def can_view_user(session: AsyncSession, actor: User, user_id: uuid.UUID) -> bool:
    """Admins see everyone, managers their team, employees themselves."""
    if actor.role == Role.ADMIN or actor.id == user_id:
        return True
    if actor.role == Role.MANAGER:
        return await is_in_team(session, actor, user_id)
    return False


async def get_team(session: AsyncSession, manager: User) -> TeamResponse:
    """Active team members of ``manager`` grouped by department."""
    result = await session.execute(
        select(User)
        .where(
            team_condition(manager),
            col(User.id) != manager.id,
            col(User.is_active).is_(True),
        )
        .order_by(col(User.name))
    )
    members = list(result.scalars().all())

    grouped: dict[str, list[TeamMember]] = {}
    for member in members:
        grouped.setdefault(member.department or UNASSIGNED_DEPARTMENT, []).append(
            TeamMember(
                id=member.id,
                name=member.name,
                email=member.email,
                role=member.role,
                employment_type=member.employment_type,
                joining_date=member.joining_date,
            )
        )

    return TeamResponse(departments=list(grouped), members=grouped, total=len(members))
