# ruff: noqa: TC001
from __future__ import annotations

from fastapi import APIRouter

from leavedesk.api.deps import ApproverDep
from leavedesk.db import SessionDep
from leavedesk.schemas.user import TeamResponse
from leavedesk.services import directory

team_router = APIRouter(prefix="/team", tags=["team"])


@team_router.get("/members", response_model=TeamResponse)
async def list_team_members(session: SessionDep, manager: ApproverDep) -> TeamResponse:
    """Active members of the caller's team, grouped by department."""
    return await directory.get_team(session, manager)
