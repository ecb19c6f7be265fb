# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from leavedesk.api.deps import AdminDep, CurrentUserDep
from leavedesk.db import SessionDep
from leavedesk.exceptions import Forbidden
from leavedesk.models.enums import LeaveType
from leavedesk.schemas.balance import (
    BalanceListResponse,
    CreateAdjustmentRequest,
    LedgerEntryResponse,
    LedgerListResponse,
)
from leavedesk.services import directory, ledger
from leavedesk.services.user import get_user_or_404

balances_router = APIRouter(tags=["balances"])


@balances_router.get("/balances/me", response_model=BalanceListResponse)
async def get_my_balances(session: SessionDep, user: CurrentUserDep) -> BalanceListResponse:
    """Balances and LOP days of the signed-in user."""
    return await ledger.list_balances(session, user)


@balances_router.get("/users/{user_id}/balances", response_model=BalanceListResponse)
async def get_user_balances(
    user_id: uuid.UUID,
    session: SessionDep,
    actor: CurrentUserDep,
) -> BalanceListResponse:
    """Balances of another user: self, the manager's team, or anyone for admins."""
    if not await directory.can_view_user(session, actor, user_id):
        raise Forbidden("Not authorized to view this user's balances")
    target = await get_user_or_404(session, user_id)
    return await ledger.list_balances(session, target)


@balances_router.get("/users/{user_id}/ledger", response_model=LedgerListResponse)
async def get_user_ledger(
    user_id: uuid.UUID,
    session: SessionDep,
    actor: CurrentUserDep,
    leave_type: LeaveType | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LedgerListResponse:
    """Paginated ledger entries for a user, newest first."""
    if not await directory.can_view_user(session, actor, user_id):
        raise Forbidden("Not authorized to view this user's ledger")
    await get_user_or_404(session, user_id)
    return await ledger.list_ledger(session, user_id, leave_type, offset, limit)


@balances_router.post("/adjustments", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_adjustment(
    payload: CreateAdjustmentRequest,
    session: SessionDep,
    actor: AdminDep,
) -> LedgerEntryResponse:
    """Create an admin balance adjustment."""
    return await ledger.create_adjustment(session, actor, payload)
