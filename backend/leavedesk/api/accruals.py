# ruff: noqa: TC001, TC003
"""Admin endpoints for the accrual run and loss-of-pay handling."""

from __future__ import annotations

import uuid

from fastapi import APIRouter

from leavedesk.api.deps import AdminDep
from leavedesk.db import SessionDep
from leavedesk.schemas.accrual import (
    AccrualInfoResponse,
    AccrualRunResponse,
    BulkLopConversionResponse,
    LopConversionResponse,
    LopReportResponse,
    RunAccrualRequest,
)
from leavedesk.services import accrual as accrual_service

accruals_router = APIRouter(prefix="/admin", tags=["accruals"])


@accruals_router.get("/accruals", response_model=AccrualInfoResponse)
async def get_accrual_info(session: SessionDep, actor: AdminDep) -> AccrualInfoResponse:
    """Last run, next scheduled run, rates and recent history."""
    return await accrual_service.get_accrual_info(session)


@accruals_router.post("/accruals/run", response_model=AccrualRunResponse)
async def run_accruals(
    session: SessionDep,
    actor: AdminDep,
    payload: RunAccrualRequest | None = None,
) -> AccrualRunResponse:
    """Run monthly accrual now (admin only).

    Re-running a period that was already applied credits nothing, so this is
    safe for backfills.
    """
    result = await accrual_service.run_monthly_accrual(
        session,
        payload.period if payload else None,
        actor_id=actor.id,
    )
    return accrual_service.to_run_response(result)


@accruals_router.get("/lop/report", response_model=LopReportResponse)
async def get_lop_report(session: SessionDep, actor: AdminDep) -> LopReportResponse:
    return await accrual_service.get_lop_report(session)


@accruals_router.post("/lop/convert", response_model=BulkLopConversionResponse)
async def convert_all_negative_balances(session: SessionDep, actor: AdminDep) -> BulkLopConversionResponse:
    """Convert every negative balance into LOP days."""
    return await accrual_service.bulk_convert_negative_balances(session, actor.id)


@accruals_router.post("/lop/convert/{user_id}", response_model=LopConversionResponse)
async def convert_user_negative_balances(
    user_id: uuid.UUID,
    session: SessionDep,
    actor: AdminDep,
) -> LopConversionResponse:
    return await accrual_service.convert_user_negative_balances(session, actor.id, user_id)
