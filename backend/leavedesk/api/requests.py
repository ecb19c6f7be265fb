# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from leavedesk.api.deps import ApproverDep, CurrentUserDep
from leavedesk.db import SessionDep
from leavedesk.models.enums import LeaveType, RequestKind, RequestStatus
from leavedesk.schemas.request import (
    ApplyLeavePayload,
    CancelPayload,
    CompOffPayload,
    DecisionPayload,
    RequestListResponse,
    RequestResponse,
    WfhPayload,
)
from leavedesk.services import requests as request_service

requests_router = APIRouter(prefix="/leaves", tags=["leaves"])


@requests_router.post("", response_model=RequestResponse, status_code=status.HTTP_201_CREATED)
async def apply_leave(
    payload: ApplyLeavePayload,
    session: SessionDep,
    user: CurrentUserDep,
) -> RequestResponse:
    """Apply for leave. The balance is debited immediately."""
    return await request_service.apply_leave(session, user, payload)


@requests_router.post("/wfh", response_model=RequestResponse, status_code=status.HTTP_201_CREATED)
async def mark_wfh(
    payload: WfhPayload,
    session: SessionDep,
    user: CurrentUserDep,
) -> RequestResponse:
    return await request_service.mark_wfh(session, user, payload)


@requests_router.post("/comp-off", response_model=RequestResponse, status_code=status.HTTP_201_CREATED)
async def request_comp_off(
    payload: CompOffPayload,
    session: SessionDep,
    user: CurrentUserDep,
) -> RequestResponse:
    """Claim comp-off for a day worked; credited when approved."""
    return await request_service.request_comp_off(session, user, payload)


@requests_router.get("", response_model=RequestListResponse)
async def list_requests(
    session: SessionDep,
    actor: ApproverDep,
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
    user_id: uuid.UUID | None = Query(default=None),
    kind: RequestKind | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> RequestListResponse:
    """List requests in the approver's scope (admins see everything)."""
    return await request_service.list_all(
        session,
        actor,
        status_filter=status_filter,
        user_id=user_id,
        kind=kind,
        offset=offset,
        limit=limit,
    )


@requests_router.get("/mine", response_model=RequestListResponse)
async def list_my_requests(
    session: SessionDep,
    user: CurrentUserDep,
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
    kind: RequestKind | None = Query(default=None),
    leave_type: LeaveType | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> RequestListResponse:
    return await request_service.list_for_user(
        session,
        user.id,
        status_filter=status_filter,
        kind=kind,
        leave_type=leave_type,
        offset=offset,
        limit=limit,
    )


@requests_router.get("/pending", response_model=RequestListResponse)
async def list_pending(
    session: SessionDep,
    actor: ApproverDep,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> RequestListResponse:
    """Pending requests awaiting the caller's decision."""
    return await request_service.list_pending(session, actor, offset, limit)


@requests_router.get("/{request_id}", response_model=RequestResponse)
async def get_request(
    request_id: uuid.UUID,
    session: SessionDep,
    user: CurrentUserDep,
) -> RequestResponse:
    return await request_service.get_request(session, user, request_id)


@requests_router.post("/{request_id}/decision", response_model=RequestResponse)
async def decide_request(
    request_id: uuid.UUID,
    payload: DecisionPayload,
    session: SessionDep,
    actor: ApproverDep,
) -> RequestResponse:
    """Approve or reject a pending request (manager or admin)."""
    return await request_service.decide_request(session, actor, request_id, payload)


@requests_router.post("/{request_id}/cancel", response_model=RequestResponse)
async def cancel_request(
    request_id: uuid.UUID,
    session: SessionDep,
    user: CurrentUserDep,
    payload: CancelPayload | None = None,
) -> RequestResponse:
    """Cancel a pending request and restore its balance."""
    return await request_service.cancel_request(session, user, request_id, payload)
