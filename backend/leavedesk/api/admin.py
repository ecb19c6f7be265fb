# ruff: noqa: B008, TC001, TC003
"""Admin endpoints: configuration and account management."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from leavedesk.api.deps import AdminDep
from leavedesk.db import SessionDep
from leavedesk.models.enums import Role
from leavedesk.schemas.settings import (
    AccrualRates,
    ConfigResponse,
    LeaveQuotas,
    LopSettings,
    SystemSettings,
)
from leavedesk.schemas.user import CreateUserRequest, UpdateUserRequest, UserListResponse, UserResponse
from leavedesk.services import settings as config_service
from leavedesk.services import user as user_service

admin_router = APIRouter(prefix="/admin", tags=["admin"])

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@admin_router.get("/config", response_model=ConfigResponse)
async def get_config(session: SessionDep, actor: AdminDep) -> ConfigResponse:
    """Full configuration in one response."""
    return await config_service.get_config(session)


@admin_router.get("/quotas", response_model=LeaveQuotas)
async def get_quotas(session: SessionDep, actor: AdminDep) -> LeaveQuotas:
    return await config_service.load_leave_quotas(session)


@admin_router.put("/quotas", response_model=LeaveQuotas)
async def update_quotas(payload: LeaveQuotas, session: SessionDep, actor: AdminDep) -> LeaveQuotas:
    """Update annual quotas. Only the fields sent are changed."""
    return await config_service.update_leave_quotas(session, actor, payload)


@admin_router.get("/accrual-rates", response_model=AccrualRates)
async def get_accrual_rates(session: SessionDep, actor: AdminDep) -> AccrualRates:
    return await config_service.load_accrual_rates(session)


@admin_router.put("/accrual-rates", response_model=AccrualRates)
async def update_accrual_rates(payload: AccrualRates, session: SessionDep, actor: AdminDep) -> AccrualRates:
    return await config_service.update_accrual_rates(session, actor, payload)


@admin_router.get("/settings", response_model=SystemSettings)
async def get_system_settings(session: SessionDep, actor: AdminDep) -> SystemSettings:
    return await config_service.load_system_settings(session)


@admin_router.put("/settings", response_model=SystemSettings)
async def update_system_settings(payload: SystemSettings, session: SessionDep, actor: AdminDep) -> SystemSettings:
    """Update system settings. Nested blocks merge key by key."""
    return await config_service.update_system_settings(session, actor, payload)


@admin_router.get("/lop-settings", response_model=LopSettings)
async def get_lop_settings(session: SessionDep, actor: AdminDep) -> LopSettings:
    settings = await config_service.load_system_settings(session)
    return settings.lop_settings


@admin_router.put("/lop-settings", response_model=LopSettings)
async def update_lop_settings(payload: LopSettings, session: SessionDep, actor: AdminDep) -> LopSettings:
    return await config_service.update_lop_settings(session, actor, payload)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@admin_router.get("/users", response_model=UserListResponse)
async def list_users(
    session: SessionDep,
    actor: AdminDep,
    role: Role | None = Query(default=None),
    department: str | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> UserListResponse:
    """List accounts with optional filters."""
    return await user_service.list_users(
        session,
        role=role,
        department=department,
        is_active=is_active,
        offset=offset,
        limit=limit,
    )


@admin_router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(payload: CreateUserRequest, session: SessionDep, actor: AdminDep) -> UserResponse:
    """Create an account with any role; opening balances are granted."""
    return await user_service.create_user(session, actor, payload)


@admin_router.patch("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: uuid.UUID,
    payload: UpdateUserRequest,
    session: SessionDep,
    actor: AdminDep,
) -> UserResponse:
    return await user_service.update_user(session, actor, user_id, payload)


@admin_router.post("/users/{user_id}/toggle-status", response_model=UserResponse)
async def toggle_user_status(user_id: uuid.UUID, session: SessionDep, actor: AdminDep) -> UserResponse:
    """Activate or deactivate an account."""
    return await user_service.toggle_user_status(session, actor, user_id)
