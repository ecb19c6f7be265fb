# ruff: noqa: TC001
from __future__ import annotations

from fastapi import APIRouter, status

from leavedesk.api.deps import CurrentUserDep
from leavedesk.db import SessionDep
from leavedesk.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    TokenResponse,
)
from leavedesk.schemas.user import UserResponse
from leavedesk.services import auth as auth_service
from leavedesk.services.user import build_user_response

auth_router = APIRouter(prefix="/auth", tags=["auth"])


@auth_router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, session: SessionDep) -> TokenResponse:
    """Exchange email and password for a bearer token."""
    return await auth_service.login(session, payload)


@auth_router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, session: SessionDep) -> TokenResponse:
    """Create an employee account and sign in."""
    return await auth_service.register(session, payload)


@auth_router.get("/me", response_model=UserResponse)
async def me(user: CurrentUserDep) -> UserResponse:
    return build_user_response(user)


@auth_router.post("/change-password", response_model=MessageResponse)
async def change_password(
    payload: ChangePasswordRequest,
    session: SessionDep,
    user: CurrentUserDep,
) -> MessageResponse:
    await auth_service.change_password(session, user, payload)
    return MessageResponse(message="Password updated")


@auth_router.post("/logout", response_model=MessageResponse)
async def logout(user: CurrentUserDep) -> MessageResponse:
    """Tokens are stateless; the client discards its copy."""
    return MessageResponse(message="Logged out")
