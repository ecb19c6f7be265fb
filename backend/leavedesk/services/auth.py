"""Account service: credential verification, login, registration and passwords."""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leavedesk.config import get_settings
from leavedesk.exceptions import (
    AccountDeactivated,
    Forbidden,
    Unauthenticated,
    UnknownIdentity,
    ValidationError,
)
from leavedesk.models.enums import AuditAction, AuditEntityType, Role
from leavedesk.models.user import User
from leavedesk.schemas.auth import TokenResponse
from leavedesk.services import security
from leavedesk.services import user as user_service
from leavedesk.services.audit import write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leavedesk.schemas.auth import ChangePasswordRequest, LoginRequest, RegisterRequest

logger = logging.getLogger(__name__)


async def verify_credential(session: AsyncSession, token: str | None) -> User:
    """Resolve a bearer token to an active user.

    Raises Unauthenticated (no token), InvalidToken/ExpiredToken (bad token),
    UnknownIdentity (no such user) or AccountDeactivated (inactive user).
    """
    if not token:
        raise Unauthenticated("Missing bearer token")

    user_id = security.decode_access_token(token)
    user = await session.get(User, user_id)
    if user is None:
        logger.warning("Authentication failed: user %s not found", user_id)
        raise UnknownIdentity("User not found")
    if not user.is_active:
        logger.warning("Authentication failed: user %s is deactivated", user_id)
        raise AccountDeactivated("Account is deactivated")
    return user


def _issue_token(user: User) -> TokenResponse:
    token, expires_in = security.create_access_token(user.id)
    return TokenResponse(
        access_token=token,
        expires_in=expires_in,
        user=user_service.build_user_response(user),
    )


async def login(session: AsyncSession, payload: LoginRequest) -> TokenResponse:
    result = await session.execute(select(User).where(col(User.email) == payload.email.strip().lower()))
    user = result.scalar_one_or_none()
    if user is None or not security.verify_password(payload.password, user.password_hash):
        logger.warning("Login failed for %s", payload.email)
        raise Unauthenticated("Invalid email or password")
    if not user.is_active:
        logger.warning("Login refused for deactivated user %s", user.id)
        raise AccountDeactivated("Account is deactivated")

    logger.info("User %s logged in", user.id)
    return _issue_token(user)


async def register(session: AsyncSession, payload: RegisterRequest) -> TokenResponse:
    """Self-registration. The account always gets the employee role."""
    if not get_settings().allow_self_registration:
        raise Forbidden("Self-registration is disabled")

    user = await user_service.create_user_account(
        session,
        actor_id=None,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=Role.EMPLOYEE,
        employment_type=payload.employment_type,
        department=payload.department,
        manager_id=None,
        joining_date=payload.joining_date or date.today(),
    )
    await session.commit()
    await session.refresh(user)
    logger.info("Registered user %s", user.id)
    return _issue_token(user)


async def change_password(session: AsyncSession, user: User, payload: ChangePasswordRequest) -> None:
    if not security.verify_password(payload.current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")
    if payload.current_password == payload.new_password:
        raise ValidationError("New password must differ from the current password")

    user.password_hash = security.hash_password(payload.new_password)
    session.add(user)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=user.id,
        entity_type=AuditEntityType.USER,
        entity_id=user.id,
        action=AuditAction.UPDATE,
        after_json={"password_changed": True},
    )
    await session.commit()
    logger.info("User %s changed password", user.id)

