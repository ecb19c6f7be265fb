"""Account administration: listing, creating, updating and (de)activating users."""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from leavedesk.exceptions import NotFound, ValidationError
from leavedesk.models.enums import AuditAction, AuditEntityType, EmploymentType, Role
from leavedesk.models.user import User
from leavedesk.schemas.user import UserListResponse, UserResponse
from leavedesk.services import ledger
from leavedesk.services import settings as config_service
from leavedesk.services.audit import model_to_audit_dict, write_audit_log
from leavedesk.services.security import hash_password

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leavedesk.schemas.user import CreateUserRequest, UpdateUserRequest

logger = logging.getLogger(__name__)

DEFAULT_DEPARTMENT = "General"


def build_user_response(user: User) -> UserResponse:
    """Map a user model to its response schema."""
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        role=Role(user.role),
        employment_type=EmploymentType(user.employment_type),
        department=user.department,
        manager_id=user.manager_id,
        joining_date=user.joining_date,
        is_active=user.is_active,
        lop_days=float(user.lop_days),
        carry_forward_days=float(user.carry_forward_days),
        created_at=user.created_at,
    )


async def get_user_or_404(session: AsyncSession, user_id: uuid.UUID) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


async def _validate_manager(session: AsyncSession, manager_id: uuid.UUID | None, user_id: uuid.UUID | None) -> None:
    if manager_id is None:
        return
    if manager_id == user_id:
        raise ValidationError("A user cannot be their own manager")
    manager = await session.get(User, manager_id)
    if manager is None:
        raise ValidationError("Manager not found")
    if manager.role not in (Role.MANAGER, Role.ADMIN):
        raise ValidationError("Manager must have the manager or admin role")


async def create_user_account(
    session: AsyncSession,
    *,
    actor_id: uuid.UUID | None,
    name: str,
    email: str,
    password: str,
    role: Role,
    employment_type: EmploymentType,
    department: str | None,
    manager_id: uuid.UUID | None,
    joining_date: date,
) -> User:
    """Insert a user with opening balances. The caller commits."""
    normalized_email = email.strip().lower()
    existing = await session.execute(select(col(User.id)).where(col(User.email) == normalized_email))
    if existing.scalar_one_or_none() is not None:
        raise ValidationError("A user with this email already exists")

    await _validate_manager(session, manager_id, None)

    user = User(
        name=name.strip(),
        email=normalized_email,
        password_hash=hash_password(password),
        role=role.value,
        employment_type=employment_type.value,
        department=department or DEFAULT_DEPARTMENT,
        manager_id=manager_id,
        joining_date=joining_date,
    )
    session.add(user)
    await session.flush()

    config = await config_service.get_or_create_config(session)
    await ledger.grant_initial(
        session,
        user,
        config_service.leave_quotas_of(config),
        config_service.accrual_rates_of(config),
    )

    await write_audit_log(
        session,
        actor_id=actor_id or user.id,
        entity_type=AuditEntityType.USER,
        entity_id=user.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(user),
    )
    return user


async def create_user(session: AsyncSession, actor: User, payload: CreateUserRequest) -> UserResponse:
    """Admin-created account with any role."""
    user = await create_user_account(
        session,
        actor_id=actor.id,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=payload.role,
        employment_type=payload.employment_type,
        department=payload.department,
        manager_id=payload.manager_id,
        joining_date=payload.joining_date or date.today(),
    )
    await session.commit()
    await session.refresh(user)
    logger.info("User %s created by admin=%s", user.id, actor.id)
    return build_user_response(user)


async def list_users(
    session: AsyncSession,
    *,
    role: Role | None = None,
    department: str | None = None,
    is_active: bool | None = None,
    offset: int = 0,
    limit: int = 50,
) -> UserListResponse:
    """List users with optional filters, ordered by name."""
    base_filters = []
    if role is not None:
        base_filters.append(col(User.role) == role.value)
    if department is not None:
        base_filters.append(col(User.department) == department)
    if is_active is not None:
        base_filters.append(col(User.is_active).is_(is_active))

    count_result = await session.execute(select(func.count()).select_from(User).where(*base_filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(User).where(*base_filters).order_by(col(User.name)).offset(offset).limit(limit)
    )
    users = list(result.scalars().all())
    return UserListResponse(items=[build_user_response(u) for u in users], total=total)


async def update_user(
    session: AsyncSession,
    actor: User,
    user_id: uuid.UUID,
    payload: UpdateUserRequest,
) -> UserResponse:
    """Apply a partial update. Only fields present in the body change."""
    user = await get_user_or_404(session, user_id)
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        return build_user_response(user)

    if "manager_id" in changes:
        await _validate_manager(session, changes["manager_id"], user.id)
    if user.id == actor.id and "role" in changes and changes["role"] != Role.ADMIN:
        raise ValidationError("Admins cannot remove their own admin role")
    if "name" in changes and changes["name"] is None:
        raise ValidationError("name cannot be null")

    before = model_to_audit_dict(user)
    for field, value in changes.items():
        if value is not None and field in ("role", "employment_type"):
            value = value.value
        if field == "joining_date" and value is None:
            continue
        setattr(user, field, value)
    session.add(user)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=actor.id,
        entity_type=AuditEntityType.USER,
        entity_id=user.id,
        action=AuditAction.UPDATE,
        before_json=before,
        after_json=model_to_audit_dict(user),
    )
    await session.commit()
    await session.refresh(user)
    logger.info("User %s updated by admin=%s: %s", user.id, actor.id, sorted(changes))
    return build_user_response(user)


async def toggle_user_status(session: AsyncSession, actor: User, user_id: uuid.UUID) -> UserResponse:
    """Flip ``is_active``. Users are never hard-deleted."""
    user = await get_user_or_404(session, user_id)
    if user.id == actor.id:
        raise ValidationError("Admins cannot deactivate their own account")

    before = model_to_audit_dict(user)
    user.is_active = not user.is_active
    session.add(user)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=actor.id,
        entity_type=AuditEntityType.USER,
        entity_id=user.id,
        action=AuditAction.ACTIVATE if user.is_active else AuditAction.DEACTIVATE,
        before_json=before,
        after_json=model_to_audit_dict(user),
    )
    await session.commit()
    await session.refresh(user)
    logger.info("User %s %s by admin=%s", user.id, "activated" if user.is_active else "deactivated", actor.id)
    return build_user_response(user)
