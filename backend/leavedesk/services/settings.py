"""Configuration service: quotas, accrual rates and system settings."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from leavedesk.exceptions import ValidationError
from leavedesk.models.enums import AuditAction, AuditEntityType
from leavedesk.models.system_config import SYSTEM_CONFIG_NAME, SystemConfig
from leavedesk.schemas.settings import (
    AccrualRates,
    ConfigResponse,
    LeaveQuotas,
    LopSettings,
    SystemSettings,
    merge_settings,
)
from leavedesk.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    from pydantic import BaseModel
    from sqlalchemy.ext.asyncio import AsyncSession

    from leavedesk.models.user import User

logger = logging.getLogger(__name__)

_quotas_adapter: TypeAdapter[LeaveQuotas] = TypeAdapter(LeaveQuotas)
_rates_adapter: TypeAdapter[AccrualRates] = TypeAdapter(AccrualRates)
_system_adapter: TypeAdapter[SystemSettings] = TypeAdapter(SystemSettings)

_T = TypeVar("_T")


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def get_or_create_config(session: AsyncSession) -> SystemConfig:
    """Return the system_config row, creating it with defaults on first read."""
    result = await session.execute(select(SystemConfig).where(col(SystemConfig.name) == SYSTEM_CONFIG_NAME))
    config = result.scalar_one_or_none()
    if config is not None:
        return config

    config = SystemConfig(
        name=SYSTEM_CONFIG_NAME,
        leave_quotas_json=LeaveQuotas().model_dump(mode="json"),
        accrual_rates_json=AccrualRates().model_dump(mode="json"),
        system_settings_json=SystemSettings().model_dump(mode="json"),
    )
    try:
        async with session.begin_nested():
            session.add(config)
            await session.flush()
    except IntegrityError:
        # Another request created it first.
        result = await session.execute(select(SystemConfig).where(col(SystemConfig.name) == SYSTEM_CONFIG_NAME))
        return result.scalar_one()

    logger.info("Created default system configuration")
    return config


def leave_quotas_of(config: SystemConfig) -> LeaveQuotas:
    return _quotas_adapter.validate_python(config.leave_quotas_json or {})


def accrual_rates_of(config: SystemConfig) -> AccrualRates:
    return _rates_adapter.validate_python(config.accrual_rates_json or {})


def system_settings_of(config: SystemConfig) -> SystemSettings:
    return _system_adapter.validate_python(config.system_settings_json or {})


async def load_leave_quotas(session: AsyncSession) -> LeaveQuotas:
    return leave_quotas_of(await get_or_create_config(session))


async def load_accrual_rates(session: AsyncSession) -> AccrualRates:
    return accrual_rates_of(await get_or_create_config(session))


async def load_system_settings(session: AsyncSession) -> SystemSettings:
    return system_settings_of(await get_or_create_config(session))


async def get_config(session: AsyncSession) -> ConfigResponse:
    config = await get_or_create_config(session)
    return ConfigResponse(
        leave_quotas=leave_quotas_of(config),
        accrual_rates=accrual_rates_of(config),
        system_settings=system_settings_of(config),
        last_accrual_run_at=config.last_accrual_run_at,
    )


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------


def _merge_and_validate(adapter: TypeAdapter[_T], current: dict[str, Any], changes: BaseModel) -> _T:
    """Overlay the fields the caller actually sent and re-validate the result."""
    base = adapter.dump_python(adapter.validate_python(current), mode="json")
    merged = merge_settings(base, changes.model_dump(mode="json", exclude_unset=True))
    try:
        return adapter.validate_python(merged)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid settings: {exc.errors(include_url=False)}") from None


async def _save_config(
    session: AsyncSession,
    actor: User,
    config: SystemConfig,
    *,
    column: str,
    value: BaseModel,
) -> None:
    before = model_to_audit_dict(config)
    # Assign a new dict so the JSON column is flagged as changed.
    setattr(config, column, value.model_dump(mode="json"))
    config.updated_by = actor.id
    session.add(config)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=actor.id,
        entity_type=AuditEntityType.CONFIG,
        entity_id=config.id,
        action=AuditAction.UPDATE,
        before_json=before,
        after_json=model_to_audit_dict(config),
    )
    await session.commit()
    logger.info("Configuration %s updated by user=%s", column, actor.id)


async def update_leave_quotas(session: AsyncSession, actor: User, changes: LeaveQuotas) -> LeaveQuotas:
    config = await get_or_create_config(session)
    quotas = _merge_and_validate(_quotas_adapter, config.leave_quotas_json or {}, changes)
    await _save_config(session, actor, config, column="leave_quotas_json", value=quotas)
    return quotas


async def update_accrual_rates(session: AsyncSession, actor: User, changes: AccrualRates) -> AccrualRates:
    config = await get_or_create_config(session)
    rates = _merge_and_validate(_rates_adapter, config.accrual_rates_json or {}, changes)
    await _save_config(session, actor, config, column="accrual_rates_json", value=rates)
    return rates


async def update_system_settings(session: AsyncSession, actor: User, changes: SystemSettings) -> SystemSettings:
    config = await get_or_create_config(session)
    settings = _merge_and_validate(_system_adapter, config.system_settings_json or {}, changes)
    await _save_config(session, actor, config, column="system_settings_json", value=settings)
    return settings


async def update_lop_settings(session: AsyncSession, actor: User, changes: LopSettings) -> LopSettings:
    """Update only the ``lop_settings`` block of the system settings."""
    config = await get_or_create_config(session)
    current = system_settings_of(config).model_dump(mode="json")
    lop_changes = changes.model_dump(mode="json", exclude_unset=True)
    merged = merge_settings(current, {"lop_settings": lop_changes})
    try:
        settings = _system_adapter.validate_python(merged)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid settings: {exc.errors(include_url=False)}") from None
    await _save_config(session, actor, config, column="system_settings_json", value=settings)
    return settings.lop_settings
