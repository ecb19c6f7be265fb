"""Accrual engine: monthly leave accrual, January carry-forward and LOP conversion."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm.attributes import set_committed_value
from sqlmodel import col

from leavedesk.exceptions import AppError, ValidationError
from leavedesk.models.balance import LeaveBalance
from leavedesk.models.enums import (
    ORDINARY_LEAVE_TYPES,
    AccrualRunStatus,
    AuditAction,
    AuditEntityType,
    LeaveType,
    LedgerEntryType,
    LedgerSourceType,
)
from leavedesk.models.system_config import AccrualRun
from leavedesk.models.user import User
from leavedesk.schemas.accrual import (
    AccrualHistoryEntry,
    AccrualInfoResponse,
    AccrualRunResponse,
    BulkLopConversionResponse,
    LopConversionError,
    LopConversionResponse,
    LopReportEntry,
    LopReportResponse,
    UserAccrualResponse,
)
from leavedesk.services import ledger
from leavedesk.services import settings as config_service
from leavedesk.services.audit import model_to_audit_dict, write_audit_log
from leavedesk.services.user import get_user_or_404

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leavedesk.schemas.settings import AccrualRates, LeaveQuotas, SystemSettings

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# January carry-forward is spread over these types in these proportions.
CARRY_FORWARD_SPLIT: dict[LeaveType, Decimal] = {
    LeaveType.SICK: Decimal("0.4"),
    LeaveType.CASUAL: Decimal("0.3"),
    LeaveType.VACATION: Decimal("0.3"),
}

_HISTORY_LIMIT = 10
_MAX_CAS_ATTEMPTS = 5

# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------


@dataclass
class UserAccrualOutcome:
    """What one accrual run did for one user."""

    user_id: uuid.UUID
    name: str
    status: str = "credited"
    credited: dict[LeaveType, Decimal] = field(default_factory=dict)
    carried_forward: Decimal = ZERO
    converted_to_lop: Decimal = ZERO
    error: str | None = None

    @property
    def total_credited(self) -> Decimal:
        return sum(self.credited.values(), ZERO)


@dataclass
class AccrualRunResult:
    """Summary of a monthly accrual run."""

    period: str
    processed: int = 0
    credited: int = 0
    skipped: int = 0
    failed: int = 0
    total_credited: Decimal = ZERO
    converted_to_lop: Decimal = ZERO
    users: list[UserAccrualOutcome] = field(default_factory=list)

    @property
    def status(self) -> AccrualRunStatus:
        return AccrualRunStatus.COMPLETED_WITH_ERRORS if self.failed else AccrualRunStatus.COMPLETED


# ---------------------------------------------------------------------------
# Pure computation helpers (no DB)
# ---------------------------------------------------------------------------


def period_of(day: date) -> str:
    """Accrual period key (``YYYY-MM``) for a date."""
    return f"{day.year:04d}-{day.month:02d}"


def period_start(period: str) -> date:
    try:
        year, month = (int(part) for part in period.split("-"))
        return date(year, month, 1)
    except ValueError:
        raise ValidationError(f"Invalid accrual period {period!r}; expected YYYY-MM") from None


def next_run_date(today: date) -> date:
    """First day of the month after ``today``."""
    if today.month == 12:
        return date(today.year + 1, 1, 1)
    return date(today.year, today.month + 1, 1)


def carry_forward_shares(balances: dict[LeaveType, Decimal], cap: Decimal) -> tuple[Decimal, dict[LeaveType, Decimal]]:
    """Split the carried amount 40/30/30 over sick, casual and vacation.

    Only positive balances count toward the carried total, which is capped.
    """
    positive = sum((max(balances.get(t, ZERO), ZERO) for t in CARRY_FORWARD_SPLIT), ZERO)
    carried = min(positive, cap)
    shares = {t: ledger.quantize_days(carried * ratio) for t, ratio in CARRY_FORWARD_SPLIT.items()}
    return carried, shares


def compute_accrued_balance(base: Decimal, rate: Decimal, quota: Decimal) -> Decimal:
    """Balance after one month's accrual, capped at the annual quota.

    A balance already above the quota (admin adjustments) is left as is.
    """
    if base >= quota:
        return base
    return ledger.quantize_days(min(base + rate, quota))


def _joined_in_or_after(user: User, start: date) -> bool:
    joined = user.joining_date
    return (joined.year, joined.month) >= (start.year, start.month)


# ---------------------------------------------------------------------------
# Per-user accrual
# ---------------------------------------------------------------------------


async def _read_ordinary_rows(session: AsyncSession, user_id: uuid.UUID) -> dict[LeaveType, tuple[Decimal, int, str | None]]:
    result = await session.execute(
        select(
            col(LeaveBalance.leave_type),
            col(LeaveBalance.balance),
            col(LeaveBalance.version),
            col(LeaveBalance.last_accrual_period),
        ).where(
            col(LeaveBalance.user_id) == user_id,
            col(LeaveBalance.leave_type).in_([t.value for t in ORDINARY_LEAVE_TYPES]),
        )
    )
    return {LeaveType(row.leave_type): (Decimal(row.balance), row.version, row.last_accrual_period) for row in result.all()}


async def _accrue_user(
    session: AsyncSession,
    user: User,
    period: str,
    *,
    quotas: LeaveQuotas,
    rates: AccrualRates,
    settings: SystemSettings,
) -> UserAccrualOutcome:
    """Credit one month of accrual to one user.

    Each balance row records the last period applied; a row already at
    ``period`` is left alone, which makes re-running a period a no-op.
    """
    outcome = UserAccrualOutcome(user_id=user.id, name=user.name)
    allowance = quotas.for_employment(user.employment_type)
    monthly = rates.for_employment(user.employment_type)
    is_january = period_start(period).month == 1

    for leave_type in ORDINARY_LEAVE_TYPES:
        await ledger.ensure_balance_row(session, user.id, leave_type)
    rows = await _read_ordinary_rows(session, user.id)

    if all(last is not None and last >= period for _, _, last in rows.values()):
        outcome.status = "skipped"
        return outcome

    shares: dict[LeaveType, Decimal] = {}
    if is_january:
        carried, shares = carry_forward_shares(
            {t: balance for t, (balance, _, _) in rows.items()},
            ledger.to_days(settings.carry_forward_cap),
        )
        outcome.carried_forward = carried

    for leave_type in ORDINARY_LEAVE_TYPES:
        for _ in range(_MAX_CAS_ATTEMPTS):
            balance, version, last_period = rows[leave_type]
            if last_period is not None and last_period >= period:
                break

            base = balance
            if leave_type in shares:
                # Reset to the carried share; LOP debt is kept.
                base = shares[leave_type] + min(balance, ZERO)

            rate = monthly.for_type(leave_type)
            new_balance = compute_accrued_balance(base, rate, allowance.for_type(leave_type)) if rate > 0 else base

            written = await ledger.compare_and_set(
                session,
                user.id,
                leave_type,
                expected_version=version,
                values={"balance": new_balance, "last_accrual_period": period},
            )
            if written is None:
                rows = await _read_ordinary_rows(session, user.id)
                continue

            if base != balance:
                ledger.append_entry(
                    session,
                    user_id=user.id,
                    leave_type=leave_type,
                    entry_type=LedgerEntryType.CARRY_FORWARD,
                    amount=base - balance,
                    balance_after=base,
                    source_type=LedgerSourceType.SYSTEM,
                    source_id=f"carry_forward:{user.id}:{leave_type}:{period}",
                    metadata={"period": period, "carried_total": float(outcome.carried_forward)},
                )
            if new_balance != base:
                ledger.append_entry(
                    session,
                    user_id=user.id,
                    leave_type=leave_type,
                    entry_type=LedgerEntryType.ACCRUAL,
                    amount=new_balance - base,
                    balance_after=new_balance,
                    source_type=LedgerSourceType.SYSTEM,
                    source_id=f"accrual:{user.id}:{leave_type}:{period}",
                    metadata={"period": period, "rate": float(rate)},
                )
                outcome.credited[leave_type] = new_balance - base
            break
        else:
            raise AppError(f"Could not accrue {leave_type} for user {user.id}: concurrent updates")

    if is_january:
        await session.execute(
            update(User)
            .where(col(User.id) == user.id)
            .values(carry_forward_days=outcome.carried_forward)
            .execution_options(synchronize_session=False)
        )
        set_committed_value(user, "carry_forward_days", outcome.carried_forward)

    if settings.lop_settings.auto_convert_negative_balance:
        converted = await ledger.convert_negative_to_lop(
            session, user, metadata={"period": period, "trigger": "accrual"}
        )
        outcome.converted_to_lop = sum(converted.values(), ZERO)

    await session.flush()
    return outcome


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


async def run_monthly_accrual(
    session: AsyncSession,
    period: str | None = None,
    *,
    actor_id: uuid.UUID | None = None,
    today: date | None = None,
) -> AccrualRunResult:
    """Run monthly accrual for every active user.

    Users who joined in (or after) the period are skipped. Each user runs in
    its own savepoint so one failure does not stop the batch. Re-running a
    period credits nothing, and a period older than the latest one applied
    is rejected.

    Args:
        session: Database session; committed on return.
        period: ``YYYY-MM`` to accrue for (defaults to the current month).
        actor_id: Admin who triggered the run, or None for the worker.
        today: Reference date for the default period.
    """
    today = today or date.today()
    period = period or period_of(today)
    start = period_start(period)
    if start > today:
        raise ValidationError(f"Cannot run accrual for future period {period}")

    # Balances remember only their latest period, so earlier months cannot be filled in.
    latest_result = await session.execute(select(func.max(col(LeaveBalance.last_accrual_period))))
    latest = latest_result.scalar_one_or_none()
    if latest is not None and latest > period:
        raise ValidationError(f"Accrual already ran for {latest}; period {period} cannot be back-filled")

    config = await config_service.get_or_create_config(session)
    quotas = config_service.leave_quotas_of(config)
    rates = config_service.accrual_rates_of(config)
    settings = config_service.system_settings_of(config)

    result = AccrualRunResult(period=period)
    users_result = await session.execute(
        select(User).where(col(User.is_active).is_(True)).order_by(col(User.name))
    )
    users = list(users_result.scalars().all())

    for user in users:
        result.processed += 1
        if _joined_in_or_after(user, start):
            result.skipped += 1
            result.users.append(UserAccrualOutcome(user_id=user.id, name=user.name, status="skipped"))
            continue

        user_id, user_name = user.id, user.name
        try:
            async with session.begin_nested():
                outcome = await _accrue_user(session, user, period, quotas=quotas, rates=rates, settings=settings)
        except Exception as exc:
            logger.exception("Error processing accrual for user=%s period=%s", user_id, period)
            result.failed += 1
            result.users.append(
                UserAccrualOutcome(user_id=user_id, name=user_name, status="failed", error=str(exc))
            )
            continue

        if outcome.status == "skipped":
            result.skipped += 1
        else:
            result.credited += 1
        result.total_credited += outcome.total_credited
        result.converted_to_lop += outcome.converted_to_lop
        result.users.append(outcome)

    run = AccrualRun(
        period=period,
        processed=result.processed,
        credited=result.credited,
        skipped=result.skipped,
        failed=result.failed,
        total_credited=result.total_credited,
        converted_to_lop=result.converted_to_lop,
        status=result.status.value,
        run_by=actor_id,
    )
    session.add(run)
    config.last_accrual_run_at = datetime.now(UTC)
    session.add(config)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=actor_id,
        entity_type=AuditEntityType.ACCRUAL_RUN,
        entity_id=run.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(run),
    )

    await session.commit()
    logger.info(
        "Accrual run complete for %s: processed=%d credited=%d skipped=%d failed=%d total=%s lop=%s",
        period,
        result.processed,
        result.credited,
        result.skipped,
        result.failed,
        result.total_credited,
        result.converted_to_lop,
    )
    return result


async def has_completed_run(session: AsyncSession, period: str) -> bool:
    """Whether a run for ``period`` finished without failures."""
    result = await session.execute(
        select(col(AccrualRun.id))
        .where(
            col(AccrualRun.period) == period,
            col(AccrualRun.status) == AccrualRunStatus.COMPLETED.value,
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


def to_run_response(result: AccrualRunResult) -> AccrualRunResponse:
    return AccrualRunResponse(
        period=result.period,
        status=result.status,
        processed=result.processed,
        credited=result.credited,
        skipped=result.skipped,
        failed=result.failed,
        total_credited=float(result.total_credited),
        converted_to_lop=float(result.converted_to_lop),
        users=[
            UserAccrualResponse(
                user_id=u.user_id,
                name=u.name,
                status=u.status,
                credited={str(t): float(v) for t, v in u.credited.items()},
                carried_forward=float(u.carried_forward),
                converted_to_lop=float(u.converted_to_lop),
                error=u.error,
            )
            for u in result.users
        ],
    )


async def get_accrual_info(session: AsyncSession, *, today: date | None = None) -> AccrualInfoResponse:
    """Last run, next scheduled run, current rates and recent history."""
    today = today or date.today()
    config = await config_service.get_or_create_config(session)
    history_result = await session.execute(
        select(AccrualRun).order_by(col(AccrualRun.created_at).desc()).limit(_HISTORY_LIMIT)
    )
    return AccrualInfoResponse(
        last_run_at=config.last_accrual_run_at,
        next_run_date=next_run_date(today),
        accrual_rates=config_service.accrual_rates_of(config),
        history=[
            AccrualHistoryEntry(
                id=run.id,
                period=run.period,
                processed=run.processed,
                credited=run.credited,
                skipped=run.skipped,
                failed=run.failed,
                total_credited=float(run.total_credited),
                status=AccrualRunStatus(run.status),
                run_by=run.run_by,
                created_at=run.created_at,
            )
            for run in history_result.scalars().all()
        ],
    )


# ---------------------------------------------------------------------------
# LOP conversion and reporting
# ---------------------------------------------------------------------------


def _conversion_response(user: User, converted: dict[LeaveType, Decimal]) -> LopConversionResponse:
    return LopConversionResponse(
        user_id=user.id,
        name=user.name,
        converted={str(t): float(v) for t, v in converted.items()},
        total_converted=float(sum(converted.values(), ZERO)),
        lop_days=float(user.lop_days),
    )


async def _convert_and_audit(session: AsyncSession, actor_id: uuid.UUID | None, user: User) -> dict[LeaveType, Decimal]:
    converted = await ledger.convert_negative_to_lop(
        session, user, source_type=LedgerSourceType.ADMIN, metadata={"trigger": "admin"}
    )
    if converted:
        await write_audit_log(
            session,
            actor_id=actor_id,
            entity_type=AuditEntityType.LOP_CONVERSION,
            entity_id=user.id,
            action=AuditAction.CONVERT,
            after_json={str(t): float(v) for t, v in converted.items()},
        )
    return converted


async def convert_user_negative_balances(
    session: AsyncSession,
    actor_id: uuid.UUID | None,
    user_id: uuid.UUID,
) -> LopConversionResponse:
    user = await get_user_or_404(session, user_id)
    converted = await _convert_and_audit(session, actor_id, user)
    await session.commit()
    return _conversion_response(user, converted)


async def bulk_convert_negative_balances(
    session: AsyncSession,
    actor_id: uuid.UUID | None,
) -> BulkLopConversionResponse:
    """Convert negative balances to LOP for every user that has one.

    Users are converted in separate savepoints; a failure is logged, listed
    in ``errors`` and the rest continue.
    """
    id_result = await session.execute(
        select(col(LeaveBalance.user_id))
        .where(
            col(LeaveBalance.balance) < 0,
            col(LeaveBalance.leave_type).in_([t.value for t in ORDINARY_LEAVE_TYPES]),
        )
        .distinct()
    )
    user_ids = list(id_result.scalars().all())

    items: list[LopConversionResponse] = []
    errors: list[LopConversionError] = []
    total = ZERO
    for user_id in user_ids:
        try:
            async with session.begin_nested():
                user = await get_user_or_404(session, user_id)
                converted = await _convert_and_audit(session, actor_id, user)
        except Exception as exc:
            logger.exception("Error converting negative balances for user=%s", user_id)
            errors.append(LopConversionError(user_id=user_id, error=str(exc)))
            continue
        if converted:
            items.append(_conversion_response(user, converted))
            total += sum(converted.values(), ZERO)

    await session.commit()
    logger.info("Bulk LOP conversion: users=%d failed=%d total=%s", len(items), len(errors), total)
    return BulkLopConversionResponse(
        users=items,
        users_affected=len(items),
        total_converted=float(total),
        failed=len(errors),
        errors=errors,
    )


async def get_lop_report(session: AsyncSession) -> LopReportResponse:
    """Users with LOP days or negative balances, flagged against the alert threshold."""
    settings = await config_service.load_system_settings(session)
    threshold = ledger.to_days(settings.lop_settings.lop_alert_threshold)

    negative_rows = await session.execute(
        select(col(LeaveBalance.user_id), col(LeaveBalance.leave_type), col(LeaveBalance.balance)).where(
            col(LeaveBalance.balance) < 0,
            col(LeaveBalance.leave_type).in_([t.value for t in ORDINARY_LEAVE_TYPES]),
        )
    )
    negatives: dict[uuid.UUID, dict[str, float]] = {}
    for row in negative_rows.all():
        negatives.setdefault(row.user_id, {})[row.leave_type] = float(row.balance)

    users_result = await session.execute(
        select(User)
        .where(or_(col(User.lop_days) > 0, col(User.id).in_(list(negatives))))
        .order_by(col(User.lop_days).desc(), col(User.name))
        .execution_options(populate_existing=True)
    )
    items = [
        LopReportEntry(
            user_id=user.id,
            name=user.name,
            email=user.email,
            department=user.department,
            lop_days=float(user.lop_days),
            negative_balances=negatives.get(user.id, {}),
            above_threshold=Decimal(user.lop_days) >= threshold,
        )
        for user in users_result.scalars().all()
    ]
    return LopReportResponse(
        items=items,
        total=len(items),
        alert_threshold=settings.lop_settings.lop_alert_threshold,
        max_lop_days=settings.max_lop_days,
    )
