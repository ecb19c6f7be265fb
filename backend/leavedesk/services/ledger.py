"""Leave balance ledger.

Balances live in ``leave_balance`` (one row per user and leave type) and
every change is mirrored by an append-only ``leave_ledger_entry``. Balance
writes are single conditional UPDATE ... RETURNING statements, so concurrent
debits and credits on the same row serialize in the database instead of in
application code.
"""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.attributes import set_committed_value
from sqlmodel import col

from leavedesk.exceptions import AppError, InsufficientBalance, NotFound, ValidationError
from leavedesk.models.balance import LeaveBalance
from leavedesk.models.enums import (
    BALANCE_LEAVE_TYPES,
    ORDINARY_LEAVE_TYPES,
    AuditAction,
    AuditEntityType,
    EmploymentType,
    LeaveType,
    LedgerEntryType,
    LedgerSourceType,
    RequestStatus,
)
from leavedesk.models.ledger import LeaveLedgerEntry
from leavedesk.models.request import LeaveRequest
from leavedesk.models.user import User
from leavedesk.schemas.balance import (
    BalanceListResponse,
    BalanceResponse,
    LedgerEntryResponse,
    LedgerListResponse,
)
from leavedesk.services import settings as config_service
from leavedesk.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leavedesk.schemas.balance import CreateAdjustmentRequest
    from leavedesk.schemas.settings import AccrualRates, LeaveQuotas, SystemSettings

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")

# Attempts for compare-and-set writes before giving up on a hot row.
_MAX_CAS_ATTEMPTS = 5


def quantize_days(value: Decimal) -> Decimal:
    """Round a day quantity to two decimal places."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_days(value: float | int | str | Decimal) -> Decimal:
    return quantize_days(Decimal(str(value)))


# ---------------------------------------------------------------------------
# Row helpers
# ---------------------------------------------------------------------------


def _build_ledger_entry_response(entry: LeaveLedgerEntry) -> LedgerEntryResponse:
    """Map a ledger entry model to its response schema."""
    return LedgerEntryResponse(
        id=entry.id,
        user_id=entry.user_id,
        leave_type=LeaveType(entry.leave_type),
        entry_type=LedgerEntryType(entry.entry_type),
        amount_days=float(entry.amount_days),
        balance_after=float(entry.balance_after) if entry.balance_after is not None else None,
        source_type=LedgerSourceType(entry.source_type),
        source_id=entry.source_id,
        metadata_json=entry.metadata_json,
        created_at=entry.created_at,
    )


def _balance_key(user_id: uuid.UUID, leave_type: LeaveType | str) -> list:
    return [col(LeaveBalance.user_id) == user_id, col(LeaveBalance.leave_type) == str(leave_type)]


async def ensure_balance_row(session: AsyncSession, user_id: uuid.UUID, leave_type: LeaveType | str) -> None:
    """Create a zero balance row if none exists yet."""
    existing = await session.execute(select(col(LeaveBalance.version)).where(*_balance_key(user_id, leave_type)))
    if existing.scalar_one_or_none() is not None:
        return
    try:
        async with session.begin_nested():
            session.add(LeaveBalance(user_id=user_id, leave_type=str(leave_type), balance=ZERO))
            await session.flush()
    except IntegrityError:
        pass  # Created concurrently.


def append_entry(
    session: AsyncSession,
    *,
    user_id: uuid.UUID,
    leave_type: LeaveType | str,
    entry_type: LedgerEntryType,
    amount: Decimal,
    balance_after: Decimal | None,
    source_type: LedgerSourceType,
    source_id: str,
    metadata: dict[str, Any] | None = None,
) -> LeaveLedgerEntry:
    entry = LeaveLedgerEntry(
        user_id=user_id,
        leave_type=str(leave_type),
        entry_type=entry_type.value,
        amount_days=amount,
        balance_after=balance_after,
        source_type=source_type.value,
        source_id=source_id,
        metadata_json=metadata,
    )
    session.add(entry)
    return entry


async def _current_lop_days(session: AsyncSession, user_id: uuid.UUID, *, lock: bool = False) -> Decimal:
    query = select(col(User.lop_days)).where(col(User.id) == user_id)
    if lock:
        query = query.with_for_update()
    result = await session.execute(query)
    value = result.scalar_one_or_none()
    if value is None:
        raise NotFound("User not found")
    return Decimal(value)


async def committed_lop_days(
    session: AsyncSession,
    user_id: uuid.UUID,
    *,
    exclude_type: LeaveType | str | None = None,
    lock: bool = False,
) -> Decimal:
    """LOP days a user has used or is already committed to.

    That is accumulated LOP, plus pending ``lop`` requests, plus every
    negative ordinary balance (future LOP) other than ``exclude_type``.
    With ``lock`` the user row is locked so concurrent debits of one user
    run one after another.
    """
    accumulated = await _current_lop_days(session, user_id, lock=lock)

    pending = await session.execute(
        select(func.coalesce(func.sum(col(LeaveRequest.working_days)), 0)).where(
            col(LeaveRequest.user_id) == user_id,
            col(LeaveRequest.leave_type) == LeaveType.LOP.value,
            col(LeaveRequest.status) == RequestStatus.PENDING.value,
        )
    )
    borrowing_types = [t.value for t in ORDINARY_LEAVE_TYPES if t != exclude_type]
    negatives = await session.execute(
        select(func.coalesce(func.sum(col(LeaveBalance.balance)), 0)).where(
            col(LeaveBalance.user_id) == user_id,
            col(LeaveBalance.leave_type).in_(borrowing_types),
            col(LeaveBalance.balance) < 0,
        )
    )
    return quantize_days(
        accumulated + Decimal(str(pending.scalar_one())) - Decimal(str(negatives.scalar_one()))
    )


async def add_lop_days(session: AsyncSession, user: User, days: Decimal) -> Decimal:
    """Atomically add ``days`` (negative to give days back) to the user's LOP counter.

    Returns the new value.
    """
    result = await session.execute(
        update(User)
        .where(col(User.id) == user.id)
        .values(lop_days=col(User.lop_days) + days)
        .returning(col(User.lop_days))
        .execution_options(synchronize_session=False)
    )
    new_value = Decimal(result.scalar_one())
    set_committed_value(user, "lop_days", new_value)
    return new_value


def debit_floor(leave_type: LeaveType | str, committed_lop: Decimal, settings: SystemSettings) -> Decimal:
    """Lowest balance a debit may leave behind for ``leave_type``.

    Ordinary leave may go negative (future LOP) by what is left of the
    user's LOP allowance once ``committed_lop`` (see committed_lop_days) is
    taken out; comp-off never goes below zero.
    """
    if leave_type not in ORDINARY_LEAVE_TYPES:
        return ZERO
    lop = settings.lop_settings
    if not lop.allow_negative:
        return ZERO
    remaining = to_days(settings.max_lop_days) - committed_lop
    if remaining <= 0:
        # At or past the LOP maximum nothing more can be borrowed.
        return ZERO
    return -remaining


# ---------------------------------------------------------------------------
# Balance mutations
# ---------------------------------------------------------------------------


async def read_balance(session: AsyncSession, user_id: uuid.UUID, leave_type: LeaveType | str) -> Decimal:
    """Current balance for one leave type (zero when no row exists)."""
    result = await session.execute(select(col(LeaveBalance.balance)).where(*_balance_key(user_id, leave_type)))
    value = result.scalar_one_or_none()
    return Decimal(value) if value is not None else ZERO


async def debit(
    session: AsyncSession,
    user_id: uuid.UUID,
    leave_type: LeaveType,
    amount: Decimal,
    *,
    source_type: LedgerSourceType,
    source_id: str,
    entry_type: LedgerEntryType = LedgerEntryType.DEBIT,
    settings: SystemSettings | None = None,
    metadata: dict[str, Any] | None = None,
) -> Decimal:
    """Subtract ``amount`` days, failing with InsufficientBalance below the floor.

    Returns the new balance. The caller owns the transaction.
    """
    if leave_type not in BALANCE_LEAVE_TYPES:
        raise ValidationError(f"{leave_type} leave has no balance to debit")
    if amount <= 0:
        raise ValidationError("Debit amount must be positive")

    if settings is None:
        settings = await config_service.load_system_settings(session)
    floor = ZERO
    if leave_type in ORDINARY_LEAVE_TYPES:
        committed = await committed_lop_days(session, user_id, exclude_type=leave_type, lock=True)
        floor = debit_floor(leave_type, committed, settings)

    await ensure_balance_row(session, user_id, leave_type)
    result = await session.execute(
        update(LeaveBalance)
        .where(
            *_balance_key(user_id, leave_type),
            col(LeaveBalance.balance) - amount >= floor,
        )
        .values(
            balance=col(LeaveBalance.balance) - amount,
            version=col(LeaveBalance.version) + 1,
            updated_at=func.now(),
        )
        .returning(col(LeaveBalance.balance))
        .execution_options(synchronize_session=False)
    )
    new_balance = result.scalar_one_or_none()
    if new_balance is None:
        available = await read_balance(session, user_id, leave_type)
        raise InsufficientBalance(
            f"Insufficient {leave_type} balance: {available} available, {amount} requested"
        )

    new_balance = Decimal(new_balance)
    append_entry(
        session,
        user_id=user_id,
        leave_type=leave_type,
        entry_type=entry_type,
        amount=-amount,
        balance_after=new_balance,
        source_type=source_type,
        source_id=source_id,
        metadata=metadata,
    )
    await session.flush()
    return new_balance


async def credit(
    session: AsyncSession,
    user_id: uuid.UUID,
    leave_type: LeaveType,
    amount: Decimal,
    *,
    entry_type: LedgerEntryType,
    source_type: LedgerSourceType,
    source_id: str,
    metadata: dict[str, Any] | None = None,
) -> Decimal:
    """Add ``amount`` days unconditionally. Returns the new balance."""
    if leave_type not in BALANCE_LEAVE_TYPES:
        raise ValidationError(f"{leave_type} leave has no balance to credit")
    if amount <= 0:
        raise ValidationError("Credit amount must be positive")

    await ensure_balance_row(session, user_id, leave_type)
    result = await session.execute(
        update(LeaveBalance)
        .where(*_balance_key(user_id, leave_type))
        .values(
            balance=col(LeaveBalance.balance) + amount,
            version=col(LeaveBalance.version) + 1,
            updated_at=func.now(),
        )
        .returning(col(LeaveBalance.balance))
        .execution_options(synchronize_session=False)
    )
    new_balance = Decimal(result.scalar_one())
    append_entry(
        session,
        user_id=user_id,
        leave_type=leave_type,
        entry_type=entry_type,
        amount=amount,
        balance_after=new_balance,
        source_type=source_type,
        source_id=source_id,
        metadata=metadata,
    )
    await session.flush()
    return new_balance


async def compare_and_set(
    session: AsyncSession,
    user_id: uuid.UUID,
    leave_type: LeaveType | str,
    *,
    expected_version: int,
    values: dict[str, Any],
) -> Decimal | None:
    """Write ``values`` only if the row still has ``expected_version``.

    Returns the new balance, or None when another writer got there first.
    """
    result = await session.execute(
        update(LeaveBalance)
        .where(*_balance_key(user_id, leave_type), col(LeaveBalance.version) == expected_version)
        .values(**values, version=expected_version + 1, updated_at=func.now())
        .returning(col(LeaveBalance.balance))
        .execution_options(synchronize_session=False)
    )
    value = result.scalar_one_or_none()
    return Decimal(value) if value is not None else None


async def _attribute_conversion(
    session: AsyncSession,
    user_id: uuid.UUID,
    leave_type: LeaveType,
    amount: Decimal,
) -> None:
    """Record on the debited requests how much of their days became LOP.

    The overdraft is the tail of the debits, so the newest requests absorb it
    first. A later reversal gives those days back to LOP instead of the balance.
    """
    result = await session.execute(
        select(LeaveRequest)
        .where(
            col(LeaveRequest.user_id) == user_id,
            col(LeaveRequest.leave_type) == leave_type.value,
            col(LeaveRequest.balance_deducted).is_(True),
            col(LeaveRequest.status).in_([RequestStatus.PENDING.value, RequestStatus.APPROVED.value]),
            col(LeaveRequest.lop_converted_days) < col(LeaveRequest.working_days),
        )
        .order_by(col(LeaveRequest.created_at).desc())
        .execution_options(populate_existing=True)
    )
    remaining = amount
    for request in result.scalars().all():
        if remaining <= 0:
            break
        share = min(Decimal(request.working_days) - Decimal(request.lop_converted_days), remaining)
        request.lop_converted_days = Decimal(request.lop_converted_days) + share
        session.add(request)
        remaining -= share


async def convert_negative_to_lop(
    session: AsyncSession,
    user: User,
    *,
    source_type: LedgerSourceType = LedgerSourceType.SYSTEM,
    metadata: dict[str, Any] | None = None,
) -> dict[LeaveType, Decimal]:
    """Move every negative ordinary balance into the user's LOP days.

    Each converted balance is reset to zero with a LOP_CONVERSION entry, and
    the converted days are recorded on the requests they came from.
    Returns the amount converted per leave type; empty when nothing was negative.
    """
    conversion_id = uuid.uuid4()
    converted: dict[LeaveType, Decimal] = {}

    for leave_type in ORDINARY_LEAVE_TYPES:
        for _ in range(_MAX_CAS_ATTEMPTS):
            result = await session.execute(
                select(col(LeaveBalance.balance), col(LeaveBalance.version)).where(
                    *_balance_key(user.id, leave_type)
                )
            )
            row = result.one_or_none()
            if row is None or Decimal(row.balance) >= 0:
                break
            amount = -Decimal(row.balance)
            new_balance = await compare_and_set(
                session,
                user.id,
                leave_type,
                expected_version=row.version,
                values={"balance": ZERO},
            )
            if new_balance is None:
                continue
            append_entry(
                session,
                user_id=user.id,
                leave_type=leave_type,
                entry_type=LedgerEntryType.LOP_CONVERSION,
                amount=amount,
                balance_after=new_balance,
                source_type=source_type,
                source_id=f"lop:{user.id}:{leave_type}:{conversion_id}",
                metadata=metadata,
            )
            await _attribute_conversion(session, user.id, leave_type, amount)
            converted[leave_type] = amount
            break
        else:
            raise AppError(f"Could not convert {leave_type} balance for user {user.id}: concurrent updates")

    total = sum(converted.values(), ZERO)
    if total > 0:
        await add_lop_days(session, user, total)
        logger.info("Converted %s negative days to LOP for user=%s", total, user.id)
    await session.flush()
    return converted


async def grant_initial(
    session: AsyncSession,
    user: User,
    quotas: LeaveQuotas,
    rates: AccrualRates,
    *,
    today: date | None = None,
) -> dict[LeaveType, Decimal]:
    """Create the opening balances for a new account.

    Regular staff who joined before this year start with the full quota;
    otherwise the quota is prorated by months served this year and rounded
    to whole days. Interns
    start with their monthly rate times the months served, capped at quota.
    """
    today = today or date.today()
    joined = user.joining_date
    if joined.year < today.year:
        months_served = today.month
    else:
        months_served = max(today.month - joined.month + 1, 0)

    allowance = quotas.for_employment(user.employment_type)
    intern_rates = rates.for_employment(user.employment_type)
    granted: dict[LeaveType, Decimal] = {}

    for leave_type in ORDINARY_LEAVE_TYPES:
        quota = allowance.for_type(leave_type)
        if user.employment_type == EmploymentType.INTERN:
            amount = min(intern_rates.for_type(leave_type) * months_served, quota)
        elif joined.year < today.year:
            amount = quota
        else:
            amount = (quota * months_served / 12).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        granted[leave_type] = quantize_days(amount)

    for leave_type in BALANCE_LEAVE_TYPES:
        amount = granted.get(leave_type, ZERO)
        session.add(LeaveBalance(user_id=user.id, leave_type=leave_type.value, balance=amount))
        if amount > 0:
            append_entry(
                session,
                user_id=user.id,
                leave_type=leave_type,
                entry_type=LedgerEntryType.GRANT,
                amount=amount,
                balance_after=amount,
                source_type=LedgerSourceType.SYSTEM,
                source_id=f"grant:{user.id}:{leave_type}",
                metadata={"months_served": months_served},
            )
    await session.flush()
    return granted


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def list_balances(session: AsyncSession, user: User) -> BalanceListResponse:
    """All balances for a user, one item per balance-carrying leave type."""
    config = await config_service.get_or_create_config(session)
    settings = config_service.system_settings_of(config)
    allowance = config_service.leave_quotas_of(config).for_employment(user.employment_type)

    result = await session.execute(
        select(LeaveBalance)
        .where(col(LeaveBalance.user_id) == user.id)
        .execution_options(populate_existing=True)
    )
    rows = {row.leave_type: row for row in result.scalars().all()}

    items: list[BalanceResponse] = []
    for leave_type in BALANCE_LEAVE_TYPES:
        row = rows.get(leave_type.value)
        items.append(
            BalanceResponse(
                leave_type=leave_type,
                balance=float(row.balance) if row else 0.0,
                annual_quota=float(allowance.for_type(leave_type)) if leave_type in ORDINARY_LEAVE_TYPES else None,
                last_accrual_period=row.last_accrual_period if row else None,
                updated_at=row.updated_at if row else None,
            )
        )

    lop_days = await _current_lop_days(session, user.id)
    return BalanceListResponse(
        user_id=user.id,
        items=items,
        lop_days=float(lop_days),
        carry_forward_days=float(user.carry_forward_days),
        max_lop_days=settings.max_lop_days,
    )


async def list_ledger(
    session: AsyncSession,
    user_id: uuid.UUID,
    leave_type: LeaveType | None = None,
    offset: int = 0,
    limit: int = 50,
) -> LedgerListResponse:
    """Get paginated ledger entries for a user, newest first."""
    base_filter = [col(LeaveLedgerEntry.user_id) == user_id]
    if leave_type is not None:
        base_filter.append(col(LeaveLedgerEntry.leave_type) == leave_type.value)

    count_result = await session.execute(select(func.count()).select_from(LeaveLedgerEntry).where(*base_filter))
    total = count_result.scalar_one()

    entries_result = await session.execute(
        select(LeaveLedgerEntry)
        .where(*base_filter)
        .order_by(col(LeaveLedgerEntry.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    entries = list(entries_result.scalars().all())

    return LedgerListResponse(
        items=[_build_ledger_entry_response(e) for e in entries],
        total=total,
    )


# ---------------------------------------------------------------------------
# Admin adjustments
# ---------------------------------------------------------------------------


async def create_adjustment(
    session: AsyncSession,
    actor: User,
    payload: CreateAdjustmentRequest,
) -> LedgerEntryResponse:
    """Apply a signed admin adjustment to one balance.

    Negative adjustments obey the same floor as leave debits.
    """
    target = await session.get(User, payload.user_id)
    if target is None:
        raise NotFound("User not found")

    amount = to_days(payload.amount_days)
    if amount == 0:
        raise ValidationError("Adjustment amount must not be zero")

    entry_id = uuid.uuid4()
    metadata = {"reason": payload.reason, "adjusted_by": str(actor.id)}
    if amount > 0:
        await credit(
            session,
            target.id,
            payload.leave_type,
            amount,
            entry_type=LedgerEntryType.ADJUSTMENT,
            source_type=LedgerSourceType.ADMIN,
            source_id=str(entry_id),
            metadata=metadata,
        )
    else:
        await debit(
            session,
            target.id,
            payload.leave_type,
            -amount,
            entry_type=LedgerEntryType.ADJUSTMENT,
            source_type=LedgerSourceType.ADMIN,
            source_id=str(entry_id),
            metadata=metadata,
        )

    result = await session.execute(
        select(LeaveLedgerEntry).where(
            col(LeaveLedgerEntry.source_type) == LedgerSourceType.ADMIN.value,
            col(LeaveLedgerEntry.source_id) == str(entry_id),
        )
    )
    entry = result.scalar_one()

    await write_audit_log(
        session,
        actor_id=actor.id,
        entity_type=AuditEntityType.ADJUSTMENT,
        entity_id=entry.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(entry),
    )

    await session.commit()
    await session.refresh(entry)
    logger.info(
        "Adjusted %s balance of user=%s by %s (actor=%s)", payload.leave_type, target.id, amount, actor.id
    )
    return _build_ledger_entry_response(entry)
