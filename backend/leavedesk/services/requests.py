"""Leave request lifecycle: apply, WFH, comp-off, decide, cancel and reads.

Balance timing: leave is debited when applied, so a pending request already
holds its days. Rejection and cancellation reverse the debit; comp-off
credits only reach the balance once approved.
"""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_, select, update
from sqlmodel import col

from leavedesk.exceptions import (
    Forbidden,
    InsufficientBalance,
    InvalidTransition,
    NotFound,
    OverlappingRequest,
    ValidationError,
)
from leavedesk.models.enums import (
    BALANCE_LEAVE_TYPES,
    AuditAction,
    AuditEntityType,
    DecisionOutcome,
    LeaveType,
    LedgerEntryType,
    LedgerSourceType,
    RequestKind,
    RequestStatus,
    Role,
)
from leavedesk.models.request import LeaveRequest
from leavedesk.models.user import User
from leavedesk.schemas.request import DocumentReference, RequestListResponse, RequestResponse
from leavedesk.services import directory, ledger
from leavedesk.services import settings as config_service
from leavedesk.services.audit import model_to_audit_dict, write_audit_log
from leavedesk.services.workdays import count_working_days, fetch_holiday_dates, is_working_day

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leavedesk.schemas.request import (
        ApplyLeavePayload,
        CancelPayload,
        CompOffPayload,
        DecisionPayload,
        WfhPayload,
    )
    from leavedesk.schemas.settings import SystemSettings

logger = logging.getLogger(__name__)

# Statuses that block overlapping requests and count against LOP limits.
_ACTIVE_STATUSES = [RequestStatus.PENDING.value, RequestStatus.APPROVED.value]

_BYTES_PER_MB = 1024 * 1024


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_request_response(request: LeaveRequest) -> RequestResponse:
    """Map a request model to its response schema."""
    return RequestResponse(
        id=request.id,
        user_id=request.user_id,
        kind=RequestKind(request.kind),
        leave_type=LeaveType(request.leave_type),
        start_date=request.start_date,
        end_date=request.end_date,
        is_half_day=request.is_half_day,
        working_days=float(request.working_days),
        comp_off_days=float(request.comp_off_days),
        reason=request.reason,
        status=RequestStatus(request.status),
        documents=[DocumentReference.model_validate(d) for d in request.documents_json or []],
        balance_deducted=request.balance_deducted,
        lop_converted_days=float(request.lop_converted_days),
        decided_by=request.decided_by,
        decided_at=request.decided_at,
        decision_note=request.decision_note,
        cancelled_at=request.cancelled_at,
        cancellation_reason=request.cancellation_reason,
        created_at=request.created_at,
    )


async def _get_request_or_404(session: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
    """Fetch a request by ID. Raises 404 if not found."""
    result = await session.execute(
        select(LeaveRequest).where(col(LeaveRequest.id) == request_id).execution_options(populate_existing=True)
    )
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFound("Request not found")
    return request


async def _check_request_overlap(
    session: AsyncSession,
    user_id: uuid.UUID,
    start_date: date,
    end_date: date,
) -> None:
    """Raise OverlappingRequest if a pending or approved request shares any date.

    Comp-off credits record a worked day rather than time off, so they never
    block a request.
    """
    result = await session.execute(
        select(col(LeaveRequest.id))
        .where(
            col(LeaveRequest.user_id) == user_id,
            col(LeaveRequest.kind) != RequestKind.COMP_OFF.value,
            col(LeaveRequest.status).in_(_ACTIVE_STATUSES),
            col(LeaveRequest.start_date) <= end_date,
            col(LeaveRequest.end_date) >= start_date,
        )
        .limit(1)
    )
    if result.scalar_one_or_none() is not None:
        raise OverlappingRequest("Dates overlap with an existing pending or approved request")


def _check_advance_notice(leave_type: LeaveType, start_date: date, today: date, settings: SystemSettings) -> None:
    required = settings.advance_notice.for_type(leave_type)
    if required and (start_date - today).days < required:
        raise ValidationError(f"{leave_type} leave must be applied {required} days in advance")


def _check_sick_cutoff(leave_type: LeaveType, start_date: date, now: datetime, settings: SystemSettings) -> None:
    if leave_type != LeaveType.SICK or start_date != now.date():
        return
    cutoff = settings.sick_leave_cutoff_time
    if now.time() > cutoff:
        raise ValidationError(f"Same-day sick leave must be applied before {cutoff.strftime('%H:%M')}")


def _check_academic_rules(
    leave_type: LeaveType,
    start_date: date,
    end_date: date,
    documents: list[DocumentReference],
    settings: SystemSettings,
) -> None:
    if leave_type != LeaveType.ACADEMIC:
        return
    rules = settings.academic_leave
    if rules.require_documents and not documents:
        raise ValidationError("Academic leave requires supporting documents")
    if len(documents) > rules.max_documents:
        raise ValidationError(f"At most {rules.max_documents} documents may be attached")
    for document in documents:
        if document.extension not in rules.allowed_file_types:
            raise ValidationError(
                f"{document.file_name}: file type not allowed ({', '.join(rules.allowed_file_types)})"
            )
        if document.file_size is not None and document.file_size > rules.max_file_size_mb * _BYTES_PER_MB:
            raise ValidationError(f"{document.file_name}: exceeds {rules.max_file_size_mb} MB")
    if (end_date - start_date).days + 1 > rules.max_consecutive_days:
        raise ValidationError(f"Academic leave cannot exceed {rules.max_consecutive_days} consecutive days")


async def _check_lop_allowance(
    session: AsyncSession,
    user_id: uuid.UUID,
    start_date: date,
    working_days: Decimal,
    settings: SystemSettings,
) -> None:
    """LOP requests must fit the remaining yearly and monthly LOP limits.

    The yearly limit is shared with negative balances, which become LOP too.
    """
    committed = await ledger.committed_lop_days(session, user_id, lock=True)
    max_days = ledger.to_days(settings.max_lop_days)

    if settings.lop_settings.restrict_leave_after_max_lop and committed >= max_days:
        raise InsufficientBalance(f"Maximum LOP days ({settings.max_lop_days}) already reached")

    if committed + working_days > max_days:
        raise InsufficientBalance(f"Maximum LOP days ({settings.max_lop_days}) would be exceeded")

    month_start = start_date.replace(day=1)
    next_month = date(month_start.year + month_start.month // 12, month_start.month % 12 + 1, 1)
    in_month = await session.execute(
        select(func.coalesce(func.sum(col(LeaveRequest.working_days)), 0)).where(
            col(LeaveRequest.user_id) == user_id,
            col(LeaveRequest.leave_type) == LeaveType.LOP.value,
            col(LeaveRequest.status).in_(_ACTIVE_STATUSES),
            col(LeaveRequest.start_date) >= month_start,
            col(LeaveRequest.start_date) < next_month,
        )
    )
    if Decimal(str(in_month.scalar_one())) + working_days > ledger.to_days(settings.max_lop_days_per_month):
        raise InsufficientBalance(
            f"Maximum LOP days per month ({settings.max_lop_days_per_month}) would be exceeded"
        )


async def _transition(
    session: AsyncSession,
    request: LeaveRequest,
    new_status: RequestStatus,
    **values: Any,
) -> None:
    """Move a pending request to ``new_status`` exactly once.

    The status guard is part of the UPDATE, so two concurrent deciders cannot
    both succeed.
    """
    result = await session.execute(
        update(LeaveRequest)
        .where(col(LeaveRequest.id) == request.id, col(LeaveRequest.status) == RequestStatus.PENDING.value)
        .values(status=new_status.value, **values)
        .returning(col(LeaveRequest.id))
        .execution_options(synchronize_session=False)
    )
    if result.scalar_one_or_none() is None:
        raise InvalidTransition("Request is no longer pending")
    await session.refresh(request)


async def _reverse_debit(session: AsyncSession, request: LeaveRequest, reason: str) -> None:
    """Give back what the request took: converted LOP days first, then the balance."""
    if not request.balance_deducted:
        return
    from_lop = Decimal(request.lop_converted_days)
    if from_lop > 0:
        owner = await session.get(User, request.user_id)
        if owner is not None:
            await ledger.add_lop_days(session, owner, -from_lop)
    to_balance = Decimal(request.working_days) - from_lop
    if to_balance <= 0:
        return
    await ledger.credit(
        session,
        request.user_id,
        LeaveType(request.leave_type),
        to_balance,
        entry_type=LedgerEntryType.REVERSAL,
        source_type=LedgerSourceType.REQUEST,
        source_id=str(request.id),
        metadata={"reason": reason, "restored_from_lop": float(from_lop)},
    )


def _scope_filters(actor: User) -> list:
    """Requests an approver may see: everything for admins, team plus own for managers."""
    if actor.role == Role.ADMIN:
        return []
    return [
        or_(
            col(LeaveRequest.user_id).in_(directory.team_user_ids(actor)),
            col(LeaveRequest.user_id) == actor.id,
        )
    ]


async def _paginate(
    session: AsyncSession,
    filters: list,
    offset: int,
    limit: int,
) -> RequestListResponse:
    count_result = await session.execute(select(func.count()).select_from(LeaveRequest).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveRequest)
        .where(*filters)
        .order_by(col(LeaveRequest.created_at).desc())
        .offset(offset)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    requests = list(result.scalars().all())
    return RequestListResponse(items=[_build_request_response(r) for r in requests], total=total)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def apply_leave(
    session: AsyncSession,
    user: User,
    payload: ApplyLeavePayload,
    *,
    now: datetime | None = None,
) -> RequestResponse:
    """Apply for leave and debit the balance.

    Checks, in order:
    1. Ordered dates; a half day is a single date
    2. Start date is a working day
    3. No overlap with a pending or approved request
    4. Advance notice for casual, vacation and academic leave
    5. Same-day sick leave before the cutoff
    6. Academic document and duration rules
    7. At least one working day in the range
    Then the balance is debited (or the LOP allowance checked) and the
    request is stored as pending.
    """
    now = now or datetime.now()
    today = now.date()
    leave_type = payload.leave_type

    if leave_type == LeaveType.WFH:
        raise ValidationError("Work from home is recorded with the WFH endpoint")

    # 1. Shape of the range.
    if payload.end_date < payload.start_date:
        raise ValidationError("end_date must be on or after start_date")
    if payload.is_half_day and payload.start_date != payload.end_date:
        raise ValidationError("A half day must start and end on the same date")

    settings = await config_service.load_system_settings(session)

    # 2. Start date must be a working day for this user.
    holiday_dates = await fetch_holiday_dates(session, payload.start_date, payload.end_date, user.department)
    if not is_working_day(payload.start_date, settings.working_days, holiday_dates):
        raise ValidationError("Leave cannot start on a weekend or holiday")

    # 3. Overlap.
    await _check_request_overlap(session, user.id, payload.start_date, payload.end_date)

    # 4-6. Policy rules.
    _check_advance_notice(leave_type, payload.start_date, today, settings)
    _check_sick_cutoff(leave_type, payload.start_date, now, settings)
    _check_academic_rules(leave_type, payload.start_date, payload.end_date, payload.documents, settings)

    # 7. Working days.
    working_days = count_working_days(
        payload.start_date,
        payload.end_date,
        settings.working_days,
        holiday_dates,
        is_half_day=payload.is_half_day,
    )
    if working_days <= 0:
        raise ValidationError("Request covers no working days")

    request_id = uuid.uuid4()
    balance_deducted = False
    if leave_type == LeaveType.LOP:
        await _check_lop_allowance(session, user.id, payload.start_date, working_days, settings)
    elif leave_type in BALANCE_LEAVE_TYPES:
        await ledger.debit(
            session,
            user.id,
            leave_type,
            working_days,
            source_type=LedgerSourceType.REQUEST,
            source_id=str(request_id),
            settings=settings,
        )
        balance_deducted = True

    leave_request = LeaveRequest(
        id=request_id,
        user_id=user.id,
        kind=RequestKind.LEAVE.value,
        leave_type=leave_type.value,
        start_date=payload.start_date,
        end_date=payload.end_date,
        is_half_day=payload.is_half_day,
        working_days=working_days,
        reason=payload.reason,
        status=RequestStatus.PENDING.value,
        documents_json=[d.model_dump(mode="json") for d in payload.documents] or None,
        balance_deducted=balance_deducted,
    )
    session.add(leave_request)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=user.id,
        entity_type=AuditEntityType.REQUEST,
        entity_id=leave_request.id,
        action=AuditAction.APPLY,
        after_json=model_to_audit_dict(leave_request),
    )

    await session.commit()
    await session.refresh(leave_request)
    logger.info(
        "User %s applied for %s %s leave (%s to %s), request=%s",
        user.id,
        working_days,
        leave_type,
        payload.start_date,
        payload.end_date,
        leave_request.id,
    )
    return _build_request_response(leave_request)


async def mark_wfh(
    session: AsyncSession,
    user: User,
    payload: WfhPayload,
) -> RequestResponse:
    """Record a single work-from-home day. No balance is touched."""
    settings = await config_service.load_system_settings(session)
    holiday_dates = await fetch_holiday_dates(session, payload.date, payload.date, user.department)
    if not is_working_day(payload.date, settings.working_days, holiday_dates):
        raise ValidationError("Cannot mark WFH on a weekend or holiday")

    await _check_request_overlap(session, user.id, payload.date, payload.date)

    auto_approve = settings.auto_approve_wfh
    wfh = LeaveRequest(
        user_id=user.id,
        kind=RequestKind.WFH.value,
        leave_type=LeaveType.WFH.value,
        start_date=payload.date,
        end_date=payload.date,
        working_days=Decimal("1"),
        reason=payload.reason,
        status=RequestStatus.APPROVED.value if auto_approve else RequestStatus.PENDING.value,
        decided_at=datetime.now(UTC) if auto_approve else None,
        decision_note="Auto-approved" if auto_approve else None,
    )
    session.add(wfh)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=user.id,
        entity_type=AuditEntityType.REQUEST,
        entity_id=wfh.id,
        action=AuditAction.APPLY,
        after_json=model_to_audit_dict(wfh),
    )

    await session.commit()
    await session.refresh(wfh)
    logger.info("User %s marked WFH on %s (status=%s)", user.id, payload.date, wfh.status)
    return _build_request_response(wfh)


async def request_comp_off(
    session: AsyncSession,
    user: User,
    payload: CompOffPayload,
    *,
    today: date | None = None,
) -> RequestResponse:
    """Ask for comp-off credit for a day already worked. Credited on approval."""
    today = today or date.today()
    if payload.worked_date > today:
        raise ValidationError("Comp-off can only be claimed for a day already worked")

    days = ledger.to_days(payload.days)
    comp_off = LeaveRequest(
        user_id=user.id,
        kind=RequestKind.COMP_OFF.value,
        leave_type=LeaveType.COMP_OFF.value,
        start_date=payload.worked_date,
        end_date=payload.worked_date,
        working_days=Decimal("0"),
        comp_off_days=days,
        reason=payload.reason,
        status=RequestStatus.PENDING.value,
    )
    session.add(comp_off)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=user.id,
        entity_type=AuditEntityType.REQUEST,
        entity_id=comp_off.id,
        action=AuditAction.APPLY,
        after_json=model_to_audit_dict(comp_off),
    )

    await session.commit()
    await session.refresh(comp_off)
    logger.info("User %s requested %s comp-off days for %s", user.id, days, payload.worked_date)
    return _build_request_response(comp_off)


async def decide_request(
    session: AsyncSession,
    actor: User,
    request_id: uuid.UUID,
    payload: DecisionPayload,
) -> RequestResponse:
    """Approve or reject a pending request.

    Managers may only decide requests from their team and never their own.
    Approval keeps the debit taken at apply time; rejection reverses it.
    """
    leave_request = await _get_request_or_404(session, request_id)

    if actor.role != Role.ADMIN:
        if leave_request.user_id == actor.id:
            raise Forbidden("You cannot decide your own request")
        if not await directory.is_in_team(session, actor, leave_request.user_id):
            raise Forbidden("Request belongs to a user outside your team")

    if leave_request.status != RequestStatus.PENDING.value:
        raise InvalidTransition(f"Request is already {leave_request.status}")

    before_dict = model_to_audit_dict(leave_request)
    approved = payload.outcome == DecisionOutcome.APPROVED
    await _transition(
        session,
        leave_request,
        RequestStatus.APPROVED if approved else RequestStatus.REJECTED,
        decided_by=actor.id,
        decided_at=datetime.now(UTC),
        decision_note=payload.note,
    )

    if approved:
        if leave_request.kind == RequestKind.COMP_OFF:
            await ledger.credit(
                session,
                leave_request.user_id,
                LeaveType.COMP_OFF,
                Decimal(leave_request.comp_off_days),
                entry_type=LedgerEntryType.COMP_OFF_CREDIT,
                source_type=LedgerSourceType.REQUEST,
                source_id=str(leave_request.id),
                metadata={"worked_date": leave_request.start_date.isoformat()},
            )
        elif leave_request.leave_type == LeaveType.LOP:
            owner = await session.get(User, leave_request.user_id)
            if owner is not None:
                await ledger.add_lop_days(session, owner, Decimal(leave_request.working_days))
    else:
        await _reverse_debit(session, leave_request, "rejected")

    await write_audit_log(
        session,
        actor_id=actor.id,
        entity_type=AuditEntityType.REQUEST,
        entity_id=leave_request.id,
        action=AuditAction.APPROVE if approved else AuditAction.REJECT,
        before_json=before_dict,
        after_json=model_to_audit_dict(leave_request),
    )

    await session.commit()
    await session.refresh(leave_request)
    logger.info("Request %s %s by user=%s", leave_request.id, leave_request.status, actor.id)
    return _build_request_response(leave_request)


async def cancel_request(
    session: AsyncSession,
    actor: User,
    request_id: uuid.UUID,
    payload: CancelPayload | None = None,
) -> RequestResponse:
    """Cancel a pending request and reverse its debit.

    The user who applied or an admin can cancel.
    """
    leave_request = await _get_request_or_404(session, request_id)

    if actor.id != leave_request.user_id and actor.role != Role.ADMIN:
        raise Forbidden("You can only cancel your own requests")

    if leave_request.status != RequestStatus.PENDING.value:
        raise InvalidTransition(f"Only pending requests can be cancelled; request is {leave_request.status}")

    before_dict = model_to_audit_dict(leave_request)
    await _transition(
        session,
        leave_request,
        RequestStatus.CANCELLED,
        cancelled_at=datetime.now(UTC),
        cancellation_reason=payload.reason if payload else None,
    )
    await _reverse_debit(session, leave_request, "cancelled")

    await write_audit_log(
        session,
        actor_id=actor.id,
        entity_type=AuditEntityType.REQUEST,
        entity_id=leave_request.id,
        action=AuditAction.CANCEL,
        before_json=before_dict,
        after_json=model_to_audit_dict(leave_request),
    )

    await session.commit()
    await session.refresh(leave_request)
    logger.info("Request %s cancelled by user=%s", leave_request.id, actor.id)
    return _build_request_response(leave_request)


async def get_request(
    session: AsyncSession,
    actor: User,
    request_id: uuid.UUID,
) -> RequestResponse:
    """Get a single request. Others' requests need manager or admin scope."""
    leave_request = await _get_request_or_404(session, request_id)
    if not await directory.can_view_user(session, actor, leave_request.user_id):
        raise Forbidden("Not authorized to view this request")
    return _build_request_response(leave_request)


async def list_for_user(
    session: AsyncSession,
    user_id: uuid.UUID,
    *,
    status_filter: RequestStatus | None = None,
    kind: RequestKind | None = None,
    leave_type: LeaveType | None = None,
    offset: int = 0,
    limit: int = 50,
) -> RequestListResponse:
    """A user's own requests, newest first."""
    filters = [col(LeaveRequest.user_id) == user_id]
    if status_filter is not None:
        filters.append(col(LeaveRequest.status) == status_filter.value)
    if kind is not None:
        filters.append(col(LeaveRequest.kind) == kind.value)
    if leave_type is not None:
        filters.append(col(LeaveRequest.leave_type) == leave_type.value)
    return await _paginate(session, filters, offset, limit)


async def list_pending(
    session: AsyncSession,
    actor: User,
    offset: int = 0,
    limit: int = 50,
) -> RequestListResponse:
    """Pending requests the approver may decide."""
    filters = [col(LeaveRequest.status) == RequestStatus.PENDING.value, *_scope_filters(actor)]
    if actor.role != Role.ADMIN:
        filters.append(col(LeaveRequest.user_id) != actor.id)
    return await _paginate(session, filters, offset, limit)


async def list_all(
    session: AsyncSession,
    actor: User,
    *,
    status_filter: RequestStatus | None = None,
    user_id: uuid.UUID | None = None,
    kind: RequestKind | None = None,
    offset: int = 0,
    limit: int = 50,
) -> RequestListResponse:
    """All requests within the approver's scope, with optional filters."""
    filters = _scope_filters(actor)
    if status_filter is not None:
        filters.append(col(LeaveRequest.status) == status_filter.value)
    if user_id is not None:
        filters.append(col(LeaveRequest.user_id) == user_id)
    if kind is not None:
        filters.append(col(LeaveRequest.kind) == kind.value)
    return await _paginate(session, filters, offset, limit)
