"""Request lifecycle over HTTP: apply, WFH, comp-off, decide, cancel, overlap and balance effects."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from conftest import auth_headers, last_saturday, next_monday
from sqlalchemy import select
from sqlmodel import col

from leavedesk.models.audit import AuditLog
from leavedesk.models.enums import LeaveType, LedgerSourceType, Role
from leavedesk.models.holiday import Holiday
from leavedesk.models.ledger import LeaveLedgerEntry
from leavedesk.services import ledger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from httpx import AsyncClient, Response
    from sqlalchemy.ext.asyncio import AsyncSession

    from leavedesk.models.user import User

REASON = "Family commitments at home"


# ---------------------------------------------------------------------------
# Test helpers
# ---------------------------------------------------------------------------


async def _apply(
    client: AsyncClient,
    user: User,
    leave_type: str,
    start: date,
    end: date | None = None,
    **extra: Any,
) -> Response:
    body = {
        "leave_type": leave_type,
        "start_date": start.isoformat(),
        "end_date": (end or start).isoformat(),
        "reason": REASON,
        **extra,
    }
    return await client.post("/leaves", json=body, headers=auth_headers(user))


async def _decide(client: AsyncClient, actor: User, request_id: str, outcome: str) -> Response:
    return await client.post(
        f"/leaves/{request_id}/decision",
        json={"outcome": outcome, "note": "ok"},
        headers=auth_headers(actor),
    )


async def _balance(client: AsyncClient, user: User, leave_type: str) -> float:
    resp = await client.get("/balances/me", headers=auth_headers(user))
    assert resp.status_code == 200
    return next(item["balance"] for item in resp.json()["items"] if item["leave_type"] == leave_type)


def _next_weekday_within_a_week() -> date:
    day = date.today() + timedelta(days=1)
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return day


# ---------------------------------------------------------------------------
# Apply
# ---------------------------------------------------------------------------


async def test_apply_debits_balance(async_client: AsyncClient, employee: User) -> None:
    monday = next_monday()
    resp = await _apply(async_client, employee, "sick", monday, monday + timedelta(days=2))
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "pending"
    assert data["working_days"] == 3
    assert data["balance_deducted"] is True
    assert await _balance(async_client, employee, "sick") == 9


async def test_apply_half_day(async_client: AsyncClient, employee: User) -> None:
    monday = next_monday()
    resp = await _apply(async_client, employee, "sick", monday, is_half_day=True)
    assert resp.status_code == 201
    assert resp.json()["working_days"] == 0.5
    assert await _balance(async_client, employee, "sick") == 11.5


async def test_apply_skips_holidays(async_client: AsyncClient, db_session: AsyncSession, employee: User) -> None:
    monday = next_monday()
    db_session.add(Holiday(date=monday + timedelta(days=1), name="Founders Day"))
    await db_session.commit()

    resp = await _apply(async_client, employee, "sick", monday, monday + timedelta(days=2))
    assert resp.status_code == 201
    assert resp.json()["working_days"] == 2


async def test_apply_rejects_weekend_start(async_client: AsyncClient, employee: User) -> None:
    saturday = next_monday() - timedelta(days=2)
    resp = await _apply(async_client, employee, "sick", saturday, saturday + timedelta(days=2))
    assert resp.status_code == 422


async def test_apply_rejects_reversed_range(async_client: AsyncClient, employee: User) -> None:
    monday = next_monday()
    resp = await _apply(async_client, employee, "sick", monday, monday - timedelta(days=3))
    assert resp.status_code == 422


async def test_apply_requires_advance_notice(async_client: AsyncClient, employee: User) -> None:
    resp = await _apply(async_client, employee, "vacation", _next_weekday_within_a_week())
    assert resp.status_code == 422
    assert "in advance" in resp.json()["detail"]


async def test_academic_leave_requires_documents(async_client: AsyncClient, employee: User) -> None:
    monday = next_monday(21)
    resp = await _apply(async_client, employee, "academic", monday, monday + timedelta(days=1))
    assert resp.status_code == 422

    bad_type = await _apply(
        async_client,
        employee,
        "academic",
        monday,
        monday + timedelta(days=1),
        documents=[{"file_name": "notes.exe", "file_url": "https://files.example.com/notes.exe"}],
    )
    assert bad_type.status_code == 422

    ok = await _apply(
        async_client,
        employee,
        "academic",
        monday,
        monday + timedelta(days=1),
        documents=[{"file_name": "exam.pdf", "file_url": "https://files.example.com/exam.pdf", "file_size": 1024}],
    )
    assert ok.status_code == 201
    assert ok.json()["documents"][0]["file_name"] == "exam.pdf"


async def test_overlapping_apply_fails(async_client: AsyncClient, employee: User) -> None:
    monday = next_monday()
    first = await _apply(async_client, employee, "sick", monday, monday + timedelta(days=2))
    assert first.status_code == 201

    second = await _apply(async_client, employee, "casual", monday + timedelta(days=2), monday + timedelta(days=4))
    assert second.status_code == 409
    assert second.json()["error"] == "OverlappingRequest"


async def test_wfh_type_is_not_a_leave(async_client: AsyncClient, employee: User) -> None:
    resp = await _apply(async_client, employee, "wfh", next_monday())
    assert resp.status_code == 422


async def test_second_apply_fails_when_balance_covers_one(async_client: AsyncClient, employee: User, manager: User) -> None:
    comp_off = await async_client.post(
        "/leaves/comp-off",
        json={"worked_date": last_saturday().isoformat(), "days": 2, "reason": "Weekend release support"},
        headers=auth_headers(employee),
    )
    assert comp_off.status_code == 201
    assert await _balance(async_client, employee, "comp_off") == 0

    approved = await _decide(async_client, manager, comp_off.json()["id"], "approved")
    assert approved.status_code == 200
    assert await _balance(async_client, employee, "comp_off") == 2

    monday = next_monday()
    first = await _apply(async_client, employee, "comp_off", monday, monday + timedelta(days=1))
    assert first.status_code == 201

    second = await _apply(async_client, employee, "comp_off", monday + timedelta(days=3), monday + timedelta(days=4))
    assert second.status_code == 400
    assert second.json()["error"] == "InsufficientBalance"
    assert await _balance(async_client, employee, "comp_off") == 0


async def test_comp_off_for_future_date_rejected(async_client: AsyncClient, employee: User) -> None:
    resp = await async_client.post(
        "/leaves/comp-off",
        json={"worked_date": next_monday().isoformat(), "days": 1, "reason": "Will work on launch"},
        headers=auth_headers(employee),
    )
    assert resp.status_code == 422


async def test_comp_off_days_in_half_steps(async_client: AsyncClient, employee: User) -> None:
    resp = await async_client.post(
        "/leaves/comp-off",
        json={"worked_date": last_saturday().isoformat(), "days": 0.7, "reason": "Weekend release support"},
        headers=auth_headers(employee),
    )
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# LOP
# ---------------------------------------------------------------------------


async def test_lop_leave_counts_on_approval(async_client: AsyncClient, employee: User, manager: User) -> None:
    monday = next_monday()
    resp = await _apply(async_client, employee, "lop", monday, monday + timedelta(days=1))
    assert resp.status_code == 201
    assert resp.json()["balance_deducted"] is False

    approved = await _decide(async_client, manager, resp.json()["id"], "approved")
    assert approved.status_code == 200

    me = await async_client.get("/balances/me", headers=auth_headers(employee))
    assert me.json()["lop_days"] == 2


async def test_lop_leave_monthly_limit(async_client: AsyncClient, employee: User) -> None:
    monday = next_monday()
    # Mon to the following Mon is six working days, over the monthly limit of five.
    resp = await _apply(async_client, employee, "lop", monday, monday + timedelta(days=7))
    assert resp.status_code == 400
    assert resp.json()["error"] == "InsufficientBalance"


# ---------------------------------------------------------------------------
# WFH
# ---------------------------------------------------------------------------


async def test_wfh_pending_by_default(async_client: AsyncClient, employee: User) -> None:
    resp = await async_client.post(
        "/leaves/wfh",
        json={"date": next_monday().isoformat(), "reason": "Waiting for a delivery"},
        headers=auth_headers(employee),
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["kind"] == "wfh"
    assert data["status"] == "pending"
    assert data["balance_deducted"] is False


async def test_wfh_auto_approved_when_configured(async_client: AsyncClient, admin: User, employee: User) -> None:
    settings = await async_client.put("/admin/settings", json={"auto_approve_wfh": True}, headers=auth_headers(admin))
    assert settings.status_code == 200

    resp = await async_client.post(
        "/leaves/wfh",
        json={"date": next_monday().isoformat(), "reason": "Waiting for a delivery"},
        headers=auth_headers(employee),
    )
    assert resp.status_code == 201
    assert resp.json()["status"] == "approved"


async def test_wfh_on_weekend_rejected(async_client: AsyncClient, employee: User) -> None:
    resp = await async_client.post(
        "/leaves/wfh",
        json={"date": (next_monday() - timedelta(days=1)).isoformat(), "reason": "Waiting for a delivery"},
        headers=auth_headers(employee),
    )
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Decide / cancel
# ---------------------------------------------------------------------------


async def test_reject_restores_balance(
    async_client: AsyncClient,
    db_session: AsyncSession,
    employee: User,
    manager: User,
) -> None:
    monday = next_monday()
    resp = await _apply(async_client, employee, "sick", monday, monday + timedelta(days=2))
    request_id = resp.json()["id"]
    assert await _balance(async_client, employee, "sick") == 9

    rejected = await _decide(async_client, manager, request_id, "rejected")
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "rejected"
    assert rejected.json()["decided_by"] == str(manager.id)
    assert await _balance(async_client, employee, "sick") == 12

    entries = await db_session.execute(
        select(LeaveLedgerEntry.entry_type).where(col(LeaveLedgerEntry.source_id) == request_id)
    )
    assert sorted(entries.scalars().all()) == ["DEBIT", "REVERSAL"]


async def test_cancel_restores_balance(async_client: AsyncClient, db_session: AsyncSession, employee: User) -> None:
    monday = next_monday()
    resp = await _apply(async_client, employee, "casual", monday, monday + timedelta(days=1))
    request_id = resp.json()["id"]
    assert await _balance(async_client, employee, "casual") == 6

    cancelled = await async_client.post(
        f"/leaves/{request_id}/cancel",
        json={"reason": "Plans changed"},
        headers=auth_headers(employee),
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert cancelled.json()["cancellation_reason"] == "Plans changed"
    assert await _balance(async_client, employee, "casual") == 8

    audit = await db_session.execute(
        select(AuditLog.action).where(col(AuditLog.entity_type) == "REQUEST")
    )
    assert sorted(audit.scalars().all()) == ["APPLY", "CANCEL"]


async def _lop_days(client: AsyncClient, user: User) -> float:
    resp = await client.get("/balances/me", headers=auth_headers(user))
    return resp.json()["lop_days"]


async def test_reject_after_conversion_gives_days_back_to_lop(
    async_client: AsyncClient,
    employee: User,
    manager: User,
    admin: User,
) -> None:
    monday = next_monday()
    # 14 working days against sick 12 leaves -2.
    resp = await _apply(async_client, employee, "sick", monday, monday + timedelta(days=17))
    assert resp.json()["working_days"] == 14
    request_id = resp.json()["id"]

    converted = await async_client.post(f"/admin/lop/convert/{employee.id}", headers=auth_headers(admin))
    assert converted.json()["converted"] == {"sick": 2.0}
    assert await _lop_days(async_client, employee) == 2
    detail = await async_client.get(f"/leaves/{request_id}", headers=auth_headers(employee))
    assert detail.json()["lop_converted_days"] == 2

    rejected = await _decide(async_client, manager, request_id, "rejected")
    assert rejected.status_code == 200
    assert await _balance(async_client, employee, "sick") == 12
    assert await _lop_days(async_client, employee) == 0


async def test_cancel_after_conversion_restores_newest_request_first(
    async_client: AsyncClient,
    employee: User,
    admin: User,
) -> None:
    monday = next_monday()
    older = await _apply(async_client, employee, "sick", monday, monday + timedelta(days=11))
    newer = await _apply(async_client, employee, "sick", monday + timedelta(days=14), monday + timedelta(days=17))
    assert older.json()["working_days"] == 10
    assert newer.json()["working_days"] == 4
    assert await _balance(async_client, employee, "sick") == -2

    await async_client.post(f"/admin/lop/convert/{employee.id}", headers=auth_headers(admin))

    await async_client.post(f"/leaves/{older.json()['id']}/cancel", headers=auth_headers(employee))
    assert await _balance(async_client, employee, "sick") == 10
    assert await _lop_days(async_client, employee) == 2

    await async_client.post(f"/leaves/{newer.json()['id']}/cancel", headers=auth_headers(employee))
    assert await _balance(async_client, employee, "sick") == 12
    assert await _lop_days(async_client, employee) == 0


async def test_lop_leave_shares_limit_with_negative_balances(
    async_client: AsyncClient,
    db_session: AsyncSession,
    employee: User,
) -> None:
    await ledger.debit(
        db_session,
        employee.id,
        LeaveType.CASUAL,
        Decimal("14"),
        source_type=LedgerSourceType.ADMIN,
        source_id="overdraft",
    )
    await db_session.commit()

    monday = next_monday()
    # -6 casual plus 5 LOP days would be 11 of 10.
    too_many = await _apply(async_client, employee, "lop", monday, monday + timedelta(days=4))
    assert too_many.status_code == 400
    fits = await _apply(async_client, employee, "lop", monday, monday + timedelta(days=3))
    assert fits.status_code == 201


async def test_cancelled_dates_can_be_reused(async_client: AsyncClient, employee: User) -> None:
    monday = next_monday()
    first = await _apply(async_client, employee, "sick", monday)
    await async_client.post(f"/leaves/{first.json()['id']}/cancel", headers=auth_headers(employee))
    again = await _apply(async_client, employee, "sick", monday)
    assert again.status_code == 201


async def test_decide_non_pending_is_invalid_transition(
    async_client: AsyncClient,
    employee: User,
    manager: User,
) -> None:
    monday = next_monday()
    resp = await _apply(async_client, employee, "sick", monday)
    request_id = resp.json()["id"]

    assert (await _decide(async_client, manager, request_id, "approved")).status_code == 200
    assert await _balance(async_client, employee, "sick") == 11

    again = await _decide(async_client, manager, request_id, "rejected")
    assert again.status_code == 409
    assert again.json()["error"] == "InvalidTransition"
    assert await _balance(async_client, employee, "sick") == 11

    cancel = await async_client.post(f"/leaves/{request_id}/cancel", headers=auth_headers(employee))
    assert cancel.status_code == 409


async def test_manager_cannot_decide_own_request(async_client: AsyncClient, manager: User) -> None:
    resp = await _apply(async_client, manager, "sick", next_monday())
    decided = await _decide(async_client, manager, resp.json()["id"], "approved")
    assert decided.status_code == 403


async def test_manager_outside_team_cannot_decide(
    async_client: AsyncClient,
    make_user: Callable[..., Awaitable[User]],
    employee: User,
) -> None:
    other = await make_user(role=Role.MANAGER, department="Finance")
    resp = await _apply(async_client, employee, "sick", next_monday())
    decided = await _decide(async_client, other, resp.json()["id"], "approved")
    assert decided.status_code == 403
    assert decided.json()["error"] == "Forbidden"


async def test_admin_can_decide_anyone(async_client: AsyncClient, admin: User, manager: User) -> None:
    resp = await _apply(async_client, manager, "sick", next_monday())
    decided = await _decide(async_client, admin, resp.json()["id"], "approved")
    assert decided.status_code == 200


async def test_only_owner_or_admin_cancels(async_client: AsyncClient, employee: User, manager: User) -> None:
    resp = await _apply(async_client, employee, "sick", next_monday())
    cancel = await async_client.post(f"/leaves/{resp.json()['id']}/cancel", headers=auth_headers(manager))
    assert cancel.status_code == 403


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def test_listing_and_visibility(
    async_client: AsyncClient,
    make_user: Callable[..., Awaitable[User]],
    employee: User,
    manager: User,
    admin: User,
) -> None:
    resp = await _apply(async_client, employee, "sick", next_monday())
    request_id = resp.json()["id"]

    mine = await async_client.get("/leaves/mine", headers=auth_headers(employee))
    assert mine.json()["total"] == 1

    pending = await async_client.get("/leaves/pending", headers=auth_headers(manager))
    assert [item["id"] for item in pending.json()["items"]] == [request_id]

    everything = await async_client.get("/leaves", params={"status": "pending"}, headers=auth_headers(admin))
    assert everything.json()["total"] == 1

    assert (await async_client.get(f"/leaves/{request_id}", headers=auth_headers(manager))).status_code == 200
    outsider = await make_user(department="Finance")
    hidden = await async_client.get(f"/leaves/{request_id}", headers=auth_headers(outsider))
    assert hidden.status_code == 403


async def test_get_unknown_request(async_client: AsyncClient, employee: User) -> None:
    resp = await async_client.get("/leaves/00000000-0000-0000-0000-000000000000", headers=auth_headers(employee))
    assert resp.status_code == 404
    assert resp.json()["error"] == "NotFound"
