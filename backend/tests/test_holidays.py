"""Integration tests for the holiday calendar API, department scoping and audit."""

from __future__ import annotations

from typing import TYPE_CHECKING

from conftest import auth_headers
from sqlalchemy import select
from sqlmodel import col

from leavedesk.models.audit import AuditLog

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

    from leavedesk.models.user import User

BASE_URL = "/holidays"


def _holiday_payload(date: str = "2026-08-15", name: str = "Independence Day", **extra: str) -> dict:
    return {"date": date, "name": name, **extra}


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


async def test_create_holiday(async_client: AsyncClient, db_session: AsyncSession, admin: User) -> None:
    resp = await async_client.post(BASE_URL, json=_holiday_payload(), headers=auth_headers(admin))
    assert resp.status_code == 201
    data = resp.json()
    assert data["date"] == "2026-08-15"
    assert data["type"] == "national"
    assert data["department"] is None
    assert data["is_active"] is True

    audit = await db_session.execute(select(AuditLog).where(col(AuditLog.entity_type) == "HOLIDAY"))
    entry = audit.scalar_one()
    assert entry.action == "CREATE"
    assert entry.actor_id == admin.id


async def test_duplicate_holiday_rejected(async_client: AsyncClient, admin: User) -> None:
    headers = auth_headers(admin)
    assert (await async_client.post(BASE_URL, json=_holiday_payload(), headers=headers)).status_code == 201

    dup = await async_client.post(BASE_URL, json=_holiday_payload(name="Again"), headers=headers)
    assert dup.status_code == 422
    assert dup.json()["error"] == "ValidationError"


async def test_same_date_for_a_department_is_allowed(async_client: AsyncClient, admin: User) -> None:
    headers = auth_headers(admin)
    await async_client.post(BASE_URL, json=_holiday_payload(), headers=headers)
    resp = await async_client.post(
        BASE_URL,
        json=_holiday_payload(name="Team Day", department="Engineering", type="optional"),
        headers=headers,
    )
    assert resp.status_code == 201
    assert resp.json()["type"] == "optional"


async def test_create_requires_admin(async_client: AsyncClient, manager: User) -> None:
    resp = await async_client.post(BASE_URL, json=_holiday_payload(), headers=auth_headers(manager))
    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# List
# ---------------------------------------------------------------------------


async def test_list_without_token_shows_global_only(async_client: AsyncClient, admin: User) -> None:
    headers = auth_headers(admin)
    await async_client.post(BASE_URL, json=_holiday_payload(), headers=headers)
    await async_client.post(
        BASE_URL, json=_holiday_payload(date="2026-09-01", name="Hack Day", department="Engineering"), headers=headers
    )

    resp = await async_client.get(BASE_URL)
    assert resp.status_code == 200
    assert [h["name"] for h in resp.json()["items"]] == ["Independence Day"]


async def test_list_with_bad_token_treated_as_anonymous(async_client: AsyncClient) -> None:
    resp = await async_client.get(BASE_URL, headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 200
    assert resp.json()["total"] == 0


async def test_list_scoped_to_department(
    async_client: AsyncClient,
    make_user: Callable[..., Awaitable[User]],
    admin: User,
    employee: User,
) -> None:
    headers = auth_headers(admin)
    await async_client.post(BASE_URL, json=_holiday_payload(), headers=headers)
    await async_client.post(
        BASE_URL, json=_holiday_payload(date="2026-09-01", name="Hack Day", department="Engineering"), headers=headers
    )
    await async_client.post(
        BASE_URL, json=_holiday_payload(date="2026-09-02", name="Close Day", department="Finance"), headers=headers
    )

    mine = await async_client.get(BASE_URL, headers=auth_headers(employee))
    assert [h["name"] for h in mine.json()["items"]] == ["Independence Day", "Hack Day"]

    finance = await make_user(department="Finance")
    theirs = await async_client.get(BASE_URL, headers=auth_headers(finance))
    assert [h["name"] for h in theirs.json()["items"]] == ["Independence Day", "Close Day"]


async def test_list_filters_by_year(async_client: AsyncClient, admin: User) -> None:
    headers = auth_headers(admin)
    await async_client.post(BASE_URL, json=_holiday_payload(), headers=headers)
    await async_client.post(BASE_URL, json=_holiday_payload(date="2027-01-26", name="Republic Day"), headers=headers)

    resp = await async_client.get(BASE_URL, params={"year": 2027})
    data = resp.json()
    assert data["total"] == 1
    assert data["items"][0]["name"] == "Republic Day"


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


async def test_delete_holiday(async_client: AsyncClient, admin: User) -> None:
    headers = auth_headers(admin)
    created = await async_client.post(BASE_URL, json=_holiday_payload(), headers=headers)

    resp = await async_client.delete(f"{BASE_URL}/{created.json()['id']}", headers=headers)
    assert resp.status_code == 204

    listed = await async_client.get(BASE_URL)
    assert listed.json()["total"] == 0

    again = await async_client.delete(f"{BASE_URL}/{created.json()['id']}", headers=headers)
    assert again.status_code == 404
