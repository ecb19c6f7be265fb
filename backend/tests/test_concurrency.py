"""Two applies racing for one balance on separate connections."""

from __future__ import annotations

import asyncio
from datetime import date, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import pytest
from conftest import PASSWORD, TEST_DATABASE_URL, next_monday
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from leavedesk.exceptions import InsufficientBalance
from leavedesk.models import SQLModel
from leavedesk.models.enums import EmploymentType, LeaveType, Role
from leavedesk.models.user import User
from leavedesk.schemas.request import ApplyLeavePayload, RequestResponse
from leavedesk.services import ledger
from leavedesk.services.requests import apply_leave
from leavedesk.services.settings import get_or_create_config
from leavedesk.services.user import create_user_account

if TYPE_CHECKING:
    import uuid
    from collections.abc import AsyncIterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine


def _begin_immediate(engine: AsyncEngine) -> None:
    """Take the SQLite write lock when a transaction starts, so racing transactions queue."""

    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


@pytest.fixture
async def shared_engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """An engine whose connections are really separate: a SQLite file, or TEST_DATABASE_URL."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        _engine = create_async_engine(
            f"sqlite+aiosqlite:///{tmp_path / 'leavedesk.db'}",
            connect_args={"timeout": 30},
        )
        _begin_immediate(_engine)
    else:
        _engine = create_async_engine(TEST_DATABASE_URL)

    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await _engine.dispose()


@pytest.fixture
def session_factory(shared_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(shared_engine, expire_on_commit=False)


async def _seed_employee(factory: async_sessionmaker[AsyncSession]) -> uuid.UUID:
    async with factory() as session:
        await get_or_create_config(session)
        user = await create_user_account(
            session,
            actor_id=None,
            name="Rae Racer",
            email="rae@example.com",
            password=PASSWORD,
            role=Role.EMPLOYEE,
            employment_type=EmploymentType.REGULAR,
            department="Engineering",
            manager_id=None,
            joining_date=date(date.today().year - 1, 1, 1),
        )
        await session.commit()
        return user.id


async def _apply_in_own_session(
    factory: async_sessionmaker[AsyncSession],
    user_id: uuid.UUID,
    start: date,
    end: date,
) -> RequestResponse:
    async with factory() as session:
        user = await session.get(User, user_id)
        assert user is not None
        payload = ApplyLeavePayload(
            leave_type=LeaveType.SICK,
            start_date=start,
            end_date=end,
            reason="Recovering from surgery",
        )
        return await apply_leave(session, user, payload)


async def test_concurrent_applies_only_one_fits(session_factory: async_sessionmaker[AsyncSession]) -> None:
    user_id = await _seed_employee(session_factory)
    monday = next_monday()

    # Sick 12, borrowing up to 10: one 12-day request fits, two (-12) do not.
    results = await asyncio.gather(
        _apply_in_own_session(session_factory, user_id, monday, monday + timedelta(days=15)),
        _apply_in_own_session(
            session_factory, user_id, monday + timedelta(days=21), monday + timedelta(days=36)
        ),
        return_exceptions=True,
    )

    succeeded = [r for r in results if isinstance(r, RequestResponse)]
    failed = [r for r in results if isinstance(r, BaseException)]
    assert len(succeeded) == 1
    assert succeeded[0].working_days == 12
    assert len(failed) == 1
    assert isinstance(failed[0], InsufficientBalance)

    async with session_factory() as session:
        assert await ledger.read_balance(session, user_id, LeaveType.SICK) == Decimal("0")
