from __future__ import annotations

import os
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from leavedesk.db import get_session
from leavedesk.main import app
from leavedesk.models import SQLModel
from leavedesk.models.enums import EmploymentType, Role
from leavedesk.services.security import create_access_token
from leavedesk.services.user import create_user_account

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncEngine

    from leavedesk.models.user import User

# In-memory SQLite unless TEST_DATABASE_URL points somewhere else (e.g. PostgreSQL in CI).
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")

PASSWORD = "secret-password"


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy manage BEGIN/SAVEPOINT itself instead of pysqlite."""

    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """Create an async engine with all tables."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        _engine = create_async_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        _enable_sqlite_savepoints(_engine)
    else:
        _engine = create_async_engine(TEST_DATABASE_URL)

    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Yield a database session wrapped in a transaction that rolls back after each test."""
    async with engine.connect() as conn:
        txn = await conn.begin()
        session = AsyncSession(bind=conn, expire_on_commit=False)
        yield session
        await session.close()
        await txn.rollback()


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Users and tokens
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Factory that inserts an account with opening balances and commits."""
    counter = {"n": 0}

    async def _make(
        *,
        name: str | None = None,
        role: Role = Role.EMPLOYEE,
        employment_type: EmploymentType = EmploymentType.REGULAR,
        department: str | None = "Engineering",
        manager_id: Any = None,
        joining_date: date | None = None,
    ) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = await create_user_account(
            db_session,
            actor_id=None,
            name=name or f"{role.value.title()} {n}",
            email=f"{role.value}{n}@example.com",
            password=PASSWORD,
            role=role,
            employment_type=employment_type,
            department=department,
            manager_id=manager_id,
            joining_date=joining_date or date(date.today().year - 1, 1, 1),
        )
        await db_session.commit()
        return user

    return _make


def auth_headers(user: User) -> dict[str, str]:
    token, _ = create_access_token(user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def admin(make_user: Callable[..., Awaitable[User]]) -> User:
    return await make_user(name="Ada Admin", role=Role.ADMIN, department="HR")


@pytest.fixture
async def manager(make_user: Callable[..., Awaitable[User]]) -> User:
    return await make_user(name="Max Manager", role=Role.MANAGER)


@pytest.fixture
async def employee(make_user: Callable[..., Awaitable[User]], manager: User) -> User:
    return await make_user(name="Erin Employee", manager_id=manager.id)


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def next_monday(min_days_ahead: int = 14) -> date:
    """First Monday at least ``min_days_ahead`` days from today."""
    day = date.today() + timedelta(days=min_days_ahead)
    return day + timedelta(days=(7 - day.weekday()) % 7)


def last_saturday() -> date:
    today = date.today()
    return today - timedelta(days=(today.weekday() - 5) % 7 or 7)
