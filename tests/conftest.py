from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from annual_leave.db import get_session
from annual_leave.main import app
from annual_leave.models import AnnualLeavePolicy, SQLModel
from annual_leave.services.leave_request import (
    InMemoryLeaveRequestDirectory,
    get_leave_request_directory,
    set_leave_request_directory,
)
from annual_leave.services.member import (
    InMemoryMemberDirectory,
    get_member_directory,
    set_member_directory,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """Fresh in-memory SQLite database per test."""
    _engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Session that commits for real; the database is discarded with the engine."""
    session = AsyncSession(engine, expire_on_commit=False)
    yield session
    await session.close()


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def members() -> Iterator[InMemoryMemberDirectory]:
    """Empty member directory installed for the duration of a test."""
    previous = get_member_directory()
    directory = InMemoryMemberDirectory()
    set_member_directory(directory)
    yield directory
    set_member_directory(previous)


@pytest.fixture
def leave_requests() -> Iterator[InMemoryLeaveRequestDirectory]:
    """Empty leave request directory installed for the duration of a test."""
    previous = get_leave_request_directory()
    directory = InMemoryLeaveRequestDirectory()
    set_leave_request_directory(directory)
    yield directory
    set_leave_request_directory(previous)


@pytest.fixture
async def active_policy(db_session: AsyncSession) -> AnnualLeavePolicy:
    """The default policy: 1 day a month up to 11, then 15 rising by 1 every 2 years to 25."""
    policy = AnnualLeavePolicy(policy_name="Standard", is_active=True)
    db_session.add(policy)
    await db_session.commit()
    return policy

