from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from annual_leave.db import get_session
from annual_leave.main import app

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from annual_leave.models.policy import AnnualLeavePolicy


async def test_health_without_policy(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "version": "0.1.0",
        "environment": "development",
        "active_policy": False,
    }


async def test_health_reports_active_policy(
    async_client: AsyncClient,
    active_policy: AnnualLeavePolicy,
) -> None:
    response = await async_client.get("/health", headers={})
    assert response.status_code == 200
    assert response.json()["active_policy"] is True


async def test_health_degraded_when_ledger_store_unreachable() -> None:
    broken = AsyncMock(spec=AsyncSession)
    broken.execute.side_effect = ConnectionError("ledger store unreachable")

    async def _broken_session() -> AsyncIterator[AsyncSession]:
        yield broken

    app.dependency_overrides[get_session] = _broken_session
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["active_policy"] is None
