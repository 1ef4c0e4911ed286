"""API tests for the usage and reversal endpoints used by the approval workflow."""

from __future__ import annotations

import uuid
from datetime import date, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from httpx import AsyncClient

    from annual_leave.services.leave_request import InMemoryLeaveRequestDirectory

MEMBER_ID = uuid.uuid4()
ADMIN_HEADERS = {"X-User-Id": "approval-workflow", "X-Role": "admin"}
MEMBER_HEADERS = {"X-User-Id": "member-1"}


async def _grant(client: AsyncClient, amount: float, expire_in_days: int = 365) -> str:
    today = date.today()
    payload = {
        "member_name": "Junho Park",
        "amount": amount,
        "reason": "Bonus",
        "grant_date": (today - timedelta(days=30)).isoformat(),
        "expire_date": (today + timedelta(days=expire_in_days)).isoformat(),
    }
    resp = await client.post(f"/members/{MEMBER_ID}/manual-grants", json=payload, headers=ADMIN_HEADERS)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


def _usage(days: float, request_id: uuid.UUID | None = None) -> dict:  # type: ignore[type-arg]
    start = date.today() + timedelta(days=7)
    return {
        "member_id": str(MEMBER_ID),
        "member_name": "Junho Park",
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=max(int(days) - 1, 0))).isoformat(),
        "total_days": days,
        "request_id": str(request_id or uuid.uuid4()),
    }


async def test_record_usage_allocates_fifo(async_client: AsyncClient) -> None:
    later = await _grant(async_client, 5, expire_in_days=200)
    sooner = await _grant(async_client, 2, expire_in_days=20)

    resp = await async_client.post("/usages", json=_usage(3), headers=ADMIN_HEADERS)

    assert resp.status_code == 201
    data = resp.json()
    assert [(a["grant_id"], a["days"]) for a in data["allocations"]] == [(sooner, 2), (later, 1)]
    assert data["current_balance"] == 4
    assert all(a["transaction_id"] for a in data["allocations"])


async def test_record_usage_insufficient(async_client: AsyncClient) -> None:
    await _grant(async_client, 2)

    resp = await async_client.post("/usages", json=_usage(3), headers=ADMIN_HEADERS)

    assert resp.status_code == 409
    body = resp.json()
    assert body["error"] == "InsufficientBalance"
    assert "short by 1 days" in body["detail"]

    balance = await async_client.get(f"/members/{MEMBER_ID}/balance", headers=MEMBER_HEADERS)
    assert balance.json()["current_balance"] == 2


async def test_record_usage_rejects_reversed_dates(async_client: AsyncClient) -> None:
    payload = _usage(1)
    payload["end_date"] = (date.today() - timedelta(days=1)).isoformat()
    resp = await async_client.post("/usages", json=payload, headers=ADMIN_HEADERS)
    assert resp.status_code == 422


async def test_record_usage_requires_admin(async_client: AsyncClient) -> None:
    resp = await async_client.post("/usages", json=_usage(1), headers=MEMBER_HEADERS)
    assert resp.status_code == 403


async def test_reverse_usage(async_client: AsyncClient) -> None:
    await _grant(async_client, 5)
    request_id = uuid.uuid4()
    await async_client.post("/usages", json=_usage(2, request_id), headers=ADMIN_HEADERS)

    resp = await async_client.post(
        f"/usages/{request_id}/reverse", json={"reason": "Plans changed"}, headers=ADMIN_HEADERS
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "reversed"
    assert data["path"] == "request_link"
    assert data["reversed_days"] == 2

    ledger = await async_client.get(f"/members/{MEMBER_ID}/ledger", headers=MEMBER_HEADERS)
    cancels = [e for e in ledger.json()["items"] if e["transaction_type"] == "use_cancel"]
    assert len(cancels) == 1
    assert cancels[0]["reason"] == "Cancelled: Plans changed"
    assert cancels[0]["request_id"] == str(request_id)


async def test_reverse_without_body(async_client: AsyncClient) -> None:
    await _grant(async_client, 5)
    request_id = uuid.uuid4()
    await async_client.post("/usages", json=_usage(1, request_id), headers=ADMIN_HEADERS)

    first = await async_client.post(f"/usages/{request_id}/reverse", headers=ADMIN_HEADERS)
    second = await async_client.post(f"/usages/{request_id}/reverse", headers=ADMIN_HEADERS)

    assert first.json()["status"] == "reversed"
    assert second.json()["status"] == "already_reversed"


async def test_reverse_unknown_request_reports_ambiguity(
    async_client: AsyncClient,
    leave_requests: InMemoryLeaveRequestDirectory,
) -> None:
    resp = await async_client.post(f"/usages/{uuid.uuid4()}/reverse", headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ambiguous"
    assert data["warning"]
    assert data["transaction_ids"] == []
