"""Tests for the daily grant and expiry job, its trigger endpoint and the worker CLI."""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import func, select
from sqlmodel import col

from annual_leave import worker
from annual_leave.models.enums import TransactionType
from annual_leave.models.ledger import LeaveTransaction
from annual_leave.models.policy import AnnualLeavePolicy
from annual_leave.services import daily_update
from annual_leave.services.balance import replay_balance
from annual_leave.services.daily_update import DailyUpdateResult, run_daily_update
from annual_leave.services.member import MemberInfo

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

    from annual_leave.services.member import InMemoryMemberDirectory

ADMIN_HEADERS = {"X-User-Id": "admin-1", "X-Role": "admin"}
MEMBER_HEADERS = {"X-User-Id": "member-1"}
JOIN = date(2024, 7, 17)


def _member(name: str, join_date: date = JOIN, status: str = "active") -> MemberInfo:
    return MemberInfo(id=uuid.uuid4(), name=name, team_name="Platform", join_date=join_date, status=status)


async def _count_rows(session: AsyncSession, member_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.count()).select_from(LeaveTransaction).where(col(LeaveTransaction.member_id) == member_id)
    )
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Job
# ---------------------------------------------------------------------------


async def test_backfills_missed_monthly_grants(
    db_session: AsyncSession,
    members: InMemoryMemberDirectory,
    active_policy: AnnualLeavePolicy,
) -> None:
    member = _member("Junho Park")
    members.seed(member)

    result = await run_daily_update(db_session, date(2024, 12, 20))

    assert result.ok
    assert (result.processed, result.granted, result.expired, result.skipped) == (1, 5, 0, 0)
    assert (await replay_balance(db_session, member.id)).current_balance == 5


async def test_rerun_for_same_date_writes_nothing(
    db_session: AsyncSession,
    members: InMemoryMemberDirectory,
    active_policy: AnnualLeavePolicy,
) -> None:
    member = _member("Junho Park")
    members.seed(member)
    await run_daily_update(db_session, date(2024, 12, 20))
    rows_before = await _count_rows(db_session, member.id)

    result = await run_daily_update(db_session, date(2024, 12, 20))

    assert result.ok
    assert result.granted == 0
    assert result.skipped == 1
    assert await _count_rows(db_session, member.id) == rows_before


async def test_first_anniversary_run(
    db_session: AsyncSession,
    members: InMemoryMemberDirectory,
    active_policy: AnnualLeavePolicy,
) -> None:
    member = _member("Junho Park")
    members.seed(member)
    await run_daily_update(db_session, date(2025, 7, 16))

    result = await run_daily_update(db_session, date(2025, 7, 17))

    assert (result.granted, result.expired) == (15, 11)
    summary = await replay_balance(db_session, member.id)
    assert summary.current_balance == 15
    assert summary.total_expired == 11


async def test_grant_rows_carry_policy_and_system_actor(
    db_session: AsyncSession,
    members: InMemoryMemberDirectory,
    active_policy: AnnualLeavePolicy,
) -> None:
    member = _member("Junho Park")
    members.seed(member)
    await run_daily_update(db_session, date(2024, 9, 17))

    rows = (
        await db_session.execute(select(LeaveTransaction).where(col(LeaveTransaction.member_id) == member.id))
    ).scalars().all()

    assert len(rows) == 2
    assert all(r.transaction_type == TransactionType.GRANT.value for r in rows)
    assert all(r.policy_id == active_policy.id for r in rows)
    assert all(r.created_by == "SYSTEM" for r in rows)
    assert {r.idempotency_key for r in rows} == {f"grant:{member.id}:m1", f"grant:{member.id}:m2"}


async def test_inactive_members_are_not_processed(
    db_session: AsyncSession,
    members: InMemoryMemberDirectory,
    active_policy: AnnualLeavePolicy,
) -> None:
    resigned = _member("Seoyeon Lee", status="resigned")
    members.seed(resigned)

    result = await run_daily_update(db_session, date(2024, 12, 20))

    assert result.processed == 0
    assert await _count_rows(db_session, resigned.id) == 0


async def test_member_not_yet_joined_is_skipped(
    db_session: AsyncSession,
    members: InMemoryMemberDirectory,
    active_policy: AnnualLeavePolicy,
) -> None:
    members.seed(_member("Future Hire", join_date=date(2025, 1, 1)))
    result = await run_daily_update(db_session, date(2024, 12, 20))
    assert (result.processed, result.skipped, result.granted) == (1, 1, 0)


async def test_missing_policy_is_reported_per_member(
    db_session: AsyncSession,
    members: InMemoryMemberDirectory,
) -> None:
    members.seed(_member("Junho Park"))
    members.seed(_member("Minji Kim"))

    result = await run_daily_update(db_session, date(2024, 12, 20))

    assert not result.ok
    assert result.processed == 2
    assert len(result.errors) == 2
    assert result.errors[0].startswith("Junho Park: ")
    assert "policy" in result.errors[0]


async def test_one_member_failure_does_not_block_others(
    db_session: AsyncSession,
    members: InMemoryMemberDirectory,
    active_policy: AnnualLeavePolicy,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    broken = _member("Alice Broken")
    healthy = _member("Bob Healthy")
    members.seed(broken)
    members.seed(healthy)

    original = daily_update.compute_due_for_member

    async def _flaky(session, member_id, join_date, policy, as_of):  # type: ignore[no-untyped-def]
        if member_id == broken.id:
            raise RuntimeError("history unreadable")
        return await original(session, member_id, join_date, policy, as_of)

    monkeypatch.setattr(daily_update, "compute_due_for_member", _flaky)

    result = await run_daily_update(db_session, date(2024, 12, 20))

    assert result.errors == ["Alice Broken: history unreadable"]
    assert result.granted == 5
    assert await _count_rows(db_session, broken.id) == 0
    assert (await replay_balance(db_session, healthy.id)).current_balance == 5


async def test_totals_are_days_not_rows(
    db_session: AsyncSession,
    members: InMemoryMemberDirectory,
) -> None:
    db_session.add(
        AnnualLeavePolicy(policy_name="Half days", first_year_monthly_grant=1.5, base_annual_days=16, is_active=True)
    )
    await db_session.commit()
    member = _member("Junho Park")
    members.seed(member)

    backfill = await run_daily_update(db_session, date(2025, 3, 20))
    # Seven grants of 1.5 days, then 0.5 to reach the 11-day first-year cap.
    assert (backfill.granted, backfill.expired) == (11, 0)
    assert await _count_rows(db_session, member.id) == 8

    anniversary = await run_daily_update(db_session, date(2025, 7, 17))
    assert (anniversary.granted, anniversary.expired) == (16, 11)
    assert (await replay_balance(db_session, member.id)).current_balance == 16


def test_result_ok_flag() -> None:
    result = DailyUpdateResult(target_date=date(2025, 1, 1))
    assert result.ok
    result.errors.append("Junho Park: boom")
    assert not result.ok


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


async def test_trigger_endpoint(
    async_client: AsyncClient,
    members: InMemoryMemberDirectory,
    active_policy: AnnualLeavePolicy,
) -> None:
    members.seed(_member("Junho Park"))

    resp = await async_client.post(
        "/daily-update/trigger", params={"target_date": "2024-12-20"}, headers=ADMIN_HEADERS
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["target_date"] == "2024-12-20"
    assert data["granted"] == 5
    assert data["errors"] == []


async def test_trigger_requires_admin(async_client: AsyncClient) -> None:
    resp = await async_client.post("/daily-update/trigger", headers=MEMBER_HEADERS)
    assert resp.status_code == 403


async def test_due_preview_writes_nothing(
    async_client: AsyncClient,
    db_session: AsyncSession,
    members: InMemoryMemberDirectory,
    active_policy: AnnualLeavePolicy,
) -> None:
    member = _member("Junho Park")
    members.seed(member)

    resp = await async_client.get(
        f"/members/{member.id}/due", params={"as_of": "2025-07-17"}, headers=ADMIN_HEADERS
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["phase"] == "annual"
    assert data["service_year"] == 1
    assert [g["amount"] for g in data["grants"]] == [15]
    assert data["expires"] == []
    assert await _count_rows(db_session, member.id) == 0


async def test_due_preview_unknown_member(
    async_client: AsyncClient,
    members: InMemoryMemberDirectory,
    active_policy: AnnualLeavePolicy,
) -> None:
    resp = await async_client.get(f"/members/{uuid.uuid4()}/due", headers=ADMIN_HEADERS)
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Worker CLI
# ---------------------------------------------------------------------------


def test_cli_exit_code_follows_result(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[date | None] = []

    async def _fake_run_once(target_date: date | None = None) -> DailyUpdateResult:
        seen.append(target_date)
        result = DailyUpdateResult(target_date=target_date or date.today())
        if target_date == date(2025, 1, 2):
            result.errors.append("Junho Park: boom")
        return result

    monkeypatch.setattr(worker, "run_once", _fake_run_once)

    assert worker.run_once_cli(["--date", "2025-01-01"]) == 0
    assert worker.run_once_cli(["--date", "2025-01-02"]) == 1
    assert seen == [date(2025, 1, 1), date(2025, 1, 2)]
