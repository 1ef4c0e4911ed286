"""Unit tests for the pure tenure rules and due-event planning."""

from __future__ import annotations

import uuid
from datetime import date, timedelta

import pytest

from annual_leave.models.enums import TenurePhase, TransactionStatus, TransactionType
from annual_leave.models.ledger import LeaveTransaction
from annual_leave.schemas.policy import PolicyRules
from annual_leave.services.balance import summarize
from annual_leave.services.policy_engine import (
    DuePlan,
    add_months,
    annual_days,
    anniversary,
    completed_years,
    compute_due,
    first_year_monthly_amount,
    tenure_phase,
)

MEMBER_ID = uuid.uuid4()
JOIN = date(2024, 7, 17)
POLICY = PolicyRules()


def _txn(transaction_type: TransactionType, amount: float, **kwargs: object) -> LeaveTransaction:
    return LeaveTransaction(
        member_id=MEMBER_ID,
        member_name="Junho Park",
        transaction_type=transaction_type.value,
        amount=amount,
        created_by="SYSTEM",
        **kwargs,  # type: ignore[arg-type]
    )


def _apply(plan: DuePlan, history: list[LeaveTransaction]) -> None:
    for pending in plan.transactions():
        history.append(
            _txn(
                pending.transaction_type,
                pending.amount,
                grant_date=pending.grant_date,
                expire_date=pending.expire_date,
                reference_id=pending.reference_id,
                idempotency_key=pending.idempotency_key,
                reason=pending.reason,
            )
        )


def _run_daily(join: date, start: date, end: date, history: list[LeaveTransaction]) -> None:
    day = start
    while day <= end:
        _apply(compute_due(MEMBER_ID, join, POLICY, day, history), history)
        day += timedelta(days=1)


# ---------------------------------------------------------------------------
# Date arithmetic
# ---------------------------------------------------------------------------


def test_add_months_keeps_day() -> None:
    assert add_months(date(2024, 7, 17), 1) == date(2024, 8, 17)
    assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)


def test_add_months_clamps_to_month_end() -> None:
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
    assert add_months(date(2024, 1, 31), 2) == date(2024, 3, 31)


def test_anniversary_of_leap_day() -> None:
    assert anniversary(date(2024, 2, 29), 1) == date(2025, 2, 28)
    assert anniversary(date(2024, 2, 29), 4) == date(2028, 2, 29)


def test_completed_years_counts_anniversary_day() -> None:
    assert completed_years(JOIN, date(2025, 7, 16)) == 0
    assert completed_years(JOIN, date(2025, 7, 17)) == 1
    assert completed_years(JOIN, date(2027, 7, 17)) == 3
    assert completed_years(JOIN, date(2024, 1, 1)) == 0


def test_tenure_phase() -> None:
    assert tenure_phase(JOIN, date(2024, 7, 16)) == TenurePhase.NOT_STARTED
    assert tenure_phase(JOIN, JOIN) == TenurePhase.FIRST_YEAR
    assert tenure_phase(JOIN, date(2025, 7, 16)) == TenurePhase.FIRST_YEAR
    assert tenure_phase(JOIN, date(2025, 7, 17)) == TenurePhase.ANNUAL


# ---------------------------------------------------------------------------
# Grant amounts
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("service_year", "expected"),
    [(1, 15), (2, 15), (3, 16), (4, 16), (5, 17), (7, 18), (21, 25), (30, 25)],
)
def test_annual_days(service_year: int, expected: float) -> None:
    assert annual_days(POLICY, service_year) == expected


def test_first_year_monthly_amount_respects_cap() -> None:
    policy = PolicyRules(first_year_monthly_grant=1.5, first_year_max_days=11)
    assert first_year_monthly_amount(policy, 1) == 1.5
    assert first_year_monthly_amount(policy, 7) == 1.5
    assert first_year_monthly_amount(policy, 8) == 0.5
    assert first_year_monthly_amount(policy, 9) == 0


def test_policy_rules_reject_cap_below_base() -> None:
    with pytest.raises(ValueError, match="max_annual_days"):
        PolicyRules(base_annual_days=15, max_annual_days=10)


# ---------------------------------------------------------------------------
# First year
# ---------------------------------------------------------------------------


def test_nothing_due_before_join() -> None:
    plan = compute_due(MEMBER_ID, JOIN, POLICY, date(2024, 7, 1), [])
    assert plan.is_empty
    assert plan.phase == TenurePhase.NOT_STARTED


def test_nothing_due_on_join_day() -> None:
    plan = compute_due(MEMBER_ID, JOIN, POLICY, JOIN, [])
    assert plan.is_empty
    assert plan.phase == TenurePhase.FIRST_YEAR


def test_first_monthly_grant() -> None:
    plan = compute_due(MEMBER_ID, JOIN, POLICY, date(2024, 8, 17), [])
    assert len(plan.grants) == 1
    grant = plan.grants[0]
    assert grant.transaction_type == TransactionType.GRANT
    assert grant.amount == 1
    assert grant.grant_date == date(2024, 8, 17)
    assert grant.expire_date == date(2025, 7, 17)
    assert grant.idempotency_key == f"grant:{MEMBER_ID}:m1"
    assert plan.expires == []


def test_missed_months_are_backfilled_with_scheduled_dates() -> None:
    plan = compute_due(MEMBER_ID, JOIN, POLICY, date(2024, 12, 20), [])
    assert [g.grant_date for g in plan.grants] == [
        date(2024, 8, 17),
        date(2024, 9, 17),
        date(2024, 10, 17),
        date(2024, 11, 17),
        date(2024, 12, 17),
    ]
    assert plan.total_granted == 5


def test_rerun_for_same_date_is_empty() -> None:
    history: list[LeaveTransaction] = []
    _apply(compute_due(MEMBER_ID, JOIN, POLICY, date(2024, 12, 20), history), history)
    assert compute_due(MEMBER_ID, JOIN, POLICY, date(2024, 12, 20), history).is_empty


def test_cancelled_grant_still_blocks_regrant() -> None:
    history = [
        _txn(
            TransactionType.GRANT,
            1,
            grant_date=date(2024, 8, 17),
            expire_date=date(2025, 7, 17),
            status=TransactionStatus.CANCELLED.value,
        )
    ]
    plan = compute_due(MEMBER_ID, JOIN, POLICY, date(2024, 8, 17), history)
    assert plan.is_empty


def test_first_year_total_never_exceeds_cap() -> None:
    plan = compute_due(MEMBER_ID, JOIN, POLICY, date(2025, 7, 16), [])
    assert len(plan.grants) == 11
    assert plan.total_granted == POLICY.first_year_max_days


# ---------------------------------------------------------------------------
# First anniversary and beyond
# ---------------------------------------------------------------------------


def test_balance_over_the_first_year() -> None:
    history: list[LeaveTransaction] = []

    _run_daily(JOIN, JOIN, date(2024, 8, 17), history)
    assert summarize(history).current_balance == 1

    _run_daily(JOIN, date(2024, 8, 18), date(2025, 7, 16), history)
    assert summarize(history).current_balance == 11

    _run_daily(JOIN, date(2025, 7, 17), date(2025, 7, 17), history)
    summary = summarize(history)
    assert summary.current_balance == 15
    assert summary.total_expired == 11
    assert summary.total_granted == 26


def test_first_anniversary_expires_unused_first_year_days_in_one_row() -> None:
    history: list[LeaveTransaction] = []
    _run_daily(JOIN, JOIN, date(2025, 7, 16), history)
    for grant in history[:4]:
        history.append(_txn(TransactionType.USE, -1, reference_id=grant.id, reason="Annual leave"))

    plan = compute_due(MEMBER_ID, JOIN, POLICY, date(2025, 7, 17), history)

    assert plan.phase == TenurePhase.ANNUAL
    assert plan.service_year == 1
    assert len(plan.expires) == 1
    expire = plan.expires[0]
    assert expire.amount == -7
    assert expire.reference_id is None
    assert expire.grant_date == JOIN
    assert expire.expire_date == date(2025, 7, 17)
    assert [g.amount for g in plan.grants] == [15]
    assert plan.grants[0].expire_date == date(2026, 7, 17)


def test_late_run_after_anniversary_still_expires_first_year() -> None:
    history: list[LeaveTransaction] = []
    _run_daily(JOIN, JOIN, date(2025, 7, 16), history)

    plan = compute_due(MEMBER_ID, JOIN, POLICY, date(2025, 7, 20), history)

    assert plan.total_expired == 11
    assert plan.grants[0].grant_date == date(2025, 7, 17)


def test_expiry_is_written_before_grant_on_same_day() -> None:
    history: list[LeaveTransaction] = []
    _run_daily(JOIN, JOIN, date(2025, 7, 16), history)
    plan = compute_due(MEMBER_ID, JOIN, POLICY, date(2025, 7, 17), history)
    assert [t.transaction_type for t in plan.transactions()] == [TransactionType.EXPIRE, TransactionType.GRANT]


def test_third_service_year_grants_sixteen_days() -> None:
    join = date(2022, 3, 2)
    plan = compute_due(MEMBER_ID, join, POLICY, date(2025, 3, 2), [])
    assert plan.service_year == 3
    assert [(g.grant_date, g.amount) for g in plan.grants] == [(date(2025, 3, 2), 16)]
    assert plan.grants[0].idempotency_key == f"grant:{MEMBER_ID}:y3"


def test_only_current_service_year_is_backfilled() -> None:
    join = date(2020, 1, 10)
    plan = compute_due(MEMBER_ID, join, POLICY, date(2025, 6, 1), [])
    assert [g.grant_date for g in plan.grants] == [date(2025, 1, 10)]
    assert plan.grants[0].amount == 17


def test_annual_grant_expires_individually() -> None:
    grant = _txn(
        TransactionType.GRANT,
        15,
        grant_date=date(2025, 7, 17),
        expire_date=date(2026, 7, 17),
        reason="Annual grant, service year 1",
    )
    history = [grant, _txn(TransactionType.USE, -3, reference_id=grant.id)]

    plan = compute_due(MEMBER_ID, JOIN, POLICY, date(2026, 7, 17), history)

    assert len(plan.expires) == 1
    expire = plan.expires[0]
    assert expire.amount == -12
    assert expire.reference_id == grant.id
    assert expire.idempotency_key == f"expire:{grant.id}"
    assert [g.amount for g in plan.grants] == [15]


def test_expired_grant_with_nothing_left_is_not_expired_again() -> None:
    grant = _txn(TransactionType.MANUAL_GRANT, 2, grant_date=date(2025, 1, 1), expire_date=date(2025, 6, 1))
    history = [grant, _txn(TransactionType.USE, -2, reference_id=grant.id)]
    plan = compute_due(MEMBER_ID, JOIN, POLICY, date(2025, 6, 2), history)
    assert plan.expires == []


def test_manual_grant_in_first_year_expires_on_its_own_date() -> None:
    grant = _txn(TransactionType.MANUAL_GRANT, 2, grant_date=date(2024, 9, 1), expire_date=date(2025, 3, 1))
    plan = compute_due(MEMBER_ID, JOIN, POLICY, date(2025, 3, 1), [grant])
    assert [(e.reference_id, e.amount) for e in plan.expires] == [(grant.id, -2)]


def test_existing_expiry_is_not_duplicated() -> None:
    grant = _txn(TransactionType.GRANT, 15, grant_date=date(2025, 7, 17), expire_date=date(2026, 7, 17))
    history = [grant, _txn(TransactionType.EXPIRE, -15, reference_id=grant.id)]
    plan = compute_due(MEMBER_ID, JOIN, POLICY, date(2026, 7, 18), history)
    assert plan.expires == []
