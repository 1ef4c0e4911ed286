# ruff: noqa: TC003
"""Tenure-based grant and expiry rules.

Everything above ``compute_due_for_member`` is pure: the policy is passed in
explicitly and the member's history is supplied by the caller, so the same
inputs always produce the same plan.
"""

from __future__ import annotations

import calendar
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from annual_leave.models.enums import GRANT_TYPES, TenurePhase, TransactionType
from annual_leave.models.ledger import LeaveTransaction
from annual_leave.services.fifo import build_grant_balances, fifo_sort_key, is_period_expire, period_covers

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from annual_leave.schemas.policy import PolicyRules


# ---------------------------------------------------------------------------
# Date arithmetic
# ---------------------------------------------------------------------------


def add_months(d: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def anniversary(join_date: date, years: int) -> date:
    return add_months(join_date, 12 * years)


def completed_years(join_date: date, as_of: date) -> int:
    """Whole years of service on ``as_of``; the anniversary itself counts."""
    years = as_of.year - join_date.year
    if years > 0 and anniversary(join_date, years) > as_of:
        years -= 1
    return max(years, 0)


def tenure_phase(join_date: date, as_of: date) -> TenurePhase:
    if as_of < join_date:
        return TenurePhase.NOT_STARTED
    if as_of < anniversary(join_date, 1):
        return TenurePhase.FIRST_YEAR
    return TenurePhase.ANNUAL


def annual_days(policy: PolicyRules, service_year: int) -> float:
    """Days granted on the anniversary that starts ``service_year``.

    The first two service years get the base amount; after that the amount
    rises by ``increment_days`` every ``increment_years``, up to the cap.
    """
    if service_year <= 2:
        return policy.base_annual_days
    increments = (service_year - 1) // policy.increment_years
    return min(
        policy.base_annual_days + increments * policy.increment_days,
        policy.max_annual_days,
    )


def first_year_monthly_amount(policy: PolicyRules, month: int) -> float:
    """Grant for the ``month``-th monthly anniversary, honouring the first-year cap."""
    before = min((month - 1) * policy.first_year_monthly_grant, policy.first_year_max_days)
    after = min(month * policy.first_year_monthly_grant, policy.first_year_max_days)
    return after - before


# ---------------------------------------------------------------------------
# Plan types
# ---------------------------------------------------------------------------


@dataclass
class PendingTransaction:
    """A ledger row the daily update would append. Amounts carry their ledger sign."""

    transaction_type: TransactionType
    amount: float
    grant_date: date
    expire_date: date
    idempotency_key: str
    reason: str
    reference_id: uuid.UUID | None = None

    @property
    def effective_date(self) -> date:
        if self.transaction_type == TransactionType.EXPIRE:
            return self.expire_date
        return self.grant_date


@dataclass
class DuePlan:
    """Grant and expire events due for one member as of a date."""

    member_id: uuid.UUID
    as_of: date
    phase: TenurePhase
    service_year: int = 0
    grants: list[PendingTransaction] = field(default_factory=list)
    expires: list[PendingTransaction] = field(default_factory=list)

    @property
    def total_granted(self) -> float:
        return sum(t.amount for t in self.grants)

    @property
    def total_expired(self) -> float:
        return sum(-t.amount for t in self.expires)

    @property
    def is_empty(self) -> bool:
        return not self.grants and not self.expires

    def transactions(self) -> list[PendingTransaction]:
        """All events in write order; an expiry precedes a grant on the same day."""
        events = [*self.expires, *self.grants]
        return sorted(events, key=lambda t: (t.effective_date, t.transaction_type != TransactionType.EXPIRE))


# ---------------------------------------------------------------------------
# History index
# ---------------------------------------------------------------------------


class _History:
    """Duplicate detection over a member's rows, cancelled ones included."""

    def __init__(self, transactions: Sequence[LeaveTransaction]) -> None:
        self.transactions = list(transactions)
        self.keys = {t.idempotency_key for t in transactions if t.idempotency_key}
        self.grant_dates = {
            t.grant_date
            for t in transactions
            if t.transaction_type == TransactionType.GRANT and t.grant_date is not None
        }
        self.expired_refs = {
            t.reference_id
            for t in transactions
            if t.transaction_type == TransactionType.EXPIRE and t.reference_id is not None
        }
        self.period_expires = [t for t in transactions if is_period_expire(t)]

    def has_key(self, key: str) -> bool:
        return key in self.keys

    def has_grant_on(self, grant_date: date) -> bool:
        return grant_date in self.grant_dates

    def has_period_expire_from(self, start: date) -> bool:
        return any(e.grant_date == start for e in self.period_expires)

    def is_covered(self, grant: LeaveTransaction) -> bool:
        if grant.id in self.expired_refs:
            return True
        return any(period_covers(e, grant) for e in self.period_expires)


def _grant_key(member_id: uuid.UUID, suffix: str) -> str:
    return f"grant:{member_id}:{suffix}"


def _is_first_year_grant(txn: LeaveTransaction, join_date: date) -> bool:
    return (
        txn.transaction_type == TransactionType.GRANT
        and txn.grant_date is not None
        and join_date <= txn.grant_date < anniversary(join_date, 1)
    )


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def _first_year_grants(
    member_id: uuid.UUID,
    join_date: date,
    policy: PolicyRules,
    as_of: date,
    history: _History,
) -> list[PendingTransaction]:
    first_anniversary = anniversary(join_date, 1)
    pending: list[PendingTransaction] = []
    month = 1
    while True:
        grant_date = add_months(join_date, month)
        if grant_date > as_of or grant_date >= first_anniversary:
            break
        key = _grant_key(member_id, f"m{month}")
        amount = first_year_monthly_amount(policy, month)
        if amount > 0 and not history.has_grant_on(grant_date) and not history.has_key(key):
            pending.append(
                PendingTransaction(
                    transaction_type=TransactionType.GRANT,
                    amount=amount,
                    grant_date=grant_date,
                    expire_date=min(add_months(grant_date, policy.expire_after_months), first_anniversary),
                    idempotency_key=key,
                    reason=f"Monthly grant, month {month} of first year",
                )
            )
        month += 1
    return pending


def _first_year_expire(
    member_id: uuid.UUID,
    join_date: date,
    history: _History,
    as_of: date,
) -> PendingTransaction | None:
    key = f"expire:{member_id}:first-year"
    if history.has_key(key) or history.has_period_expire_from(join_date):
        return None

    first_year = [t for t in history.transactions if _is_first_year_grant(t, join_date)]
    linked = [t for t in history.transactions if t.transaction_type != TransactionType.GRANT]
    remaining = sum(
        g.available_amount
        for g in build_grant_balances(first_year, linked, as_of)
        if not g.is_cancelled
    )
    if remaining <= 0:
        return None
    return PendingTransaction(
        transaction_type=TransactionType.EXPIRE,
        amount=-remaining,
        grant_date=join_date,
        expire_date=anniversary(join_date, 1),
        idempotency_key=key,
        reason="Unused first-year leave expired on first anniversary",
    )


def _annual_grant(
    member_id: uuid.UUID,
    join_date: date,
    policy: PolicyRules,
    service_year: int,
    history: _History,
) -> PendingTransaction | None:
    grant_date = anniversary(join_date, service_year)
    key = _grant_key(member_id, f"y{service_year}")
    if history.has_grant_on(grant_date) or history.has_key(key):
        return None
    amount = annual_days(policy, service_year)
    if amount <= 0:
        return None
    return PendingTransaction(
        transaction_type=TransactionType.GRANT,
        amount=amount,
        grant_date=grant_date,
        expire_date=add_months(grant_date, policy.expire_after_months),
        idempotency_key=key,
        reason=f"Annual grant, service year {service_year}",
    )


def _per_grant_expires(join_date: date, as_of: date, history: _History) -> list[PendingTransaction]:
    grants = sorted(
        (t for t in history.transactions if t.transaction_type in GRANT_TYPES),
        key=fifo_sort_key,
    )
    by_id = {g.id: g for g in grants}
    linked = [t for t in history.transactions if t.id not in by_id]

    pending: list[PendingTransaction] = []
    for balance in build_grant_balances(grants, linked, as_of):
        grant = by_id[balance.grant_id]
        if balance.is_cancelled or balance.expire_date is None or balance.expire_date > as_of:
            continue
        if _is_first_year_grant(grant, join_date) or history.is_covered(grant):
            continue
        key = f"expire:{grant.id}"
        if history.has_key(key) or balance.available_amount <= 0:
            continue
        pending.append(
            PendingTransaction(
                transaction_type=TransactionType.EXPIRE,
                amount=-balance.available_amount,
                grant_date=balance.grant_date or balance.expire_date,
                expire_date=balance.expire_date,
                idempotency_key=key,
                reason=f"Expired: {grant.reason}" if grant.reason else "Grant expired",
                reference_id=grant.id,
            )
        )
    return pending


def compute_due(
    member_id: uuid.UUID,
    join_date: date,
    policy: PolicyRules,
    as_of: date,
    history: Sequence[LeaveTransaction],
) -> DuePlan:
    """Work out which grant and expire rows are due for a member on ``as_of``.

    Events already present in ``history`` (matched by idempotency key, by grant
    date, or by an expiry covering the grant) are left out, so running the plan
    twice for the same date writes nothing the second time.
    """
    phase = tenure_phase(join_date, as_of)
    plan = DuePlan(member_id=member_id, as_of=as_of, phase=phase)
    if phase == TenurePhase.NOT_STARTED:
        return plan

    index = _History(history)
    if phase == TenurePhase.FIRST_YEAR:
        plan.grants = _first_year_grants(member_id, join_date, policy, as_of, index)
    else:
        plan.service_year = completed_years(join_date, as_of)
        first_year_expire = _first_year_expire(member_id, join_date, index, as_of)
        if first_year_expire is not None:
            plan.expires.append(first_year_expire)
        annual = _annual_grant(member_id, join_date, policy, plan.service_year, index)
        if annual is not None:
            plan.grants.append(annual)

    plan.expires.extend(_per_grant_expires(join_date, as_of, index))
    return plan


async def load_member_history(session: AsyncSession, member_id: uuid.UUID) -> list[LeaveTransaction]:
    """All of a member's rows, cancelled ones included, oldest first."""
    result = await session.execute(
        select(LeaveTransaction)
        .where(col(LeaveTransaction.member_id) == member_id)
        .order_by(col(LeaveTransaction.created_at), col(LeaveTransaction.id))
    )
    return list(result.scalars().all())


async def compute_due_for_member(
    session: AsyncSession,
    member_id: uuid.UUID,
    join_date: date,
    policy: PolicyRules,
    as_of: date,
) -> DuePlan:
    """Load the member's history and compute what is due."""
    history = await load_member_history(session, member_id)
    return compute_due(member_id, join_date, policy, as_of, history)
