# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from typing import TYPE_CHECKING, assert_never

from sqlalchemy import func, select
from sqlmodel import col

from annual_leave.config import get_settings
from annual_leave.exceptions import AppError, GrantNotFound, InsufficientBalance, InvalidGrantOperation
from annual_leave.models.balance import AnnualLeaveBalance
from annual_leave.models.base import now_utc
from annual_leave.models.enums import (
    GRANT_TYPES,
    AuditAction,
    AuditEntityType,
    TransactionStatus,
    TransactionType,
)
from annual_leave.models.ledger import LeaveTransaction
from annual_leave.schemas.balance import (
    BalanceResponse,
    BalanceSummary,
    GrantBalanceListResponse,
    LedgerEntryResponse,
    LedgerListResponse,
)
from annual_leave.services import fifo
from annual_leave.services.audit import model_to_audit_dict, write_audit_log
from annual_leave.services.ledger import append_transactions

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from annual_leave.schemas.auth import AuthContext
    from annual_leave.schemas.balance import CancelGrantRequest, CreateAdjustmentRequest, CreateManualGrantRequest

logger = logging.getLogger(__name__)

_TOLERANCE = 1e-6


# ---------------------------------------------------------------------------
# Replay
# ---------------------------------------------------------------------------


@dataclass
class _Totals:
    granted: float = 0
    used: float = 0
    expired: float = 0
    adjusted: float = 0

    def add(self, transaction_type: TransactionType, amount: float) -> None:
        if transaction_type is TransactionType.GRANT or transaction_type is TransactionType.MANUAL_GRANT:
            self.granted += amount
        elif transaction_type is TransactionType.GRANT_CANCEL:
            self.granted -= abs(amount)
        elif transaction_type is TransactionType.USE:
            self.used += abs(amount)
        elif transaction_type is TransactionType.USE_CANCEL:
            self.used -= abs(amount)
        elif transaction_type is TransactionType.EXPIRE:
            self.expired += abs(amount)
        elif transaction_type is TransactionType.ADJUST:
            self.adjusted += amount
        else:
            assert_never(transaction_type)

    def summary(self) -> BalanceSummary:
        return BalanceSummary(
            total_granted=self.granted,
            total_used=self.used,
            total_expired=self.expired,
            total_adjusted=self.adjusted,
            current_balance=self.granted - self.used - self.expired + self.adjusted,
        )


def summarize_amounts(amounts: Iterable[tuple[str, float]]) -> BalanceSummary:
    """Totals from (transaction_type, signed amount) pairs."""
    totals = _Totals()
    for transaction_type, amount in amounts:
        totals.add(TransactionType(transaction_type), amount)
    return totals.summary()


def summarize(transactions: Iterable[LeaveTransaction]) -> BalanceSummary:
    """Replay a member's transactions into totals. Cancelled rows do not count."""
    return summarize_amounts(
        (t.transaction_type, t.amount) for t in transactions if t.status != TransactionStatus.CANCELLED
    )


async def replay_balance(session: AsyncSession, member_id: uuid.UUID) -> BalanceSummary:
    """Recompute a member's totals from the ledger."""
    result = await session.execute(
        select(col(LeaveTransaction.transaction_type), func.coalesce(func.sum(col(LeaveTransaction.amount)), 0))
        .where(
            col(LeaveTransaction.member_id) == member_id,
            col(LeaveTransaction.status) != TransactionStatus.CANCELLED.value,
        )
        .group_by(col(LeaveTransaction.transaction_type))
    )
    return summarize_amounts((row[0], float(row[1])) for row in result.all())


# ---------------------------------------------------------------------------
# Balance cache
# ---------------------------------------------------------------------------


async def lock_member_balance(
    session: AsyncSession,
    member_id: uuid.UUID,
    member_name: str = "",
) -> AnnualLeaveBalance:
    """Get the member's balance row with a FOR UPDATE lock, creating it if absent."""
    result = await session.execute(
        select(AnnualLeaveBalance).where(col(AnnualLeaveBalance.member_id) == member_id).with_for_update()
    )
    cache = result.scalar_one_or_none()

    if cache is None:
        summary = await replay_balance(session, member_id)
        cache = AnnualLeaveBalance(member_id=member_id, member_name=member_name, **summary.model_dump())
        session.add(cache)
        await session.flush()

    return cache


async def refresh_balance_cache(
    session: AsyncSession,
    member_id: uuid.UUID,
    member_name: str = "",
) -> AnnualLeaveBalance:
    """Rewrite the cached totals from the ledger within the caller's transaction."""
    cache = await lock_member_balance(session, member_id, member_name)
    summary = await replay_balance(session, member_id)
    for key, value in summary.model_dump().items():
        setattr(cache, key, value)
    if member_name:
        cache.member_name = member_name
    cache.last_updated = now_utc()
    cache.version += 1
    await session.flush()
    return cache


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def get_balance(session: AsyncSession, member_id: uuid.UUID) -> BalanceResponse:
    """A member's balance, always replayed from the ledger."""
    summary = await replay_balance(session, member_id)

    result = await session.execute(select(AnnualLeaveBalance).where(col(AnnualLeaveBalance.member_id) == member_id))
    cache = result.scalar_one_or_none()
    if cache is not None and abs(cache.current_balance - summary.current_balance) > _TOLERANCE:
        logger.warning(
            "Balance cache for member=%s is stale: cached=%s replayed=%s",
            member_id,
            cache.current_balance,
            summary.current_balance,
        )

    return BalanceResponse(
        member_id=member_id,
        member_name=cache.member_name if cache is not None else "",
        last_updated=cache.last_updated if cache is not None else None,
        **summary.model_dump(),
    )


async def get_ledger(
    session: AsyncSession,
    member_id: uuid.UUID,
    offset: int = 0,
    limit: int = 50,
) -> LedgerListResponse:
    """Paginated history for a member, newest first."""
    base_filter = [col(LeaveTransaction.member_id) == member_id]

    count_result = await session.execute(select(func.count()).select_from(LeaveTransaction).where(*base_filter))
    total = count_result.scalar_one()

    entries_result = await session.execute(
        select(LeaveTransaction)
        .where(*base_filter)
        .order_by(col(LeaveTransaction.created_at).desc(), col(LeaveTransaction.id))
        .offset(offset)
        .limit(limit)
    )
    entries = list(entries_result.scalars().all())

    return LedgerListResponse(
        items=[LedgerEntryResponse.model_validate(e) for e in entries],
        total=total,
    )


async def list_grant_balances(
    session: AsyncSession,
    member_id: uuid.UUID,
    as_of: date | None = None,
) -> GrantBalanceListResponse:
    """Per-grant breakdown of a member's balance."""
    items = await fifo.list_grant_balances(session, member_id, as_of)
    return GrantBalanceListResponse(items=items, total=len(items))


# ---------------------------------------------------------------------------
# Write path: admin operations
# ---------------------------------------------------------------------------


async def create_manual_grant(
    session: AsyncSession,
    auth: AuthContext,
    member_id: uuid.UUID,
    payload: CreateManualGrantRequest,
) -> LedgerEntryResponse:
    """Grant days outside the policy schedule."""
    grant_date = payload.grant_date or date.today()
    expire_date = payload.expire_date or grant_date + timedelta(days=get_settings().manual_grant_expire_days)
    if expire_date <= grant_date:
        raise AppError("expire_date must be after grant_date", status_code=400)

    try:
        await lock_member_balance(session, member_id, payload.member_name)
        entry = LeaveTransaction(
            member_id=member_id,
            member_name=payload.member_name,
            transaction_type=TransactionType.MANUAL_GRANT.value,
            amount=payload.amount,
            reason=payload.reason,
            grant_date=grant_date,
            expire_date=expire_date,
            created_by=auth.user_id,
        )
        await append_transactions(session, [entry])
        await refresh_balance_cache(session, member_id, payload.member_name)
        await write_audit_log(
            session,
            actor=auth.user_id,
            entity_type=AuditEntityType.TRANSACTION,
            entity_id=entry.id,
            action=AuditAction.CREATE,
            after_json=model_to_audit_dict(entry),
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    await session.refresh(entry)
    return LedgerEntryResponse.model_validate(entry)


async def create_adjustment(
    session: AsyncSession,
    auth: AuthContext,
    member_id: uuid.UUID,
    payload: CreateAdjustmentRequest,
) -> LedgerEntryResponse:
    """Record a signed correction. A deduction may not take the balance below zero."""
    try:
        await lock_member_balance(session, member_id, payload.member_name)

        if payload.amount < 0:
            current = (await replay_balance(session, member_id)).current_balance
            if current + payload.amount < -_TOLERANCE:
                raise InsufficientBalance(requested=-payload.amount, available=current)

        entry = LeaveTransaction(
            member_id=member_id,
            member_name=payload.member_name,
            transaction_type=TransactionType.ADJUST.value,
            amount=payload.amount,
            reason=payload.reason,
            created_by=auth.user_id,
        )
        await append_transactions(session, [entry])
        await refresh_balance_cache(session, member_id, payload.member_name)
        await write_audit_log(
            session,
            actor=auth.user_id,
            entity_type=AuditEntityType.TRANSACTION,
            entity_id=entry.id,
            action=AuditAction.CREATE,
            after_json=model_to_audit_dict(entry),
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    await session.refresh(entry)
    return LedgerEntryResponse.model_validate(entry)


async def cancel_grant(
    session: AsyncSession,
    auth: AuthContext,
    grant_id: uuid.UUID,
    payload: CancelGrantRequest,
) -> LedgerListResponse:
    """Cancel the unused remainder of a grant, or part of it.

    The whole available remainder is written off with a ``grant_cancel`` row.
    For a partial cancellation a replacement grant with the same dates carries
    the days that stay usable. Days already used stay used.
    """
    result = await session.execute(
        select(LeaveTransaction).where(
            col(LeaveTransaction.id) == grant_id,
            col(LeaveTransaction.transaction_type).in_(GRANT_TYPES),
        )
    )
    grant = result.scalar_one_or_none()
    if grant is None:
        raise GrantNotFound(grant_id)

    try:
        await lock_member_balance(session, grant.member_id, grant.member_name)

        balances = await fifo.list_grant_balances(session, grant.member_id)
        balance = next((b for b in balances if b.grant_id == grant_id), None)
        if balance is None or balance.is_cancelled:
            raise InvalidGrantOperation(f"Grant {grant_id} is already cancelled")
        if balance.is_expired:
            raise InvalidGrantOperation(f"Grant {grant_id} has expired")

        available = balance.available_amount
        if available <= _TOLERANCE:
            raise InvalidGrantOperation(f"Grant {grant_id} has no unused days left")
        days = payload.days if payload.days is not None else available
        if days > available + _TOLERANCE:
            raise InvalidGrantOperation(f"Cannot cancel {days:g} days; only {available:g} days remain")

        reason = payload.reason or f"Grant cancelled: {grant.reason}"
        rows = [
            LeaveTransaction(
                member_id=grant.member_id,
                member_name=grant.member_name,
                transaction_type=TransactionType.GRANT_CANCEL.value,
                amount=-available,
                reason=reason,
                grant_date=grant.grant_date,
                expire_date=grant.expire_date,
                reference_id=grant.id,
                created_by=auth.user_id,
            )
        ]
        if available - days > _TOLERANCE:
            rows.append(
                LeaveTransaction(
                    member_id=grant.member_id,
                    member_name=grant.member_name,
                    transaction_type=grant.transaction_type,
                    amount=available - days,
                    reason=f"{grant.reason} (remaining after cancelling {days:g} days)",
                    grant_date=grant.grant_date,
                    expire_date=grant.expire_date,
                    policy_id=grant.policy_id,
                    created_by=auth.user_id,
                )
            )
        await append_transactions(session, rows)
        await refresh_balance_cache(session, grant.member_id, grant.member_name)
        await write_audit_log(
            session,
            actor=auth.user_id,
            entity_type=AuditEntityType.TRANSACTION,
            entity_id=grant.id,
            action=AuditAction.CANCEL,
            before_json=model_to_audit_dict(grant),
            after_json={
                "cancelled_days": days,
                "written_off_days": available,
                "transaction_ids": [r.id for r in rows],
            },
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info("Cancelled %.1f days of grant=%s for member=%s", days, grant_id, grant.member_id)
    return LedgerListResponse(
        items=[LedgerEntryResponse.model_validate(r) for r in rows],
        total=len(rows),
    )
