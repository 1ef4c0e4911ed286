# ruff: noqa: TC003
"""FIFO allocation of leave usage across a member's grants.

Usage is drawn from the grant that expires first; ties fall back to the grant
date, then to insertion order. Allocation is all-or-nothing: when the member's
unexpired grants cannot cover the request, nothing is written.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from annual_leave.exceptions import AmbiguousReversal, AppError, InsufficientBalance
from annual_leave.models.enums import (
    GRANT_TYPES,
    AuditAction,
    AuditEntityType,
    ReversalPath,
    ReversalStatus,
    TransactionStatus,
    TransactionType,
)
from annual_leave.models.ledger import LeaveTransaction
from annual_leave.schemas.balance import GrantBalance
from annual_leave.schemas.usage import ReversalResult, UsageAllocation, UsageResult
from annual_leave.services import legacy_reversal
from annual_leave.services.audit import write_audit_log
from annual_leave.services.leave_request import get_leave_request_directory
from annual_leave.services.ledger import append_transactions

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_EPSILON = 1e-9

_LINKED_TYPES = [
    TransactionType.USE.value,
    TransactionType.USE_CANCEL.value,
    TransactionType.GRANT_CANCEL.value,
    TransactionType.EXPIRE.value,
]


@dataclass(frozen=True)
class Allocation:
    """Days drawn from one grant."""

    grant_id: uuid.UUID
    days: float
    grant_date: date | None
    expire_date: date | None


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def fifo_sort_key(txn: LeaveTransaction) -> tuple[date, date]:
    """Order grants by expire date, then grant date; ties keep their input order."""
    return (txn.expire_date or date.max, txn.grant_date or date.max)


def is_active(txn: LeaveTransaction) -> bool:
    return txn.status != TransactionStatus.CANCELLED


def is_period_expire(txn: LeaveTransaction) -> bool:
    """An unlinked expire row that spans a window of grant dates."""
    return (
        txn.transaction_type == TransactionType.EXPIRE
        and txn.reference_id is None
        and txn.grant_date is not None
        and txn.expire_date is not None
    )


def period_covers(expire: LeaveTransaction, grant: LeaveTransaction) -> bool:
    """Whether a period expire row absorbed a system grant."""
    if grant.transaction_type != TransactionType.GRANT or grant.grant_date is None:
        return False
    if expire.grant_date is None or expire.expire_date is None:
        return False
    return expire.grant_date <= grant.grant_date < expire.expire_date


def build_grant_balances(
    grants: Iterable[LeaveTransaction],
    linked: Iterable[LeaveTransaction],
    as_of: date,
) -> list[GrantBalance]:
    """Fold usage, cancellation and expiry rows onto the grants they reference.

    Grants keep the order they are given in. Cancelled rows are ignored except
    that a cancelled grant is reported with ``is_cancelled`` set.
    """
    used: dict[uuid.UUID, float] = defaultdict(float)
    expired: dict[uuid.UUID, float] = defaultdict(float)
    cancelled_by_row: set[uuid.UUID] = set()
    period_expires: list[LeaveTransaction] = []

    for txn in linked:
        if not is_active(txn):
            continue
        if is_period_expire(txn):
            period_expires.append(txn)
            continue
        if txn.reference_id is None:
            continue
        if txn.transaction_type == TransactionType.USE:
            used[txn.reference_id] += abs(txn.amount)
        elif txn.transaction_type == TransactionType.USE_CANCEL:
            used[txn.reference_id] -= abs(txn.amount)
        elif txn.transaction_type == TransactionType.GRANT_CANCEL:
            used[txn.reference_id] += abs(txn.amount)
            cancelled_by_row.add(txn.reference_id)
        elif txn.transaction_type == TransactionType.EXPIRE:
            expired[txn.reference_id] += abs(txn.amount)

    balances: list[GrantBalance] = []
    for grant in grants:
        if grant.transaction_type not in GRANT_TYPES or grant.amount <= 0:
            continue
        used_amount = max(used.get(grant.id, 0.0), 0.0)
        expired_amount = expired.get(grant.id, 0.0)
        period_covered = any(period_covers(e, grant) for e in period_expires)
        covered = period_covered or grant.id in expired
        if period_covered:
            # The period row absorbed whatever was left, whenever that was.
            expired_amount = max(grant.amount - used_amount, 0.0)
        available = grant.amount - used_amount - expired_amount
        balances.append(
            GrantBalance(
                grant_id=grant.id,
                transaction_type=TransactionType(grant.transaction_type),
                grant_date=grant.grant_date,
                expire_date=grant.expire_date,
                original_amount=grant.amount,
                used_amount=used_amount,
                expired_amount=expired_amount,
                available_amount=max(available, 0.0),
                reason=grant.reason,
                is_expired=covered or (grant.expire_date is not None and grant.expire_date < as_of),
                is_cancelled=not is_active(grant) or grant.id in cancelled_by_row,
            )
        )
    return balances


def written_off_grants(
    grants: Iterable[LeaveTransaction],
    linked: Iterable[LeaveTransaction],
) -> dict[uuid.UUID, TransactionType]:
    """Grants whose remainder was already closed, with the row type that closed it."""
    closed: dict[uuid.UUID, TransactionType] = {}
    period_expires: list[LeaveTransaction] = []
    for txn in linked:
        if not is_active(txn):
            continue
        if is_period_expire(txn):
            period_expires.append(txn)
        elif txn.reference_id is None:
            continue
        elif txn.transaction_type == TransactionType.GRANT_CANCEL:
            closed[txn.reference_id] = TransactionType.GRANT_CANCEL
        elif txn.transaction_type == TransactionType.EXPIRE:
            closed.setdefault(txn.reference_id, TransactionType.EXPIRE)

    for grant in grants:
        if grant.id not in closed and any(period_covers(e, grant) for e in period_expires):
            closed[grant.id] = TransactionType.EXPIRE
    return closed


def allocate(grants: Sequence[GrantBalance], requested_days: float) -> list[Allocation]:
    """Walk grants in order, drawing from each until the request is covered.

    Raises InsufficientBalance with the exact shortfall; never returns a
    partial allocation.
    """
    if requested_days <= 0:
        raise AppError("Requested days must be positive", status_code=400)

    remaining = requested_days
    allocations: list[Allocation] = []
    for grant in grants:
        if remaining <= _EPSILON:
            break
        if grant.available_amount <= _EPSILON:
            continue
        take = min(grant.available_amount, remaining)
        allocations.append(
            Allocation(
                grant_id=grant.grant_id,
                days=take,
                grant_date=grant.grant_date,
                expire_date=grant.expire_date,
            )
        )
        remaining -= take

    if remaining > _EPSILON:
        available = sum(g.available_amount for g in grants if g.available_amount > 0)
        raise InsufficientBalance(requested=requested_days, available=available)
    return allocations


# ---------------------------------------------------------------------------
# Grant queries
# ---------------------------------------------------------------------------


async def _load_grants(session: AsyncSession, member_id: uuid.UUID) -> list[LeaveTransaction]:
    result = await session.execute(
        select(LeaveTransaction)
        .where(
            col(LeaveTransaction.member_id) == member_id,
            col(LeaveTransaction.transaction_type).in_(GRANT_TYPES),
            col(LeaveTransaction.amount) > 0,
            col(LeaveTransaction.expire_date).is_not(None),
        )
        .order_by(
            col(LeaveTransaction.expire_date),
            col(LeaveTransaction.grant_date),
            col(LeaveTransaction.created_at),
        )
    )
    return list(result.scalars().all())


async def _load_linked(session: AsyncSession, member_id: uuid.UUID) -> list[LeaveTransaction]:
    result = await session.execute(
        select(LeaveTransaction).where(
            col(LeaveTransaction.member_id) == member_id,
            col(LeaveTransaction.transaction_type).in_(_LINKED_TYPES),
        )
    )
    return list(result.scalars().all())


async def list_grant_balances(
    session: AsyncSession,
    member_id: uuid.UUID,
    as_of: date | None = None,
) -> list[GrantBalance]:
    """Every grant of a member with its usage breakdown, for audit display."""
    if as_of is None:
        as_of = date.today()
    grants = await _load_grants(session, member_id)
    linked = await _load_linked(session, member_id)
    return build_grant_balances(grants, linked, as_of)


async def get_available_grants(
    session: AsyncSession,
    member_id: uuid.UUID,
    as_of: date | None = None,
) -> list[GrantBalance]:
    """Unexpired, uncancelled grants with days left, in FIFO order."""
    balances = await list_grant_balances(session, member_id, as_of)
    return [
        g
        for g in balances
        if not g.is_expired and not g.is_cancelled and g.available_amount > _EPSILON
    ]


# ---------------------------------------------------------------------------
# Usage
# ---------------------------------------------------------------------------


async def record_usage(
    session: AsyncSession,
    *,
    member_id: uuid.UUID,
    member_name: str,
    leave_type: str,
    start_date: date,
    end_date: date,
    total_days: float,
    request_id: uuid.UUID,
    created_by: str,
    as_of: date | None = None,
) -> UsageResult:
    """Deduct an approved leave request from the member's grants, oldest-expiring first.

    Flow:
    1. Lock the member's balance row
    2. List available grants and allocate
    3. Append one ``use`` row per allocation
    4. Refresh the balance cache
    5. Commit

    Any failure rolls the whole transaction back, leaving the ledger unchanged.
    """
    from annual_leave.services.balance import lock_member_balance, refresh_balance_cache

    try:
        await lock_member_balance(session, member_id, member_name)

        existing = await _find_linked_usages(session, request_id, TransactionType.USE)
        if existing:
            raise AppError(f"Usage for leave request {request_id} is already recorded", status_code=409)

        grants = await get_available_grants(session, member_id, as_of)
        allocations = allocate(grants, total_days)

        reason = f"{leave_type} ({start_date.isoformat()}~{end_date.isoformat()})"
        rows = [
            LeaveTransaction(
                member_id=member_id,
                member_name=member_name,
                transaction_type=TransactionType.USE.value,
                amount=-allocation.days,
                reason=reason,
                grant_date=allocation.grant_date,
                expire_date=allocation.expire_date,
                reference_id=allocation.grant_id,
                request_id=request_id,
                created_by=created_by,
            )
            for allocation in allocations
        ]
        await append_transactions(session, rows)
        cache = await refresh_balance_cache(session, member_id, member_name)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(
        "Recorded %.1f days of usage for member=%s request=%s across %d grants",
        total_days,
        member_id,
        request_id,
        len(rows),
    )
    return UsageResult(
        request_id=request_id,
        total_days=total_days,
        allocations=[
            UsageAllocation(grant_id=a.grant_id, days=a.days, transaction_id=row.id)
            for a, row in zip(allocations, rows, strict=True)
        ],
        current_balance=cache.current_balance,
    )


# ---------------------------------------------------------------------------
# Reversal
# ---------------------------------------------------------------------------


async def _find_linked_usages(
    session: AsyncSession,
    request_id: uuid.UUID,
    transaction_type: TransactionType,
) -> list[LeaveTransaction]:
    result = await session.execute(
        select(LeaveTransaction)
        .where(
            col(LeaveTransaction.request_id) == request_id,
            col(LeaveTransaction.transaction_type) == transaction_type.value,
            col(LeaveTransaction.status) != TransactionStatus.CANCELLED.value,
        )
        .order_by(col(LeaveTransaction.created_at))
    )
    return list(result.scalars().all())


def _ambiguous(request_id: uuid.UUID, warning: str) -> ReversalResult:
    logger.warning("Usage reversal for request=%s left the ledger unchanged: %s", request_id, warning)
    return ReversalResult(request_id=request_id, status=ReversalStatus.AMBIGUOUS, warning=warning)


async def _usage_owner(session: AsyncSession, request_id: uuid.UUID) -> tuple[uuid.UUID, str] | None:
    """The member whose ledger holds a request's usage, read before locking."""
    for transaction_type in (TransactionType.USE, TransactionType.USE_CANCEL):
        rows = await _find_linked_usages(session, request_id, transaction_type)
        if rows:
            return rows[0].member_id, rows[0].member_name
    request = await get_leave_request_directory().get_request(request_id)
    if request is None:
        return None
    return request.member_id, request.member_name


async def _locate_usages(
    session: AsyncSession,
    request_id: uuid.UUID,
) -> tuple[list[LeaveTransaction], ReversalPath] | ReversalResult:
    """Usage rows to mirror, or the result to return without writing. Call under the member lock."""
    if await _find_linked_usages(session, request_id, TransactionType.USE_CANCEL):
        return ReversalResult(request_id=request_id, status=ReversalStatus.ALREADY_REVERSED)

    usages = await _find_linked_usages(session, request_id, TransactionType.USE)
    if usages:
        return usages, ReversalPath.REQUEST_LINK

    request = await get_leave_request_directory().get_request(request_id)
    if request is None:
        return _ambiguous(request_id, "No usage rows are linked to this request and the request is unknown")
    try:
        match = await legacy_reversal.find_by_reason(session, request)
        path = ReversalPath.LEGACY_REASON_MATCH
        if not match.usages:
            match = await legacy_reversal.find_by_reference(session, request)
            path = ReversalPath.LEGACY_REFERENCE
    except AmbiguousReversal as exc:
        return _ambiguous(request_id, exc.message)

    if match.already_reversed:
        return ReversalResult(request_id=request_id, status=ReversalStatus.ALREADY_REVERSED, path=path)
    if not match.usages:
        return _ambiguous(request_id, "No usage rows match this request")
    return match.usages, path


async def _close_restored_days(
    session: AsyncSession,
    member_id: uuid.UUID,
    usages: Sequence[LeaveTransaction],
    request_id: uuid.UUID,
    created_by: str,
) -> list[LeaveTransaction]:
    """Rows that close days handed back to grants which already expired or were cancelled.

    Without them the days would count in the balance while no grant can
    supply them, and no later daily run closes a grant a second time.
    """
    closed = written_off_grants(await _load_grants(session, member_id), await _load_linked(session, member_id))
    rows: list[LeaveTransaction] = []
    for usage in usages:
        if usage.reference_id is None or usage.reference_id not in closed:
            continue
        transaction_type = closed[usage.reference_id]
        rows.append(
            LeaveTransaction(
                member_id=usage.member_id,
                member_name=usage.member_name,
                transaction_type=transaction_type.value,
                amount=-abs(usage.amount),
                reason=f"Restored days closed again: {usage.reason}",
                grant_date=usage.grant_date,
                expire_date=usage.expire_date,
                reference_id=usage.reference_id,
                request_id=request_id,
                created_by=created_by,
            )
        )
    return rows


async def reverse_usage(
    session: AsyncSession,
    request_id: uuid.UUID,
    cancelled_by: str,
    reason: str = "",
) -> ReversalResult:
    """Append ``use_cancel`` rows mirroring the usage recorded for a leave request.

    Usage rows are located through their request link first. Rows written
    before that link existed are found through the legacy lookups. When the
    rows cannot be identified with certainty, nothing is written and the
    result status is ``ambiguous``.

    The lookups run under the member's balance lock, so two reversals of the
    same request cannot both write mirrors.
    """
    from annual_leave.services.balance import lock_member_balance, refresh_balance_cache

    owner = await _usage_owner(session, request_id)
    if owner is None:
        return _ambiguous(request_id, "No usage rows are linked to this request and the request is unknown")
    member_id, member_name = owner

    try:
        await lock_member_balance(session, member_id, member_name)
        located = await _locate_usages(session, request_id)
        if isinstance(located, ReversalResult):
            await session.rollback()
            return located
        usages, path = located

        mirrors = [
            LeaveTransaction(
                member_id=usage.member_id,
                member_name=usage.member_name,
                transaction_type=TransactionType.USE_CANCEL.value,
                amount=abs(usage.amount),
                reason=f"Cancelled: {reason or usage.reason}",
                grant_date=usage.grant_date,
                expire_date=usage.expire_date,
                reference_id=usage.reference_id,
                request_id=request_id,
                created_by=cancelled_by,
            )
            for usage in usages
        ]
        write_offs = await _close_restored_days(session, member_id, usages, request_id, cancelled_by)
        await append_transactions(session, [*mirrors, *write_offs])
        await refresh_balance_cache(session, member_id, member_name)

        reversed_days = sum(m.amount for m in mirrors)
        written_off_days = sum(-w.amount for w in write_offs)
        await write_audit_log(
            session,
            actor=cancelled_by,
            entity_type=AuditEntityType.LEAVE_REQUEST,
            entity_id=request_id,
            action=AuditAction.REVERSE,
            after_json={
                "path": path,
                "transaction_ids": [m.id for m in mirrors],
                "reversed_days": reversed_days,
                "write_off_ids": [w.id for w in write_offs],
                "written_off_days": written_off_days,
            },
        )
        mirror_ids = [m.id for m in mirrors]
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(
        "Reversed %.1f days for request=%s via %s (%.1f closed again)",
        reversed_days,
        request_id,
        path.value,
        written_off_days,
    )
    return ReversalResult(
        request_id=request_id,
        status=ReversalStatus.REVERSED,
        path=path,
        reversed_days=reversed_days,
        written_off_days=written_off_days,
        transaction_ids=mirror_ids,
    )
