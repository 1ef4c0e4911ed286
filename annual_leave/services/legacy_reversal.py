# ruff: noqa: TC003
"""Lookups for usage rows written before ``request_id`` was recorded.

Older ``use`` rows only tie back to their leave request through the date range
embedded in the reason text, or through a ``reference_id`` holding the request
id itself. Older cancellations were written the same way, as ``use_cancel``
rows without a request link, so both are read back together. Both lookups
fail closed: if the match is not exact, no rows are returned for reversal.
Drop this module once those rows are migrated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from annual_leave.exceptions import AmbiguousReversal
from annual_leave.models.enums import GRANT_TYPES, TransactionStatus, TransactionType
from annual_leave.models.ledger import LeaveTransaction

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement, Select
    from sqlalchemy.ext.asyncio import AsyncSession

    from annual_leave.services.leave_request import LeaveRequestInfo

logger = logging.getLogger(__name__)

_TOLERANCE = 1e-6


@dataclass(frozen=True)
class LegacyMatch:
    """Usage rows found for a request, and whether older rows already cancel them."""

    usages: list[LeaveTransaction] = field(default_factory=list)
    already_reversed: bool = False


def _unlinked(request: LeaveRequestInfo, transaction_type: TransactionType) -> Select[tuple[LeaveTransaction]]:
    return select(LeaveTransaction).where(
        col(LeaveTransaction.member_id) == request.member_id,
        col(LeaveTransaction.transaction_type) == transaction_type.value,
        col(LeaveTransaction.request_id).is_(None),
        col(LeaveTransaction.status) != TransactionStatus.CANCELLED.value,
    )


async def _load_pair(
    session: AsyncSession,
    request: LeaveRequestInfo,
    condition: ColumnElement[bool],
) -> tuple[list[LeaveTransaction], list[LeaveTransaction]]:
    rows: list[list[LeaveTransaction]] = []
    for transaction_type in (TransactionType.USE, TransactionType.USE_CANCEL):
        result = await session.execute(
            _unlinked(request, transaction_type).where(condition).order_by(col(LeaveTransaction.created_at))
        )
        rows.append(list(result.scalars().all()))
    return rows[0], rows[1]


def _net_of_cancellations(
    request: LeaveRequestInfo,
    usages: list[LeaveTransaction],
    cancels: list[LeaveTransaction],
) -> LegacyMatch:
    if not cancels:
        return LegacyMatch(usages=usages)
    used = sum(abs(u.amount) for u in usages)
    cancelled = sum(abs(c.amount) for c in cancels)
    if abs(used - cancelled) > _TOLERANCE:
        raise AmbiguousReversal(
            request.id,
            f"Older cancellations restored {cancelled:g} of {used:g} matched days",
        )
    logger.info("Legacy usage for request=%s was already cancelled by %d rows", request.id, len(cancels))
    return LegacyMatch(usages=usages, already_reversed=True)


async def find_by_reason(session: AsyncSession, request: LeaveRequestInfo) -> LegacyMatch:
    """Grant-linked usage rows whose reason names the request's start and end dates.

    Raises AmbiguousReversal when the matched days differ from the request's
    total, since the text match may have caught another request's rows, or
    when older cancellations only partly offset them.
    """
    grant_ids = select(LeaveTransaction.id).where(
        col(LeaveTransaction.member_id) == request.member_id,
        col(LeaveTransaction.transaction_type).in_(GRANT_TYPES),
    )
    usages, cancels = await _load_pair(session, request, col(LeaveTransaction.reference_id).in_(grant_ids))
    start, end = request.start_date.isoformat(), request.end_date.isoformat()
    usages = [u for u in usages if start in u.reason and end in u.reason]
    if not usages:
        return LegacyMatch()
    cancels = [c for c in cancels if start in c.reason and end in c.reason]

    match = _net_of_cancellations(request, usages, cancels)
    if match.already_reversed:
        return match
    matched_days = sum(abs(u.amount) for u in usages)
    if abs(matched_days - request.total_days) > _TOLERANCE:
        raise AmbiguousReversal(
            request.id,
            f"Reason text matched {matched_days:g} days but the request covers {request.total_days:g} days",
        )
    logger.info("Matched %d legacy usage rows for request=%s by reason text", len(usages), request.id)
    return match


async def find_by_reference(session: AsyncSession, request: LeaveRequestInfo) -> LegacyMatch:
    """Usage rows that stored the request id in ``reference_id``."""
    usages, cancels = await _load_pair(session, request, col(LeaveTransaction.reference_id) == request.id)
    if not usages:
        return LegacyMatch()
    return _net_of_cancellations(request, usages, cancels)
