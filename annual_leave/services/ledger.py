from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from annual_leave.exceptions import DuplicateTransaction, LedgerWriteFailure

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from annual_leave.models.ledger import LeaveTransaction

logger = logging.getLogger(__name__)

# PostgreSQL names the constraint; SQLite names the column.
_IDEMPOTENCY_MARKERS = ("uq_leave_txn_idempotency", "annual_leave_transactions.idempotency_key")


def is_idempotency_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return any(marker in message for marker in _IDEMPOTENCY_MARKERS)


async def append_transactions(session: AsyncSession, transactions: Sequence[LeaveTransaction]) -> None:
    """Add ledger rows to the session and flush them.

    Rows are only ever inserted. A collision on idempotency_key surfaces as
    DuplicateTransaction and any other store error as LedgerWriteFailure; the
    caller rolls back.
    """
    if not transactions:
        return
    session.add_all(transactions)
    try:
        await session.flush()
    except IntegrityError as exc:
        if is_idempotency_violation(exc):
            logger.warning("Duplicate leave transaction for member=%s: %s", transactions[0].member_id, exc.orig)
            raise DuplicateTransaction(f"Leave transaction already recorded: {exc.orig}") from exc
        logger.exception("Leave transactions for member=%s violate a constraint", transactions[0].member_id)
        raise LedgerWriteFailure(f"Failed to write leave transactions: {exc.orig}") from exc
    except SQLAlchemyError as exc:
        logger.exception("Failed to append %d leave transactions", len(transactions))
        raise LedgerWriteFailure(f"Failed to write leave transactions: {exc}") from exc
