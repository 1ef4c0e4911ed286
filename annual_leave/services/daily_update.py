"""Daily grant and expiry run across all active members.

Each member is processed in their own transaction: one member's failure is
rolled back and recorded without affecting the others. Re-running the job for
the same date writes nothing new.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING

from annual_leave.config import get_settings
from annual_leave.exceptions import AppError, DuplicateTransaction
from annual_leave.models.enums import TransactionType
from annual_leave.models.ledger import LeaveTransaction
from annual_leave.services.balance import lock_member_balance, refresh_balance_cache
from annual_leave.services.ledger import append_transactions
from annual_leave.services.member import get_member_directory
from annual_leave.services.policy import get_active_policy, rules_from_policy
from annual_leave.services.policy_engine import compute_due_for_member

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from annual_leave.services.member import MemberInfo
    from annual_leave.services.policy_engine import DuePlan

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------


@dataclass
class DailyUpdateResult:
    """Summary of a daily update run; ``granted`` and ``expired`` are in days."""

    target_date: date
    processed: int = 0
    granted: float = 0.0
    expired: float = 0.0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _to_ledger_rows(
    plan: DuePlan,
    member: MemberInfo,
    policy_id: uuid.UUID,
    created_by: str,
) -> list[LeaveTransaction]:
    return [
        LeaveTransaction(
            member_id=member.id,
            member_name=member.name,
            transaction_type=pending.transaction_type.value,
            amount=pending.amount,
            reason=pending.reason,
            grant_date=pending.grant_date,
            expire_date=pending.expire_date,
            reference_id=pending.reference_id,
            policy_id=policy_id if pending.transaction_type == TransactionType.GRANT else None,
            idempotency_key=pending.idempotency_key,
            created_by=created_by,
        )
        for pending in plan.transactions()
    ]


async def _process_member(
    session: AsyncSession,
    member: MemberInfo,
    target_date: date,
    result: DailyUpdateResult,
) -> None:
    policy = await get_active_policy(session)
    await lock_member_balance(session, member.id, member.name)
    plan = await compute_due_for_member(session, member.id, member.join_date, rules_from_policy(policy), target_date)
    if plan.is_empty:
        await session.rollback()
        result.skipped += 1
        return

    rows = _to_ledger_rows(plan, member, policy.id, get_settings().system_actor)
    await append_transactions(session, rows)
    await refresh_balance_cache(session, member.id, member.name)
    await session.commit()

    result.granted += plan.total_granted
    result.expired += plan.total_expired
    logger.info(
        "Daily update for %s on %s: granted %.1f days (%d rows), expired %.1f days (%d rows)",
        member.name,
        target_date,
        plan.total_granted,
        len(plan.grants),
        plan.total_expired,
        len(plan.expires),
    )


async def run_daily_update(
    session: AsyncSession,
    target_date: date | None = None,
) -> DailyUpdateResult:
    """Apply due grants and expiries for every active member as of ``target_date``.

    Args:
        session: Database session. Committed or rolled back once per member.
        target_date: Date to evaluate (defaults to today).
    """
    if target_date is None:
        target_date = date.today()

    result = DailyUpdateResult(target_date=target_date)
    members = await get_member_directory().list_active_members()
    logger.info("Daily update for %s: %d active members", target_date, len(members))

    for member in members:
        result.processed += 1
        try:
            await _process_member(session, member, target_date, result)
        except DuplicateTransaction:
            # Another run wrote the same rows first.
            await session.rollback()
            result.skipped += 1
        except AppError as exc:
            await session.rollback()
            logger.warning("Daily update failed for member=%s: %s", member.id, exc.message)
            result.errors.append(f"{member.name}: {exc.message}")
        except Exception as exc:
            await session.rollback()
            logger.exception("Daily update failed for member=%s", member.id)
            result.errors.append(f"{member.name}: {exc}")

    logger.info(
        "Daily update complete for %s: processed=%d granted=%.1f expired=%.1f skipped=%d errors=%d",
        target_date,
        result.processed,
        result.granted,
        result.expired,
        result.skipped,
        len(result.errors),
    )
    return result
