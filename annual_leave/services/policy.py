# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from pydantic import ValidationError
from sqlalchemy import func, select, update
from sqlmodel import col

from annual_leave.exceptions import AppError, PolicyNotFound
from annual_leave.models.base import now_utc
from annual_leave.models.enums import AuditAction, AuditEntityType
from annual_leave.models.ledger import LeaveTransaction
from annual_leave.models.policy import AnnualLeavePolicy
from annual_leave.schemas.policy import PolicyListResponse, PolicyResponse, PolicyRules
from annual_leave.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from annual_leave.schemas.auth import AuthContext
    from annual_leave.schemas.policy import CreatePolicyRequest, UpdatePolicyRequest

logger = logging.getLogger(__name__)


def rules_from_policy(policy: AnnualLeavePolicy) -> PolicyRules:
    """Detach the numeric rules from a policy row."""
    return PolicyRules.model_validate(policy)


async def _get_policy_or_404(session: AsyncSession, policy_id: uuid.UUID) -> AnnualLeavePolicy:
    result = await session.execute(select(AnnualLeavePolicy).where(col(AnnualLeavePolicy.id) == policy_id))
    policy = result.scalar_one_or_none()
    if policy is None:
        raise PolicyNotFound(f"Policy {policy_id} not found")
    return policy


async def _deactivate_others(session: AsyncSession, policy_id: uuid.UUID) -> None:
    await session.execute(
        update(AnnualLeavePolicy)
        .where(col(AnnualLeavePolicy.id) != policy_id, col(AnnualLeavePolicy.is_active).is_(True))
        .values(is_active=False)
    )


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def find_active_policy(session: AsyncSession) -> AnnualLeavePolicy | None:
    """Return the active policy, or None when none is configured."""
    result = await session.execute(
        select(AnnualLeavePolicy)
        .where(col(AnnualLeavePolicy.is_active).is_(True))
        .order_by(col(AnnualLeavePolicy.updated_at).desc())
    )
    return result.scalars().first()


async def get_active_policy(session: AsyncSession) -> AnnualLeavePolicy:
    """Return the active policy or raise PolicyNotFound."""
    policy = await find_active_policy(session)
    if policy is None:
        raise PolicyNotFound
    return policy


async def get_policy(session: AsyncSession, policy_id: uuid.UUID) -> PolicyResponse:
    """Fetch a single policy."""
    policy = await _get_policy_or_404(session, policy_id)
    return PolicyResponse.model_validate(policy)


async def list_policies(session: AsyncSession) -> PolicyListResponse:
    """List all policies, the active one first."""
    result = await session.execute(
        select(AnnualLeavePolicy).order_by(
            col(AnnualLeavePolicy.is_active).desc(),
            col(AnnualLeavePolicy.created_at).desc(),
        )
    )
    policies = list(result.scalars().all())
    return PolicyListResponse(
        items=[PolicyResponse.model_validate(p) for p in policies],
        total=len(policies),
    )


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------


async def create_policy(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreatePolicyRequest,
) -> PolicyResponse:
    """Create a policy. Creating it active deactivates every other policy."""
    policy = AnnualLeavePolicy(**payload.model_dump())
    session.add(policy)
    await session.flush()

    if policy.is_active:
        await _deactivate_others(session, policy.id)

    await write_audit_log(
        session,
        actor=auth.user_id,
        entity_type=AuditEntityType.POLICY,
        entity_id=policy.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(policy),
    )

    await session.commit()
    await session.refresh(policy)
    logger.info("Created annual leave policy %s (%s)", policy.policy_name, policy.id)
    return PolicyResponse.model_validate(policy)


async def update_policy(
    session: AsyncSession,
    auth: AuthContext,
    policy_id: uuid.UUID,
    payload: UpdatePolicyRequest,
) -> PolicyResponse:
    """Edit a policy in place. Rows already granted under it are not touched."""
    policy = await _get_policy_or_404(session, policy_id)
    before = model_to_audit_dict(policy)

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(policy, field, value)

    try:
        rules_from_policy(policy)
    except ValidationError as exc:
        await session.rollback()
        raise AppError(f"Invalid policy rules: {exc.errors()[0]['msg']}", status_code=400) from exc

    policy.updated_at = now_utc()
    await session.flush()
    await write_audit_log(
        session,
        actor=auth.user_id,
        entity_type=AuditEntityType.POLICY,
        entity_id=policy.id,
        action=AuditAction.UPDATE,
        before_json=before,
        after_json=model_to_audit_dict(policy),
    )

    await session.commit()
    await session.refresh(policy)
    return PolicyResponse.model_validate(policy)


async def activate_policy(
    session: AsyncSession,
    auth: AuthContext,
    policy_id: uuid.UUID,
) -> PolicyResponse:
    """Make a policy the only active one."""
    policy = await _get_policy_or_404(session, policy_id)
    before = model_to_audit_dict(policy)

    await _deactivate_others(session, policy.id)
    policy.is_active = True
    policy.updated_at = now_utc()
    await session.flush()

    await write_audit_log(
        session,
        actor=auth.user_id,
        entity_type=AuditEntityType.POLICY,
        entity_id=policy.id,
        action=AuditAction.ACTIVATE,
        before_json=before,
        after_json=model_to_audit_dict(policy),
    )

    await session.commit()
    await session.refresh(policy)
    logger.info("Activated annual leave policy %s (%s)", policy.policy_name, policy.id)
    return PolicyResponse.model_validate(policy)


async def delete_policy(
    session: AsyncSession,
    auth: AuthContext,
    policy_id: uuid.UUID,
) -> None:
    """Delete a policy that is neither active nor referenced by the ledger."""
    policy = await _get_policy_or_404(session, policy_id)
    if policy.is_active:
        raise AppError("Cannot delete the active policy", status_code=409)

    count_result = await session.execute(
        select(func.count()).select_from(LeaveTransaction).where(col(LeaveTransaction.policy_id) == policy_id)
    )
    if count_result.scalar_one() > 0:
        raise AppError("Cannot delete a policy referenced by leave transactions", status_code=409)

    before = model_to_audit_dict(policy)
    await session.delete(policy)
    await write_audit_log(
        session,
        actor=auth.user_id,
        entity_type=AuditEntityType.POLICY,
        entity_id=policy_id,
        action=AuditAction.DELETE,
        before_json=before,
    )
    await session.commit()
