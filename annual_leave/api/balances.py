# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query, status

from annual_leave.api.deps import AdminDep, AuthDep
from annual_leave.db import SessionDep
from annual_leave.exceptions import AppError
from annual_leave.schemas.balance import (
    BalanceResponse,
    CancelGrantRequest,
    CreateAdjustmentRequest,
    CreateManualGrantRequest,
    GrantBalanceListResponse,
    LedgerEntryResponse,
    LedgerListResponse,
)
from annual_leave.schemas.daily_update import DuePlanResponse, PendingTransactionResponse
from annual_leave.services import balance as balance_service
from annual_leave.services.member import get_member_directory
from annual_leave.services.policy import get_active_policy, rules_from_policy
from annual_leave.services.policy_engine import compute_due_for_member

member_router = APIRouter(prefix="/members/{member_id}", tags=["balances"])

grant_router = APIRouter(prefix="/grants", tags=["balances"])


@member_router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    member_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> BalanceResponse:
    """Get a member's balance, replayed from the ledger."""
    return await balance_service.get_balance(session, member_id)


@member_router.get("/grants", response_model=GrantBalanceListResponse)
async def list_grants(
    member_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    as_of: date | None = Query(default=None),
) -> GrantBalanceListResponse:
    """Per-grant breakdown of a member's balance."""
    return await balance_service.list_grant_balances(session, member_id, as_of)


@member_router.get("/ledger", response_model=LedgerListResponse)
async def get_ledger(
    member_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LedgerListResponse:
    """Paginated ledger history for a member, newest first."""
    return await balance_service.get_ledger(session, member_id, offset, limit)


@member_router.get("/due", response_model=DuePlanResponse)
async def preview_due(
    member_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
    as_of: date | None = Query(default=None),
) -> DuePlanResponse:
    """Preview the grants and expiries the daily update would write."""
    member = await get_member_directory().get_member(member_id)
    if member is None:
        raise AppError(f"Member {member_id} not found", status_code=status.HTTP_404_NOT_FOUND)
    as_of = as_of or date.today()
    policy = await get_active_policy(session)
    plan = await compute_due_for_member(session, member.id, member.join_date, rules_from_policy(policy), as_of)
    return DuePlanResponse(
        member_id=member.id,
        as_of=as_of,
        phase=plan.phase,
        service_year=plan.service_year,
        grants=[PendingTransactionResponse.model_validate(t, from_attributes=True) for t in plan.grants],
        expires=[PendingTransactionResponse.model_validate(t, from_attributes=True) for t in plan.expires],
    )


@member_router.post("/manual-grants", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_manual_grant(
    member_id: uuid.UUID,
    payload: CreateManualGrantRequest,
    session: SessionDep,
    auth: AdminDep,
) -> LedgerEntryResponse:
    """Grant days outside the policy schedule."""
    return await balance_service.create_manual_grant(session, auth, member_id, payload)


@member_router.post("/adjustments", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_adjustment(
    member_id: uuid.UUID,
    payload: CreateAdjustmentRequest,
    session: SessionDep,
    auth: AdminDep,
) -> LedgerEntryResponse:
    """Record a signed balance correction."""
    return await balance_service.create_adjustment(session, auth, member_id, payload)


@grant_router.post("/{grant_id}/cancel", response_model=LedgerListResponse)
async def cancel_grant(
    grant_id: uuid.UUID,
    payload: CancelGrantRequest,
    session: SessionDep,
    auth: AdminDep,
) -> LedgerListResponse:
    """Cancel all or part of a grant's unused days."""
    return await balance_service.cancel_grant(session, auth, grant_id, payload)
