# ruff: noqa: TC001, TC003
"""Endpoints called by the leave approval workflow."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, status

from annual_leave.api.deps import AdminDep
from annual_leave.db import SessionDep
from annual_leave.schemas.usage import RecordUsageRequest, ReversalResult, ReverseUsageRequest, UsageResult
from annual_leave.services import fifo

router = APIRouter(prefix="/usages", tags=["usage"])


@router.post("", response_model=UsageResult, status_code=status.HTTP_201_CREATED)
async def record_usage(
    payload: RecordUsageRequest,
    session: SessionDep,
    auth: AdminDep,
) -> UsageResult:
    """Deduct an approved leave request from the member's grants."""
    return await fifo.record_usage(
        session,
        member_id=payload.member_id,
        member_name=payload.member_name,
        leave_type=payload.leave_type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        total_days=payload.total_days,
        request_id=payload.request_id,
        created_by=auth.user_id,
    )


@router.post("/{request_id}/reverse", response_model=ReversalResult)
async def reverse_usage(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
    payload: ReverseUsageRequest | None = None,
) -> ReversalResult:
    """Restore the days used by a cancelled leave request."""
    reason = payload.reason if payload is not None else ""
    return await fifo.reverse_usage(session, request_id, auth.user_id, reason)
