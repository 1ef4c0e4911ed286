# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel

from annual_leave.models.enums import TenurePhase, TransactionType


class DailyUpdateResponse(BaseModel):
    """Response from the daily update trigger endpoint."""

    target_date: date
    processed: int
    granted: float
    expired: float
    skipped: int
    errors: list[str]


class PendingTransactionResponse(BaseModel):
    """A grant or expire row the policy engine would write."""

    transaction_type: TransactionType
    amount: float
    grant_date: date
    expire_date: date
    reference_id: uuid.UUID | None
    idempotency_key: str
    reason: str


class DuePlanResponse(BaseModel):
    """Preview of what the daily update would write for a member."""

    member_id: uuid.UUID
    as_of: date
    phase: TenurePhase
    service_year: int
    grants: list[PendingTransactionResponse]
    expires: list[PendingTransactionResponse]
