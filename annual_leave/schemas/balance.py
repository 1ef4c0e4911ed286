# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from annual_leave.models.enums import TransactionStatus, TransactionType

# ---------------------------------------------------------------------------
# Balance schemas
# ---------------------------------------------------------------------------


class BalanceSummary(BaseModel):
    """Totals derived from a member's ledger."""

    total_granted: float = 0
    total_used: float = 0
    total_expired: float = 0
    total_adjusted: float = 0
    current_balance: float = 0


class BalanceResponse(BalanceSummary):
    """A member's balance as replayed from the ledger."""

    member_id: uuid.UUID
    member_name: str
    last_updated: datetime | None


class GrantBalance(BaseModel):
    """Remaining days of one grant after linked usage, cancellation and expiry."""

    grant_id: uuid.UUID
    transaction_type: TransactionType
    grant_date: date | None
    expire_date: date | None
    original_amount: float
    used_amount: float = 0
    expired_amount: float = 0
    available_amount: float = 0
    reason: str = ""
    is_expired: bool = False
    is_cancelled: bool = False


class GrantBalanceListResponse(BaseModel):
    """Per-grant breakdown for a member."""

    items: list[GrantBalance]
    total: int


# ---------------------------------------------------------------------------
# Ledger schemas
# ---------------------------------------------------------------------------


class LedgerEntryResponse(BaseModel):
    """A single ledger transaction."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    member_id: uuid.UUID
    member_name: str
    transaction_type: TransactionType
    amount: float
    reason: str
    grant_date: date | None
    expire_date: date | None
    reference_id: uuid.UUID | None
    request_id: uuid.UUID | None
    policy_id: uuid.UUID | None
    status: TransactionStatus
    created_by: str
    created_at: datetime


class LedgerListResponse(BaseModel):
    """Paginated ledger transactions."""

    items: list[LedgerEntryResponse]
    total: int


# ---------------------------------------------------------------------------
# Admin operation requests
# ---------------------------------------------------------------------------


class CreateManualGrantRequest(BaseModel):
    """Request body for granting days outside the policy schedule."""

    member_name: str = Field(default="", max_length=255)
    amount: float = Field(gt=0)
    reason: str = Field(min_length=1, max_length=1000)
    grant_date: date | None = None
    expire_date: date | None = None


class CreateAdjustmentRequest(BaseModel):
    """Request body for a signed balance correction."""

    member_name: str = Field(default="", max_length=255)
    amount: float = Field(description="Signed day count: positive to add, negative to deduct")
    reason: str = Field(min_length=1, max_length=1000)

    @field_validator("amount")
    @classmethod
    def _non_zero(cls, v: float) -> float:
        if v == 0:
            msg = "amount must be non-zero"
            raise ValueError(msg)
        return v


class CancelGrantRequest(BaseModel):
    """Request body for cancelling a grant. Omit days to cancel the whole remainder."""

    days: float | None = Field(default=None, gt=0)
    reason: str = Field(default="", max_length=1000)
