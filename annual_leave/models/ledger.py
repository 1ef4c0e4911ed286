# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from annual_leave.models.base import UUIDBase, utc_timestamp
from annual_leave.models.enums import TransactionStatus


class LeaveTransaction(UUIDBase, table=True):
    """Append-only ledger row; the sum of a member's active rows is their balance."""

    __tablename__ = "annual_leave_transactions"
    __table_args__ = (
        sa.Index("ix_leave_txn_member_type", "member_id", "transaction_type"),
        sa.Index("ix_leave_txn_reference", "reference_id"),
        sa.UniqueConstraint("idempotency_key", name="uq_leave_txn_idempotency"),
    )

    member_id: uuid.UUID = Field(index=True)
    member_name: str = Field(default="", max_length=255)
    transaction_type: str = Field(max_length=50)
    amount: float
    reason: str = Field(default="", max_length=1000)
    grant_date: date | None = None
    expire_date: date | None = None
    reference_id: uuid.UUID | None = None
    request_id: uuid.UUID | None = Field(default=None, index=True)
    policy_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("annual_leave_policies.id", ondelete="RESTRICT"), nullable=True
        ),
    )
    idempotency_key: str | None = Field(default=None, max_length=255)
    status: str = Field(
        default=TransactionStatus.ACTIVE,
        max_length=20,
        sa_column_kwargs={"server_default": TransactionStatus.ACTIVE.value},
    )
    created_by: str = Field(max_length=255)
    created_at: datetime = utc_timestamp(index=True)
