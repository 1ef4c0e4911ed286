# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from annual_leave.models.base import now_utc


class AnnualLeaveBalance(SQLModel, table=True):
    """Balance projection rebuilt from the ledger; also the per-member lock row."""

    __tablename__ = "annual_leave_balances"

    member_id: uuid.UUID = Field(primary_key=True, sa_type=sa.Uuid)
    member_name: str = Field(default="", max_length=255)
    total_granted: float = Field(default=0, sa_column_kwargs={"server_default": "0"})
    total_used: float = Field(default=0, sa_column_kwargs={"server_default": "0"})
    total_expired: float = Field(default=0, sa_column_kwargs={"server_default": "0"})
    total_adjusted: float = Field(default=0, sa_column_kwargs={"server_default": "0"})
    current_balance: float = Field(default=0, sa_column_kwargs={"server_default": "0"})
    last_updated: datetime = Field(  # type: ignore[call-overload]
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": sa.func.now()},
    )
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})
