# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from typing import Self

from pydantic import BaseModel, Field, model_validator

from annual_leave.models.enums import ReversalPath, ReversalStatus


class RecordUsageRequest(BaseModel):
    """Payload sent by the approval workflow when a leave request is approved."""

    member_id: uuid.UUID
    member_name: str = Field(default="", max_length=255)
    leave_type: str = Field(default="Annual leave", min_length=1, max_length=100)
    start_date: date
    end_date: date
    total_days: float = Field(gt=0)
    request_id: uuid.UUID

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end_date < self.start_date:
            msg = "end_date must be >= start_date"
            raise ValueError(msg)
        return self


class UsageAllocation(BaseModel):
    """Days drawn from a single grant."""

    grant_id: uuid.UUID
    days: float
    transaction_id: uuid.UUID | None = None


class UsageResult(BaseModel):
    """Outcome of recording a usage."""

    request_id: uuid.UUID
    total_days: float
    allocations: list[UsageAllocation]
    current_balance: float


class ReverseUsageRequest(BaseModel):
    """Optional body for a reversal."""

    reason: str = Field(default="", max_length=1000)


class ReversalResult(BaseModel):
    """Outcome of reversing a leave request's usage."""

    request_id: uuid.UUID
    status: ReversalStatus
    path: ReversalPath | None = None
    reversed_days: float = 0
    # Restored days closed again because their grant had expired or been cancelled.
    written_off_days: float = 0
    transaction_ids: list[uuid.UUID] = Field(default_factory=list)
    warning: str | None = None
