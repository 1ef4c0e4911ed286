# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

# ---------------------------------------------------------------------------
# Rules passed to the policy engine
# ---------------------------------------------------------------------------


class PolicyRules(BaseModel):
    """The numeric rules of a policy, detached from its database row."""

    model_config = ConfigDict(from_attributes=True)

    first_year_monthly_grant: float = Field(default=1, ge=0)
    first_year_max_days: float = Field(default=11, ge=0)
    base_annual_days: float = Field(default=15, ge=0)
    increment_years: int = Field(default=2, ge=1)
    increment_days: float = Field(default=1, ge=0)
    max_annual_days: float = Field(default=25, ge=0)
    expire_after_months: int = Field(default=12, ge=1)

    @model_validator(mode="after")
    def _validate_cap(self) -> Self:
        if self.max_annual_days < self.base_annual_days:
            msg = "max_annual_days must be >= base_annual_days"
            raise ValueError(msg)
        return self


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreatePolicyRequest(PolicyRules):
    """Request body for creating a policy."""

    policy_name: str = Field(min_length=1, max_length=255)
    description: str = Field(default="", max_length=1000)
    is_active: bool = False


class UpdatePolicyRequest(BaseModel):
    """Request body for editing a policy. Omitted fields are left unchanged."""

    policy_name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    first_year_monthly_grant: float | None = Field(default=None, ge=0)
    first_year_max_days: float | None = Field(default=None, ge=0)
    base_annual_days: float | None = Field(default=None, ge=0)
    increment_years: int | None = Field(default=None, ge=1)
    increment_days: float | None = Field(default=None, ge=0)
    max_annual_days: float | None = Field(default=None, ge=0)
    expire_after_months: int | None = Field(default=None, ge=1)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class PolicyResponse(BaseModel):
    """A policy with its rules."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    policy_name: str
    description: str
    first_year_monthly_grant: float
    first_year_max_days: float
    base_annual_days: float
    increment_years: int
    increment_days: float
    max_annual_days: float
    expire_after_months: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class PolicyListResponse(BaseModel):
    """List of policies."""

    items: list[PolicyResponse]
    total: int
