from __future__ import annotations

import sqlalchemy as sa
from sqlmodel import Field

from annual_leave.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase


class AnnualLeavePolicy(UUIDBase, TimestampMixin, UpdatedAtMixin, table=True):
    """Tenure-based grant rules. Exactly one row is active at a time."""

    __tablename__ = "annual_leave_policies"
    __table_args__ = (sa.Index("ix_policy_active", "is_active"),)

    policy_name: str = Field(max_length=255)
    description: str = Field(default="", max_length=1000)
    is_active: bool = Field(default=False, sa_column_kwargs={"server_default": sa.false()})

    # First year: monthly grants
    first_year_monthly_grant: float = 1
    first_year_max_days: float = 11

    # From the first anniversary on: one grant per year
    base_annual_days: float = 15
    increment_years: int = 2
    increment_days: float = 1
    max_annual_days: float = 25

    expire_after_months: int = 12
