# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel, Field


class UpsertMemberRequest(BaseModel):
    """Request body for upserting a member in the stub directory."""

    name: str = Field(min_length=1, max_length=255)
    team_name: str = Field(default="", max_length=255)
    join_date: date
    status: str = Field(default="active", pattern=r"^(active|leave_of_absence|resigned)$")


class MemberResponse(BaseModel):
    """Response schema for a member."""

    id: uuid.UUID
    name: str
    team_name: str
    join_date: date
    status: str


class MemberListResponse(BaseModel):
    """List of members."""

    items: list[MemberResponse]
    total: int
