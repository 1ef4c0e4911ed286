# ruff: noqa: TC003
"""Development endpoints for the in-memory member directory."""

from __future__ import annotations

import uuid

from fastapi import APIRouter

from annual_leave.api.deps import AdminDep, AuthDep
from annual_leave.exceptions import AppError
from annual_leave.schemas.member import MemberListResponse, MemberResponse, UpsertMemberRequest
from annual_leave.services.member import MemberInfo, get_member_directory

members_router = APIRouter(prefix="/members", tags=["members"])


@members_router.put("/{member_id}", response_model=MemberResponse)
async def upsert_member(
    member_id: uuid.UUID,
    payload: UpsertMemberRequest,
    auth: AdminDep,
) -> MemberResponse:
    """Create or update a member in the stub directory (admin only)."""
    directory = get_member_directory()
    member = MemberInfo(id=member_id, **payload.model_dump())
    directory.seed(member)  # ty: ignore[unresolved-attribute]
    return MemberResponse.model_validate(member.model_dump())


@members_router.get("/{member_id}", response_model=MemberResponse)
async def get_member(
    member_id: uuid.UUID,
    auth: AuthDep,
) -> MemberResponse:
    """Get a member from the directory."""
    member = await get_member_directory().get_member(member_id)
    if member is None:
        raise AppError("Member not found", status_code=404)
    return MemberResponse.model_validate(member.model_dump())


@members_router.get("", response_model=MemberListResponse)
async def list_active_members(
    auth: AuthDep,
) -> MemberListResponse:
    """List members the daily update will process."""
    members = await get_member_directory().list_active_members()
    items = [MemberResponse.model_validate(m.model_dump()) for m in members]
    return MemberListResponse(items=items, total=len(items))
