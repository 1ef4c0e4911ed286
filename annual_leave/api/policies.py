# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Response, status

from annual_leave.api.deps import AdminDep, AuthDep
from annual_leave.db import SessionDep
from annual_leave.schemas.policy import (
    CreatePolicyRequest,
    PolicyListResponse,
    PolicyResponse,
    UpdatePolicyRequest,
)
from annual_leave.services import policy as policy_service

router = APIRouter(prefix="/policies", tags=["policies"])


@router.post("", response_model=PolicyResponse, status_code=status.HTTP_201_CREATED)
async def create_policy(
    payload: CreatePolicyRequest,
    session: SessionDep,
    auth: AdminDep,
) -> PolicyResponse:
    """Create an annual leave policy."""
    return await policy_service.create_policy(session, auth, payload)


@router.get("", response_model=PolicyListResponse)
async def list_policies(
    session: SessionDep,
    auth: AuthDep,
) -> PolicyListResponse:
    """List all policies, the active one first."""
    return await policy_service.list_policies(session)


@router.get("/{policy_id}", response_model=PolicyResponse)
async def get_policy(
    policy_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> PolicyResponse:
    """Get a single policy."""
    return await policy_service.get_policy(session, policy_id)


@router.patch("/{policy_id}", response_model=PolicyResponse)
async def update_policy(
    policy_id: uuid.UUID,
    payload: UpdatePolicyRequest,
    session: SessionDep,
    auth: AdminDep,
) -> PolicyResponse:
    """Edit a policy's rules. Existing grants are not recalculated."""
    return await policy_service.update_policy(session, auth, policy_id, payload)


@router.post("/{policy_id}/activate", response_model=PolicyResponse)
async def activate_policy(
    policy_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> PolicyResponse:
    """Make this the only active policy."""
    return await policy_service.activate_policy(session, auth, policy_id)


@router.delete("/{policy_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_policy(
    policy_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> Response:
    """Delete an inactive policy that no transaction references."""
    await policy_service.delete_policy(session, auth, policy_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
