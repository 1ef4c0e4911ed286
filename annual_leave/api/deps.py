# ruff: noqa: B008
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, status

from annual_leave.exceptions import AppError
from annual_leave.schemas.auth import AuthContext


async def get_auth_context(
    x_user_id: str = Header(min_length=1),
    x_role: str = Header(default="member"),
) -> AuthContext:
    """Extract the caller from headers set by the upstream session layer."""
    return AuthContext(user_id=x_user_id, role=x_role)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_admin(
    auth: AuthDep,
) -> AuthContext:
    """Require admin role for the request."""
    if not auth.is_admin:
        raise AppError("Admin access required", status_code=status.HTTP_403_FORBIDDEN)
    return auth


AdminDep = Annotated[AuthContext, Depends(require_admin)]
