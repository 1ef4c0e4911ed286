from __future__ import annotations

from pydantic import BaseModel


class AuthContext(BaseModel):
    """Caller identity passed in by the upstream session layer."""

    user_id: str
    role: str = "member"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
