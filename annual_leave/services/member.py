# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class MemberInfo(BaseModel):
    """Member metadata from the HR member directory."""

    id: uuid.UUID
    name: str
    team_name: str = ""
    join_date: date
    status: str = "active"  # "active", "leave_of_absence" or "resigned"

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@runtime_checkable
class MemberDirectory(Protocol):
    """Read-only view of the member directory."""

    async def get_member(self, member_id: uuid.UUID) -> MemberInfo | None:
        """Fetch member metadata. Returns None if not found."""
        ...

    async def list_active_members(self) -> list[MemberInfo]:
        """List members currently employed, ordered by name."""
        ...


class InMemoryMemberDirectory:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._members: dict[uuid.UUID, MemberInfo] = {}

    def seed(self, member: MemberInfo) -> None:
        """Seed a member for testing."""
        self._members[member.id] = member

    async def get_member(self, member_id: uuid.UUID) -> MemberInfo | None:
        return self._members.get(member_id)

    async def list_active_members(self) -> list[MemberInfo]:
        return sorted((m for m in self._members.values() if m.is_active), key=lambda m: m.name)


_member_directory: MemberDirectory = InMemoryMemberDirectory()


def get_member_directory() -> MemberDirectory:
    """FastAPI dependency for the member directory."""
    return _member_directory


def set_member_directory(directory: MemberDirectory) -> None:
    """Override the directory (for testing or production wiring)."""
    global _member_directory
    _member_directory = directory
