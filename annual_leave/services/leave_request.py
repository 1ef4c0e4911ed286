# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class LeaveRequestInfo(BaseModel):
    """An approved leave request as seen by the approval workflow."""

    id: uuid.UUID
    member_id: uuid.UUID
    member_name: str = ""
    leave_type: str = "Annual leave"
    start_date: date
    end_date: date
    total_days: float


@runtime_checkable
class LeaveRequestDirectory(Protocol):
    """Lookup of leave requests owned by the approval workflow."""

    async def get_request(self, request_id: uuid.UUID) -> LeaveRequestInfo | None:
        """Fetch a leave request. Returns None if not found."""
        ...


class InMemoryLeaveRequestDirectory:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._requests: dict[uuid.UUID, LeaveRequestInfo] = {}

    def seed(self, request: LeaveRequestInfo) -> None:
        """Seed a leave request for testing."""
        self._requests[request.id] = request

    async def get_request(self, request_id: uuid.UUID) -> LeaveRequestInfo | None:
        return self._requests.get(request_id)


_leave_request_directory: LeaveRequestDirectory = InMemoryLeaveRequestDirectory()


def get_leave_request_directory() -> LeaveRequestDirectory:
    """FastAPI dependency for the leave request directory."""
    return _leave_request_directory


def set_leave_request_directory(directory: LeaveRequestDirectory) -> None:
    """Override the directory (for testing or production wiring)."""
    global _leave_request_directory
    _leave_request_directory = directory
