from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


def now_utc() -> datetime:
    """Return the current UTC time."""
    return datetime.now(UTC)


def utc_timestamp(*, index: bool = False, onupdate: bool = False) -> Any:
    """Timezone-aware timestamp column filled in by both Python and the database."""
    column_kwargs: dict[str, Any] = {"server_default": sa.func.now()}
    if onupdate:
        column_kwargs["onupdate"] = sa.func.now()
    return Field(
        default_factory=now_utc,
        index=index,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs=column_kwargs,
    )


class UUIDBase(SQLModel):
    """Base model with a random UUID primary key."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, sa_type=sa.Uuid)


class TimestampMixin(SQLModel):
    created_at: datetime = utc_timestamp()


class UpdatedAtMixin(SQLModel):
    """Mixin for mutable configuration rows such as policies."""

    updated_at: datetime = utc_timestamp(onupdate=True)
