# ruff: noqa: B008, TC003
from __future__ import annotations

from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Query

from annual_leave.api.deps import AdminDep
from annual_leave.db import SessionDep
from annual_leave.schemas.daily_update import DailyUpdateResponse
from annual_leave.services.daily_update import run_daily_update

router = APIRouter(prefix="/daily-update", tags=["daily-update"])


@router.post("/trigger", response_model=DailyUpdateResponse)
async def trigger_daily_update(
    session: SessionDep,
    auth: AdminDep,
    target_date: date | None = Query(default=None),
) -> DailyUpdateResponse:
    """Run the daily grant and expiry job for a specific date (admin only).

    Useful for backfills. Re-running for a date that was already processed
    writes nothing.
    """
    result = await run_daily_update(session, target_date)
    return DailyUpdateResponse(**asdict(result))
