import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel

from annual_leave.config import get_settings
from annual_leave.db import SessionDep
from annual_leave.services.policy import find_active_policy

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    version: str
    environment: str
    # None when the ledger store could not be queried.
    active_policy: bool | None = None


@router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep) -> HealthResponse:
    """Report ledger store reachability and whether grants can be issued.

    The daily update cannot grant anything until some policy is active, so
    a reachable store without one is still ``ok`` but flagged.
    """
    settings = get_settings()
    response = HealthResponse(status="ok", version=settings.app_version, environment=settings.environment)

    try:
        response.active_policy = await find_active_policy(session) is not None
    except Exception:
        logger.exception("Health check: ledger store query failed")
        response.status = "degraded"

    if response.active_policy is False:
        logger.warning("Health check: no active annual leave policy")
    return response
