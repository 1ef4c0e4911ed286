from fastapi import APIRouter

from annual_leave.api.balances import grant_router, member_router
from annual_leave.api.daily_update import router as daily_update_router
from annual_leave.api.members import members_router
from annual_leave.api.policies import router as policies_router
from annual_leave.api.usage import router as usage_router

api_router = APIRouter()
api_router.include_router(policies_router)
api_router.include_router(members_router)
api_router.include_router(member_router)
api_router.include_router(grant_router)
api_router.include_router(usage_router)
api_router.include_router(daily_update_router)
