from fastapi import APIRouter

from leavedesk.api.accruals import accruals_router
from leavedesk.api.admin import admin_router
from leavedesk.api.auth import auth_router
from leavedesk.api.balances import balances_router
from leavedesk.api.holidays import holidays_router
from leavedesk.api.requests import requests_router
from leavedesk.api.team import team_router

api_router = APIRouter()
api_router.include_router(auth_router)
api_router.include_router(requests_router)
api_router.include_router(balances_router)
api_router.include_router(holidays_router)
api_router.include_router(team_router)
api_router.include_router(admin_router)
api_router.include_router(accruals_router)
