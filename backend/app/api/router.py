from fastapi import APIRouter

from app.api.audit import audit_router
from app.api.balances import balances_router, employee_balance_router
from app.api.policies import router as policies_router
from app.api.reports import reports_router
from app.api.requests import requests_router

api_router = APIRouter()
api_router.include_router(requests_router)
api_router.include_router(balances_router)
api_router.include_router(employee_balance_router)
api_router.include_router(policies_router)
api_router.include_router(audit_router)
api_router.include_router(reports_router)
