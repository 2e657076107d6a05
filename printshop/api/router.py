# printshop/api/router.py
from fastapi import APIRouter
from printshop.api import (
    routes_orders,
    routes_invoices,
    routes_service_jobs,
    routes_quotations,
    routes_pricing,
    routes_approvals,
)

api_router = APIRouter()

api_router.include_router(routes_orders.router)
api_router.include_router(routes_invoices.router)
api_router.include_router(routes_service_jobs.router)
api_router.include_router(routes_quotations.router)
api_router.include_router(routes_pricing.router)
api_router.include_router(routes_approvals.router)
