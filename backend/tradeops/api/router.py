from fastapi import APIRouter

from tradeops.api.routes import (
    approval_rules,
    approvals,
    bl_orders,
    claims,
    companies,
    documents,
    finance,
    health,
    hedging,
    orders,
    signatures,
    tickets,
)

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(companies.router)
api_router.include_router(tickets.router)
api_router.include_router(approval_rules.router)
api_router.include_router(approvals.router)
api_router.include_router(orders.router)
api_router.include_router(bl_orders.router)
api_router.include_router(hedging.router)
api_router.include_router(finance.router)
api_router.include_router(claims.router)
api_router.include_router(documents.router)
api_router.include_router(signatures.router)
