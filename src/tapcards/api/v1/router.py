from fastapi import APIRouter

from src.tapcards.api.v1 import audit, cards, claim, tenants

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(cards.router)
api_router.include_router(claim.router)
api_router.include_router(tenants.router)
api_router.include_router(audit.router)
