"""API v1 router -- aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from dealgalaxy.api.v1 import deals, health, search, tracking

api_v1_router = APIRouter()

api_v1_router.include_router(health.router, tags=["health"])
api_v1_router.include_router(deals.router, prefix="/deals", tags=["deals"])
api_v1_router.include_router(tracking.router, prefix="/tracking", tags=["tracking"])
api_v1_router.include_router(search.router, prefix="/search", tags=["search"])
