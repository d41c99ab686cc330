"""API v1 router -- aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from mall.api.v1 import categories, health

api_v1_router = APIRouter()

api_v1_router.include_router(health.router, tags=["health"])
api_v1_router.include_router(categories.router, prefix="/product/categories", tags=["product categories"])
