"""Central API router that aggregates all route modules."""

from fastapi import APIRouter

from cortex_code.api.generate import router as generate_router
from cortex_code.api.health import router as health_router

api_router = APIRouter()

api_router.include_router(health_router, prefix="/health", tags=["health"])
api_router.include_router(generate_router, prefix="/generate", tags=["generate"])
