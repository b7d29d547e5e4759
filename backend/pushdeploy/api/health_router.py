"""
Health Router
"""

from fastapi import APIRouter

from pushdeploy.core.deployer import get_routing_table

health_router = APIRouter(tags=["health"])


@health_router.get("/health", summary="Liveness check")
async def health():
    return {
        "status": "healthy",
        "service": "pushdeploy",
        "routes": len(get_routing_table().routes()),
    }
