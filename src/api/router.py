from fastapi import APIRouter

from src.api.detection.router import router as detection_router
from src.api.health.router import router as health_router

# Public API router
public_router = APIRouter(prefix="/api")
public_router.include_router(detection_router)

# Main API router
api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(public_router)
