"""Health check endpoints for debugging and monitoring."""

from fastapi import APIRouter, Request

from src.api.core.dependencies import InferenceSettingsDep
from src.modules.health.service import HealthService, OverallHealthStatus
from src.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check(
    request: Request, inference_settings: InferenceSettingsDep
) -> OverallHealthStatus:
    """Health check for every configured collaborator."""
    state = request.app.state
    health_service = HealthService(
        session_factory=getattr(state, "session_factory", None),
        redis_client=getattr(state, "redis_client", None),
        rate_limiter=getattr(state, "rate_limiter", None),
        inference_settings=inference_settings,
    )
    return await health_service.run_all_checks()


@router.get("/liveness")
async def liveness_check():
    """Simple liveness check - indicates if service is running."""
    return {"status": "alive", "service": "calamansi-detect-api"}
