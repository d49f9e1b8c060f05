from typing import Annotated

from fastapi import Depends, Request

from src.core.rate_limiting import RateLimiter
from src.modules.detection.audit import DetectionAuditLogger
from src.modules.detection.infrastructure.inference_client import (
    InferenceClient,
    get_inference_client,
)
from src.utils.settings.inference import InferenceSettings
from src.utils.settings.upload import UploadSettings


def get_inference_settings() -> InferenceSettings:
    return InferenceSettings()


def get_upload_settings() -> UploadSettings:
    return UploadSettings()


async def get_rate_limiter(request: Request) -> RateLimiter:
    """Get the application's rate limiter from app state."""
    return request.app.state.rate_limiter


async def get_audit_logger(request: Request) -> DetectionAuditLogger:
    """Get audit logger bound to the app's session factory (None without a database)."""
    return DetectionAuditLogger(getattr(request.app.state, "session_factory", None))


InferenceClientDep = Annotated[InferenceClient, Depends(get_inference_client)]
InferenceSettingsDep = Annotated[InferenceSettings, Depends(get_inference_settings)]
UploadSettingsDep = Annotated[UploadSettings, Depends(get_upload_settings)]
RateLimiterDep = Annotated[RateLimiter, Depends(get_rate_limiter)]
AuditLoggerDep = Annotated[DetectionAuditLogger, Depends(get_audit_logger)]
