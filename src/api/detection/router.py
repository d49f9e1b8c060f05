import asyncio

from fastapi import APIRouter, BackgroundTasks, Query, Request, Response

from src.api.core.decorators.rate_limit import rate_limit
from src.api.core.dependencies import (
    AuditLoggerDep,
    InferenceClientDep,
    InferenceSettingsDep,
    UploadSettingsDep,
)
from src.api.core.exceptions.base import ValidationError
from src.api.core.messages import APIResponse, MessageCode
from src.api.detection.schemas import (
    DetectionResult,
    DiseaseInfoResponse,
    DiseaseStatsResponse,
)
from src.api.detection.validators import extract_image_upload
from src.modules.detection.application.use_cases import detect_disease_from_upload
from src.modules.detection.disease_info import get_disease_info
from src.modules.detection.rendering import render_detection
from src.utils.logger import get_client_ip, get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["detection"])


@router.post("/detect", response_model=DetectionResult)
@rate_limit()
async def detect(
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    gateway: InferenceClientDep,
    inference_settings: InferenceSettingsDep,
    upload_settings: UploadSettingsDep,
    audit_logger: AuditLoggerDep,
) -> DetectionResult:
    """
    Verify that the uploaded photo shows a calamansi plant and classify its disease.

    Rate limited per client address. The multipart body is only parsed once
    the quota check has passed.
    """
    async with request.form() as form:
        upload = extract_image_upload(form)
        return await detect_disease_from_upload(
            upload=upload,
            client_ip=get_client_ip(request),
            gateway=gateway,
            inference_settings=inference_settings,
            upload_settings=upload_settings,
            audit_logger=audit_logger,
            background_tasks=background_tasks,
        )


@router.post(
    "/render",
    response_class=Response,
    responses={200: {"content": {"image/png": {}}}},
)
async def render(
    result: DetectionResult,
    width: int | None = Query(default=None, ge=1, le=4096),
    height: int | None = Query(default=None, ge=1, le=4096),
) -> Response:
    """Draw a detection result's boxes on its image, optionally resized."""
    if (width is None) != (height is None):
        raise ValidationError(
            MessageCode.INVALID_INPUT,
            details={"description": "width and height must be given together"},
        )
    display_size = (width, height) if width is not None else None
    loop = asyncio.get_running_loop()
    png = await loop.run_in_executor(None, render_detection, result, display_size)
    return Response(content=png, media_type="image/png")


@router.get("/diseases/{label}", response_model=DiseaseInfoResponse)
async def disease_info(label: str) -> DiseaseInfoResponse:
    """Display name and care advice for a disease label."""
    return APIResponse.success(data=get_disease_info(label))


@router.get("/stats", response_model=DiseaseStatsResponse)
async def detection_stats(
    audit_logger: AuditLoggerDep,
    days: int = Query(default=7, ge=1, le=365),
) -> DiseaseStatsResponse:
    """Detections per disease over the last ``days`` days."""
    return APIResponse.success(data=await audit_logger.get_stats(days))
