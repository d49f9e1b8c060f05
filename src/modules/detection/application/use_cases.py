import asyncio
import logging
from datetime import datetime, timezone

from fastapi import BackgroundTasks
from starlette.datastructures import UploadFile

from src.api.core.exceptions.base import (
    CalamansiException,
    ConfigError,
    ModelError,
    ServerError,
    ServiceError,
    ValidationError,
)
from src.api.core.messages import MessageCode
from src.api.detection.schemas import (
    DetectionResult,
    Prediction,
    PredictionSet,
    PrimaryDetection,
    ScoredPrediction,
    VerificationSummary,
)
from src.api.detection.validators import validate_image_upload
from src.modules.detection.audit import DetectionAuditEntry, DetectionAuditLogger
from src.modules.detection.infrastructure.inference_client import (
    GatewayError,
    InferenceClient,
)
from src.modules.detection.infrastructure.responses import to_percent
from src.modules.detection.infrastructure.temp_files import uploaded_file
from src.utils.settings.app import AppSettings
from src.utils.settings.inference import InferenceSettings
from src.utils.settings.upload import UploadSettings

logger = logging.getLogger(__name__)


def rank_by_confidence(predictions: list[Prediction]) -> list[Prediction]:
    """Highest confidence first; ties keep the provider's order."""
    return sorted(predictions, key=lambda p: p.confidence, reverse=True)


def passes_verification(
    prediction: Prediction, expected_subject: str, threshold: float
) -> bool:
    """The label must mention the subject and the raw confidence meet the threshold."""
    return (
        expected_subject.lower() in prediction.label.lower()
        and prediction.confidence >= threshold
    )


def score_predictions(predictions: list[Prediction]) -> list[ScoredPrediction]:
    return [
        ScoredPrediction(
            label=p.label,
            confidence_percent=to_percent(p.confidence),
            geometry=p.geometry,
        )
        for p in predictions
    ]


async def _classify(
    gateway: InferenceClient,
    image_base64: str,
    endpoint_url: str,
    api_key: str,
    model_name: str,
) -> PredictionSet:
    logger.info(f"Calling {model_name} model")
    try:
        return await gateway.classify(image_base64, endpoint_url, api_key)
    except GatewayError as e:
        logger.error(f"{model_name} model unavailable: status={e.status}")
        raise ServiceError(
            MessageCode.EXTERNAL_SERVICE_ERROR,
            details={"upstream_status": e.status},
        )


async def detect_disease_from_upload(
    upload: UploadFile,
    client_ip: str,
    gateway: InferenceClient,
    inference_settings: InferenceSettings,
    upload_settings: UploadSettings,
    audit_logger: DetectionAuditLogger,
    background_tasks: BackgroundTasks,
) -> DetectionResult:
    """
    Verify the subject of an uploaded image, then classify its disease.

    The upload lives in a scratch file for the duration of this call only;
    it is deleted before this function returns or raises.

    Args:
        upload: Multipart image part
        client_ip: Caller address, recorded in the audit log
        gateway: Inference client used for both model calls
        inference_settings: Model endpoints, credential and gate parameters
        upload_settings: Upload validation limits and scratch directory
        audit_logger: Destination of the fire-and-forget audit row
        background_tasks: Where the audit write is scheduled

    Returns:
        DetectionResult ready to serialize
    """
    loop = asyncio.get_running_loop()
    async with uploaded_file(upload, upload_settings.UPLOAD_TMP_DIR) as image:
        # Pillow decoding and file reads run off the event loop
        metadata = await loop.run_in_executor(
            None, validate_image_upload, image, upload_settings
        )

        if not inference_settings.is_configured:
            logger.error("Missing inference configuration")
            raise ConfigError(MessageCode.CONFIG_ERROR)
        api_key = inference_settings.ROBOFLOW_API_KEY.get_secret_value()

        try:
            image_base64 = await loop.run_in_executor(None, image.to_base64)

            # Verification: best prediction, regardless of provider order
            verification = await _classify(
                gateway,
                image_base64,
                inference_settings.ROBOFLOW_MODEL1_URL,
                api_key,
                "verification",
            )
            if verification.is_empty:
                raise ModelError(MessageCode.VERIFICATION_NO_PREDICTIONS)

            best = rank_by_confidence(verification.predictions)[0]
            if not passes_verification(
                best,
                inference_settings.EXPECTED_SUBJECT,
                inference_settings.VERIFICATION_THRESHOLD,
            ):
                logger.info(
                    f"Verification rejected: {best.label} ({best.confidence:.4f})"
                )
                raise ValidationError(
                    MessageCode.NOT_EXPECTED_SUBJECT,
                    details={
                        "detected": best.label,
                        "confidence": to_percent(best.confidence),
                    },
                )

            disease = await _classify(
                gateway,
                image_base64,
                inference_settings.ROBOFLOW_MODEL2_URL,
                api_key,
                "disease",
            )
            if disease.is_empty:
                raise ModelError(MessageCode.DISEASE_NO_PREDICTIONS)

            primary = rank_by_confidence(disease.predictions)[0]
            default_size = inference_settings.DEFAULT_IMAGE_SIZE
            timestamp = datetime.now(timezone.utc)

            result = DetectionResult(
                verification=VerificationSummary(
                    label=best.label,
                    confidence_percent=to_percent(best.confidence),
                ),
                primary=PrimaryDetection(
                    label=primary.label,
                    confidence_percent=to_percent(primary.confidence),
                    geometry=primary.geometry,
                ),
                all_predictions=score_predictions(disease.predictions),
                image_data_uri=image.data_uri(image_base64),
                image_width=disease.image_width or default_size,
                image_height=disease.image_height or default_size,
                timestamp=timestamp.isoformat(),
            )
        except CalamansiException:
            raise
        except Exception as e:
            logger.exception(f"Error detecting disease from uploaded image: {e}")
            # Raw error text never leaves a production deployment
            details = {} if AppSettings().is_production else {"details": str(e)}
            raise ServerError(MessageCode.INTERNAL_ERROR, details=details) from e

    # Runs after the response is sent; failures never reach the client
    background_tasks.add_task(
        audit_logger.log_detection,
        DetectionAuditEntry(
            timestamp=timestamp,
            ip_address=client_ip,
            verification_label=result.verification.label,
            verification_confidence=result.verification.confidence_percent,
            disease_label=result.primary.label,
            disease_confidence=result.primary.confidence_percent,
            image_size=metadata.size_bytes,
            image_type=metadata.content_type,
            image_width=result.image_width,
            image_height=result.image_height,
        ),
    )

    return result
