"""Orchestration of verification, gating and disease classification."""

from io import BytesIO
from pathlib import Path
import threading
from unittest.mock import MagicMock, patch

import pytest
from fastapi import BackgroundTasks
from starlette.datastructures import Headers, UploadFile

from src.api.core.exceptions.base import (
    ConfigError,
    ModelError,
    ServerError,
    ServiceError,
    ValidationError,
)
from src.api.core.messages import MessageCode
from src.api.detection.schemas import Prediction
from src.api.detection.validators import validate_image_upload
from src.modules.detection.application.use_cases import (
    detect_disease_from_upload,
    passes_verification,
    rank_by_confidence,
)
from src.modules.detection.audit import DetectionAuditEntry, DetectionAuditLogger
from src.modules.detection.infrastructure.inference_client import GatewayError
from src.utils.settings.inference import InferenceSettings
from src.utils.settings.upload import UploadSettings
from tests.utils.assertions import assert_calamansi_exception
from tests.utils.inference import DISEASE_URL, VERIFIER_URL, FakeInferenceClient


def make_upload(data: bytes, content_type: str = "image/jpeg") -> UploadFile:
    return UploadFile(
        file=BytesIO(data),
        filename="leaf.jpg",
        headers=Headers({"content-type": content_type}),
    )


async def run_detection(
    fake_inference: FakeInferenceClient,
    data: bytes,
    background_tasks: BackgroundTasks | None = None,
    inference_settings: InferenceSettings | None = None,
):
    return await detect_disease_from_upload(
        upload=make_upload(data),
        client_ip="203.0.113.7",
        gateway=fake_inference,
        inference_settings=inference_settings or InferenceSettings(),
        upload_settings=UploadSettings(),
        audit_logger=DetectionAuditLogger(None),
        background_tasks=background_tasks or BackgroundTasks(),
    )


def test_rank_by_confidence_is_stable():
    predictions = [
        Prediction(label="a", confidence=0.4),
        Prediction(label="b", confidence=0.9),
        Prediction(label="c", confidence=0.4),
    ]

    assert [p.label for p in rank_by_confidence(predictions)] == ["b", "a", "c"]


@pytest.mark.parametrize(
    "label, confidence, expected",
    [
        ("calamansi", 0.5, True),
        ("Calamansi Leaf", 0.92, True),
        ("CALAMANSI", 0.51, True),
        ("calamansi", 0.49, False),
        ("calamansi", 0.4999, False),
        ("tomato", 0.99, False),
        ("calamondin", 0.99, False),
    ],
)
def test_verification_gate(label, confidence, expected):
    prediction = Prediction(label=label, confidence=confidence)

    assert passes_verification(prediction, "calamansi", 0.5) is expected


@pytest.mark.asyncio
async def test_successful_detection(fake_inference, jpeg_image, upload_dir: Path):
    background_tasks = BackgroundTasks()

    result = await run_detection(fake_inference, jpeg_image, background_tasks)

    assert fake_inference.calls == [VERIFIER_URL, DISEASE_URL]
    assert result.verification.label == "Calamansi"
    assert result.verification.confidence_percent == 92
    assert result.primary.label == "black spot"
    assert result.primary.confidence_percent == 81
    assert result.primary.geometry.center_x == 320
    assert [p.label for p in result.all_predictions] == ["black spot", "canker"]
    assert result.image_data_uri.startswith("data:image/jpeg;base64,")
    assert (result.image_width, result.image_height) == (640, 640)
    assert list(upload_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_audit_entry_is_scheduled_not_awaited(fake_inference, jpeg_image):
    background_tasks = BackgroundTasks()

    await run_detection(fake_inference, jpeg_image, background_tasks)

    assert len(background_tasks.tasks) == 1
    entry: DetectionAuditEntry = background_tasks.tasks[0].args[0]
    assert entry.ip_address == "203.0.113.7"
    assert entry.disease_label == "black spot"
    assert entry.disease_confidence == 81
    assert entry.verification_confidence == 92
    assert entry.image_type == "image/jpeg"
    assert entry.image_size == len(jpeg_image)


@pytest.mark.asyncio
async def test_verifier_order_does_not_matter(fake_inference, jpeg_image):
    fake_inference.responses[VERIFIER_URL] = {
        "predictions": [
            {"class": "lemon", "confidence": 0.1},
            {"class": "calamansi", "confidence": 0.8},
        ]
    }

    result = await run_detection(fake_inference, jpeg_image)

    assert result.verification.label == "calamansi"
    assert result.verification.confidence_percent == 80


@pytest.mark.asyncio
async def test_primary_is_highest_confidence_disease(fake_inference, jpeg_image):
    fake_inference.responses[DISEASE_URL] = {
        "predictions": [
            {"class": "scab", "confidence": 0.2},
            {"class": "greening", "confidence": 0.7},
        ]
    }

    result = await run_detection(fake_inference, jpeg_image)

    assert result.primary.label == "greening"
    assert [p.label for p in result.all_predictions] == ["scab", "greening"]


@pytest.mark.asyncio
async def test_other_subject_is_rejected_before_disease_call(
    fake_inference, jpeg_image, upload_dir: Path
):
    fake_inference.responses[VERIFIER_URL] = {
        "predictions": [{"class": "tomato", "confidence": 0.95}]
    }

    with pytest.raises(ValidationError) as exc_info:
        await run_detection(fake_inference, jpeg_image)

    assert_calamansi_exception(exc_info.value, MessageCode.NOT_EXPECTED_SUBJECT, 400)
    assert exc_info.value.details == {"detected": "tomato", "confidence": 95}
    assert fake_inference.calls == [VERIFIER_URL]
    assert list(upload_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_low_confidence_subject_is_rejected(fake_inference, jpeg_image):
    fake_inference.responses[VERIFIER_URL] = {
        "top": "calamansi",
        "confidence": 0.49,
    }

    with pytest.raises(ValidationError) as exc_info:
        await run_detection(fake_inference, jpeg_image)

    assert exc_info.value.details["confidence"] == 49
    assert fake_inference.calls == [VERIFIER_URL]


@pytest.mark.asyncio
async def test_empty_verification_is_model_error(fake_inference, jpeg_image):
    fake_inference.responses[VERIFIER_URL] = {"predictions": []}

    with pytest.raises(ModelError) as exc_info:
        await run_detection(fake_inference, jpeg_image)

    assert_calamansi_exception(
        exc_info.value, MessageCode.VERIFICATION_NO_PREDICTIONS, 500
    )


@pytest.mark.asyncio
async def test_empty_disease_result_is_model_error(
    fake_inference, jpeg_image, upload_dir: Path
):
    fake_inference.responses[DISEASE_URL] = {}

    with pytest.raises(ModelError) as exc_info:
        await run_detection(fake_inference, jpeg_image)

    assert exc_info.value.message_code == MessageCode.DISEASE_NO_PREDICTIONS
    assert list(upload_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_gateway_failure_maps_to_service_error(fake_inference, jpeg_image):
    fake_inference.responses[DISEASE_URL] = GatewayError(503, "unavailable")

    with pytest.raises(ServiceError) as exc_info:
        await run_detection(fake_inference, jpeg_image)

    assert_calamansi_exception(exc_info.value, MessageCode.EXTERNAL_SERVICE_ERROR, 502)
    assert exc_info.value.details == {"upstream_status": 503}


@pytest.mark.asyncio
async def test_unexpected_failure_maps_to_server_error(
    fake_inference, jpeg_image, upload_dir: Path
):
    fake_inference.responses[VERIFIER_URL] = RuntimeError("boom")

    with pytest.raises(ServerError) as exc_info:
        await run_detection(fake_inference, jpeg_image)

    assert exc_info.value.message_code == MessageCode.INTERNAL_ERROR
    assert exc_info.value.details == {"details": "boom"}
    assert list(upload_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_missing_configuration_is_config_error(fake_inference, jpeg_image):
    settings = InferenceSettings(ROBOFLOW_API_KEY=None)

    with pytest.raises(ConfigError) as exc_info:
        await run_detection(fake_inference, jpeg_image, inference_settings=settings)

    assert_calamansi_exception(exc_info.value, MessageCode.CONFIG_ERROR, 500)
    assert fake_inference.calls == []


@pytest.mark.asyncio
async def test_invalid_upload_never_reaches_models(
    fake_inference, image_factory, upload_dir: Path
):
    with pytest.raises(ValidationError):
        await run_detection(fake_inference, image_factory((50, 50)))

    assert fake_inference.calls == []
    assert list(upload_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_missing_dimensions_fall_back_to_default(fake_inference, jpeg_image):
    fake_inference.responses[DISEASE_URL] = {
        "predictions": [{"class": "canker", "confidence": 0.6}]
    }

    result = await run_detection(fake_inference, jpeg_image)

    assert (result.image_width, result.image_height) == (640, 640)
    assert result.primary.geometry is None


@pytest.mark.asyncio
async def test_audit_failure_does_not_affect_result(fake_inference, jpeg_image):
    session_factory = MagicMock(side_effect=RuntimeError("database down"))
    audit_logger = DetectionAuditLogger(session_factory)
    background_tasks = BackgroundTasks()

    result = await detect_disease_from_upload(
        upload=make_upload(jpeg_image),
        client_ip="203.0.113.7",
        gateway=fake_inference,
        inference_settings=InferenceSettings(),
        upload_settings=UploadSettings(),
        audit_logger=audit_logger,
        background_tasks=background_tasks,
    )
    await background_tasks()

    assert result.primary.label == "black spot"


@pytest.mark.asyncio
async def test_upload_validation_runs_off_the_event_loop_thread(
    fake_inference, jpeg_image
):
    loop_thread = threading.get_ident()
    validation_threads = []

    def recording_validator(image, settings):
        validation_threads.append(threading.get_ident())
        return validate_image_upload(image, settings)

    with patch(
        "src.modules.detection.application.use_cases.validate_image_upload",
        side_effect=recording_validator,
    ):
        await run_detection(fake_inference, jpeg_image)

    assert len(validation_threads) == 1
    assert validation_threads[0] != loop_thread
