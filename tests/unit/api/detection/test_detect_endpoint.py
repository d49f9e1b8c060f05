"""POST /api/detect end to end, with the hosted models replaced in-process."""

from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi import status
from httpx import AsyncClient

from src.api.core.messages import ErrorType, MessageCode
from src.modules.detection.infrastructure.inference_client import GatewayError
from tests.utils.assertions import assert_error_response, assert_validation_error
from tests.utils.inference import DISEASE_URL, VERIFIER_URL

DETECT_URL = "/api/detect"


def image_files(data: bytes, content_type: str = "image/jpeg", name="leaf.jpg"):
    return {"image": (name, data, content_type)}


@pytest.fixture
def paused_rate_limit(monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_PAUSED", "true")


@pytest.mark.asyncio
async def test_detect_success(
    public_client: AsyncClient, fake_inference, jpeg_image, upload_dir: Path
):
    response = await public_client.post(DETECT_URL, files=image_files(jpeg_image))

    assert response.status_code == status.HTTP_200_OK, response.text
    data = response.json()
    assert data["verification"] == {"label": "Calamansi", "confidencePercent": 92}
    assert data["primary"]["label"] == "black spot"
    assert data["primary"]["confidencePercent"] == 81
    assert data["primary"]["geometry"] == {
        "centerX": 320.0,
        "centerY": 320.0,
        "width": 100.0,
        "height": 100.0,
    }
    assert len(data["allPredictions"]) == 2
    assert data["imageDataUri"].startswith("data:image/jpeg;base64,")
    assert (data["imageWidth"], data["imageHeight"]) == (640, 640)
    assert datetime.fromisoformat(data["timestamp"]).tzinfo is not None

    assert fake_inference.calls == [VERIFIER_URL, DISEASE_URL]
    assert response.headers["X-RateLimit-Limit"] == "5"
    assert response.headers["X-RateLimit-Remaining"] == "4"
    assert list(upload_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_detect_rejects_other_plants_without_disease_call(
    public_client: AsyncClient, fake_inference, jpeg_image, upload_dir: Path
):
    fake_inference.responses[VERIFIER_URL] = {
        "predictions": [{"class": "tomato", "confidence": 0.95}]
    }

    response = await public_client.post(DETECT_URL, files=image_files(jpeg_image))

    body = assert_validation_error(response, MessageCode.NOT_EXPECTED_SUBJECT)
    assert body["detected"] == "tomato"
    assert body["confidence"] == 95
    assert fake_inference.calls == [VERIFIER_URL]
    assert list(upload_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_verification_just_below_threshold_is_rejected(
    public_client: AsyncClient, fake_inference, jpeg_image
):
    fake_inference.responses[VERIFIER_URL] = {
        "predictions": [{"class": "calamansi", "confidence": 0.4999}]
    }

    response = await public_client.post(DETECT_URL, files=image_files(jpeg_image))

    body = assert_validation_error(response, MessageCode.NOT_EXPECTED_SUBJECT)
    assert body["detected"] == "calamansi"
    assert body["confidence"] == 50
    assert fake_inference.calls == [VERIFIER_URL]


@pytest.mark.asyncio
async def test_verification_exactly_at_threshold_passes(
    public_client: AsyncClient, fake_inference, jpeg_image
):
    fake_inference.responses[VERIFIER_URL] = {
        "predictions": [{"class": "calamansi", "confidence": 0.5}]
    }

    response = await public_client.post(DETECT_URL, files=image_files(jpeg_image))

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["verification"]["confidencePercent"] == 50
    assert fake_inference.calls == [VERIFIER_URL, DISEASE_URL]


@pytest.mark.asyncio
async def test_sixth_request_in_window_is_rate_limited(
    public_client: AsyncClient, fake_inference, jpeg_image
):
    for _ in range(5):
        response = await public_client.post(DETECT_URL, files=image_files(jpeg_image))
        assert response.status_code == status.HTTP_200_OK

    response = await public_client.post(DETECT_URL, files=image_files(jpeg_image))

    body = assert_error_response(
        response,
        ErrorType.RATE_LIMIT_ERROR,
        status.HTTP_429_TOO_MANY_REQUESTS,
        MessageCode.RATE_LIMIT_EXCEEDED,
    )
    reset_time = datetime.fromisoformat(body["resetTime"])
    assert reset_time >= datetime.now(timezone.utc)
    assert response.headers["X-RateLimit-Remaining"] == "0"
    assert int(response.headers["Retry-After"]) > 0
    assert len(fake_inference.calls) == 10


@pytest.mark.asyncio
async def test_invalid_requests_count_against_quota(public_client: AsyncClient):
    for _ in range(5):
        response = await public_client.post(DETECT_URL, data={"note": "no file"})
        assert_validation_error(response, MessageCode.NO_IMAGE_PROVIDED)

    response = await public_client.post(DETECT_URL, data={"note": "no file"})

    assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS


@pytest.mark.asyncio
async def test_clients_behind_proxy_have_separate_quotas(
    public_client: AsyncClient, jpeg_image
):
    for _ in range(5):
        await public_client.post(
            DETECT_URL,
            files=image_files(jpeg_image),
            headers={"X-Forwarded-For": "198.51.100.1, 10.0.0.1"},
        )

    blocked = await public_client.post(
        DETECT_URL,
        files=image_files(jpeg_image),
        headers={"X-Forwarded-For": "198.51.100.1"},
    )
    other = await public_client.post(
        DETECT_URL,
        files=image_files(jpeg_image),
        headers={"X-Forwarded-For": "198.51.100.2"},
    )

    assert blocked.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert other.status_code == status.HTTP_200_OK


@pytest.mark.asyncio
async def test_paused_rate_limit_never_rejects(
    paused_rate_limit, public_client: AsyncClient, jpeg_image
):
    for _ in range(7):
        response = await public_client.post(DETECT_URL, files=image_files(jpeg_image))
        assert response.status_code == status.HTTP_200_OK
        assert "X-RateLimit-Remaining" not in response.headers


@pytest.mark.asyncio
async def test_missing_image_field(public_client: AsyncClient, jpeg_image):
    response = await public_client.post(
        DETECT_URL, files={"photo": ("leaf.jpg", jpeg_image, "image/jpeg")}
    )

    assert_validation_error(response, MessageCode.NO_IMAGE_PROVIDED)


@pytest.mark.asyncio
async def test_wrong_file_type(
    public_client: AsyncClient, fake_inference, upload_dir: Path
):
    response = await public_client.post(
        DETECT_URL, files=image_files(b"GIF89a....", "image/gif", "leaf.gif")
    )

    assert_validation_error(response, MessageCode.INVALID_FILE_TYPE)
    assert fake_inference.calls == []
    assert list(upload_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_file_too_large(
    public_client: AsyncClient, monkeypatch, image_factory, upload_dir: Path
):
    monkeypatch.setenv("MAX_FILE_SIZE", "100")

    response = await public_client.post(DETECT_URL, files=image_files(image_factory()))

    assert_validation_error(response, MessageCode.FILE_TOO_LARGE)
    assert list(upload_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_image_below_minimum_dimensions(
    public_client: AsyncClient, image_factory
):
    response = await public_client.post(
        DETECT_URL, files=image_files(image_factory((50, 50)))
    )

    body = assert_validation_error(response, MessageCode.IMAGE_TOO_SMALL)
    assert "50x50" in body["error"]


@pytest.mark.asyncio
async def test_upstream_failure_is_service_error(
    public_client: AsyncClient, fake_inference, jpeg_image, upload_dir: Path
):
    fake_inference.responses[VERIFIER_URL] = GatewayError(None, "timed out")

    response = await public_client.post(DETECT_URL, files=image_files(jpeg_image))

    assert_error_response(
        response,
        ErrorType.SERVICE_ERROR,
        status.HTTP_502_BAD_GATEWAY,
        MessageCode.EXTERNAL_SERVICE_ERROR,
    )
    assert list(upload_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_empty_disease_result_is_model_error(
    public_client: AsyncClient, fake_inference, jpeg_image
):
    fake_inference.responses[DISEASE_URL] = {"predictions": []}

    response = await public_client.post(DETECT_URL, files=image_files(jpeg_image))

    assert_error_response(
        response,
        ErrorType.MODEL_ERROR,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        MessageCode.DISEASE_NO_PREDICTIONS,
    )


@pytest.mark.asyncio
async def test_missing_configuration_is_config_error(
    public_client: AsyncClient, monkeypatch, fake_inference, jpeg_image
):
    monkeypatch.delenv("ROBOFLOW_API_KEY")

    response = await public_client.post(DETECT_URL, files=image_files(jpeg_image))

    assert_error_response(
        response,
        ErrorType.CONFIG_ERROR,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        MessageCode.CONFIG_ERROR,
    )
    assert fake_inference.calls == []


@pytest.mark.asyncio
async def test_unexpected_failure_is_server_error(
    public_client: AsyncClient, fake_inference, jpeg_image, upload_dir: Path
):
    fake_inference.responses[DISEASE_URL] = KeyError("predictions")

    response = await public_client.post(DETECT_URL, files=image_files(jpeg_image))

    body = assert_error_response(
        response,
        ErrorType.SERVER_ERROR,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        MessageCode.INTERNAL_ERROR,
    )
    assert "details" in body
    assert list(upload_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_other_methods_are_not_allowed(public_client: AsyncClient):
    response = await public_client.get(DETECT_URL)

    assert_error_response(
        response,
        ErrorType.METHOD_ERROR,
        status.HTTP_405_METHOD_NOT_ALLOWED,
        MessageCode.METHOD_NOT_ALLOWED,
    )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "origin", ["http://localhost:3000", "https://calamansi-preview.vercel.app"]
)
async def test_cors_reflects_allowed_origins(public_client: AsyncClient, origin):
    response = await public_client.options(
        DETECT_URL,
        headers={"Origin": origin, "Access-Control-Request-Method": "POST"},
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.headers["Access-Control-Allow-Origin"] == origin


@pytest.mark.asyncio
async def test_cors_ignores_unknown_origin(public_client: AsyncClient, jpeg_image):
    response = await public_client.post(
        DETECT_URL,
        files=image_files(jpeg_image),
        headers={"Origin": "https://example.com"},
    )

    assert "Access-Control-Allow-Origin" not in response.headers


@pytest.mark.asyncio
async def test_cors_exposes_rate_limit_headers(public_client: AsyncClient, jpeg_image):
    response = await public_client.post(
        DETECT_URL,
        files=image_files(jpeg_image),
        headers={"Origin": "http://localhost:3000"},
    )

    exposed = response.headers["Access-Control-Expose-Headers"]
    assert "X-RateLimit-Remaining" in exposed
