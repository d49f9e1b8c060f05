"""Global test configuration and fixtures for the Calamansi Detection API."""

from collections.abc import AsyncGenerator
from io import BytesIO
from pathlib import Path
from typing import Callable

import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from PIL import Image

from src.modules.detection.infrastructure.inference_client import (
    get_inference_client,
)
from tests.utils.inference import (
    DISEASE_URL,
    TEST_API_KEY,
    VERIFIER_URL,
    FakeInferenceClient,
)


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture(autouse=True)
def detection_env(monkeypatch, upload_dir: Path):
    """Deterministic configuration: in-memory quotas, no database, fake models."""
    monkeypatch.setenv("ENVIRONMENT", "DEV")
    monkeypatch.setenv("ROBOFLOW_MODEL1_URL", VERIFIER_URL)
    monkeypatch.setenv("ROBOFLOW_MODEL2_URL", DISEASE_URL)
    monkeypatch.setenv("ROBOFLOW_API_KEY", TEST_API_KEY)
    monkeypatch.setenv("UPLOAD_TMP_DIR", str(upload_dir))
    monkeypatch.setenv("RATE_LIMIT_BACKEND", "memory")
    monkeypatch.setenv("RATE_LIMIT_PAUSED", "false")
    monkeypatch.setenv("RATE_LIMIT_REQUESTS", "5")
    monkeypatch.setenv("RATE_LIMIT_WINDOW_SECONDS", "3600")
    monkeypatch.delenv("DATABASE_URL", raising=False)


@pytest.fixture
def fake_inference() -> FakeInferenceClient:
    return FakeInferenceClient()


@pytest.fixture
def image_factory() -> Callable[..., bytes]:
    """Factory for encoded test images."""

    def create_image(
        size: tuple[int, int] = (200, 200),
        image_format: str = "JPEG",
        color: str = "green",
    ) -> bytes:
        buffer = BytesIO()
        Image.new("RGB", size, color).save(buffer, format=image_format)
        return buffer.getvalue()

    return create_image


@pytest.fixture
def jpeg_image(image_factory) -> bytes:
    return image_factory()


@pytest_asyncio.fixture
async def app(fake_inference: FakeInferenceClient) -> AsyncGenerator[FastAPI, None]:
    """Create FastAPI application with lifespan manager for testing."""
    from src.main import app

    app.dependency_overrides[get_inference_client] = lambda: fake_inference
    async with LifespanManager(app):
        yield app
    app.dependency_overrides.clear()


# HTTP Client Fixtures
@pytest_asyncio.fixture
async def public_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create HTTP client for testing public endpoints."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test-calamansi-api",
    ) as ac:
        yield ac
