"""Client for the hosted image-classification models."""

import asyncio
import logging

import aiohttp
from pydantic import ValidationError

from src.api.detection.schemas import PredictionSet
from src.modules.detection.infrastructure.responses import parse_prediction_set
from src.utils.settings.inference import InferenceSettings


logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """An inference endpoint could not be used.

    ``status`` is the upstream HTTP status, or None when no response was
    received (connection failure, timeout, unreadable body).
    """

    def __init__(self, status: int | None, body: str):
        self.status = status
        self.body = body
        super().__init__(f"Inference API error ({status}): {body}")


class InferenceClient:
    """Client for posting base64 images to classification endpoints."""

    def __init__(self, timeout: int = 30):
        self.timeout = timeout

    async def classify(
        self, image_base64: str, endpoint_url: str, api_key: str
    ) -> PredictionSet:
        """Send a base64 image to one model endpoint and normalize the answer."""
        async with aiohttp.ClientSession() as session:
            try:
                async with session.post(
                    endpoint_url,
                    params={"api_key": api_key},
                    data=image_base64,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status < 200 or response.status >= 300:
                        body = await response.text()
                        logger.error(
                            f"Inference API returned {response.status}: {body[:500]}"
                        )
                        raise GatewayError(response.status, body)
                    payload = await response.json(content_type=None)
            except asyncio.TimeoutError:
                logger.error(f"Inference request timed out after {self.timeout}s")
                raise GatewayError(None, f"timed out after {self.timeout}s")
            except aiohttp.ClientError as e:
                logger.error(f"Inference request failed: {e}")
                raise GatewayError(None, str(e))
            except ValueError as e:
                # Body was not JSON
                logger.error(f"Inference API returned unreadable body: {e}")
                raise GatewayError(None, "response body is not valid JSON")

        if not isinstance(payload, dict):
            raise GatewayError(None, "response body is not a JSON object")

        try:
            return parse_prediction_set(payload)
        except (ValidationError, TypeError, ValueError) as e:
            logger.error(f"Inference API returned malformed predictions: {e}")
            raise GatewayError(None, "malformed predictions in response")


async def get_inference_client() -> InferenceClient:
    """Get inference client for dependency injection."""
    return InferenceClient(timeout=InferenceSettings().INFERENCE_TIMEOUT)
