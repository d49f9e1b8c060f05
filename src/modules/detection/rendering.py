"""Overlay of a detection result's boxes on its embedded image."""

import base64
import binascii
from dataclasses import dataclass
from io import BytesIO

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from src.api.core.exceptions.base import ValidationError
from src.api.core.messages import MessageCode
from src.api.detection.schemas import DetectionResult, Geometry, ScoredPrediction
from src.modules.detection.disease_info import get_disease_info

PALETTE = (
    "#00FF00",
    "#FF3B30",
    "#007AFF",
    "#FF9500",
    "#AF52DE",
    "#FFCC00",
    "#5AC8FA",
    "#FF2D55",
)

STROKE_WIDTH = 3
LABEL_PADDING = 5
LABEL_TEXT_COLOR = "#FFFFFF"


@dataclass(frozen=True)
class OverlayBox:
    """Corner box in display pixels plus its caption."""

    x: float
    y: float
    width: float
    height: float
    label: str
    color: str


def color_for_index(index: int) -> str:
    return PALETTE[index % len(PALETTE)]


def scale_box(
    geometry: Geometry,
    model_size: tuple[int, int],
    display_size: tuple[int, int],
) -> tuple[float, float, float, float]:
    """
    Map a center+size box from model pixels to a top-left box in display pixels.

    Returns:
        (x, y, width, height)
    """
    scale_x = display_size[0] / model_size[0]
    scale_y = display_size[1] / model_size[1]
    x = (geometry.center_x - geometry.width / 2) * scale_x
    y = (geometry.center_y - geometry.height / 2) * scale_y
    return x, y, geometry.width * scale_x, geometry.height * scale_y


def _caption(label: str, confidence_percent: int) -> str:
    return f"{get_disease_info(label).canonical_name} ({confidence_percent}%)"


def build_overlays(
    result: DetectionResult, display_size: tuple[int, int]
) -> list[OverlayBox]:
    model_size = (result.image_width, result.image_height)

    boxed: list[ScoredPrediction] = [
        p for p in result.all_predictions if p.geometry is not None
    ]
    if not boxed and result.primary.geometry is not None:
        boxed = [
            ScoredPrediction(
                label=result.primary.label,
                confidence_percent=result.primary.confidence_percent,
                geometry=result.primary.geometry,
            )
        ]

    overlays = []
    for index, prediction in enumerate(boxed):
        x, y, width, height = scale_box(prediction.geometry, model_size, display_size)
        overlays.append(
            OverlayBox(
                x=x,
                y=y,
                width=width,
                height=height,
                label=_caption(prediction.label, prediction.confidence_percent),
                color=color_for_index(index),
            )
        )
    return overlays


def _decode_data_uri(data_uri: str) -> Image.Image:
    _, _, encoded = data_uri.partition("base64,")
    try:
        image = Image.open(BytesIO(base64.b64decode(encoded, validate=True)))
        image.load()
    except (
        binascii.Error,
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
    ) as e:
        raise ValidationError(
            MessageCode.INVALID_IMAGE, details={"reason": str(e)}
        ) from e
    return image.convert("RGB")


def render_detection(
    result: DetectionResult, display_size: tuple[int, int] | None = None
) -> bytes:
    """Draw the result's boxes on its image and return the PNG bytes."""
    image = _decode_data_uri(result.image_data_uri)
    if display_size is None:
        display_size = image.size
    elif display_size != image.size:
        image = image.resize(display_size)

    draw = ImageDraw.Draw(image)
    font = ImageFont.load_default()

    for box in build_overlays(result, display_size):
        left, top = box.x, box.y
        draw.rectangle(
            [(left, top), (left + box.width, top + box.height)],
            outline=box.color,
            width=STROKE_WIDTH,
        )

        text_left, text_top, text_right, text_bottom = draw.textbbox(
            (0, 0), box.label, font=font
        )
        band_width = text_right - text_left + 2 * LABEL_PADDING
        band_height = text_bottom - text_top + 2 * LABEL_PADDING
        band_top = top - band_height
        if band_top < 0:
            band_top = top + box.height
        draw.rectangle(
            [(left, band_top), (left + band_width, band_top + band_height)],
            fill=box.color,
        )
        draw.text(
            (left + LABEL_PADDING - text_left, band_top + LABEL_PADDING - text_top),
            box.label,
            fill=LABEL_TEXT_COLOR,
            font=font,
        )

    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
