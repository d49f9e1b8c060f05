"""Adapters from the inference provider's response layouts to PredictionSet.

The provider answers in one of several layouts depending on the model type:

* object detection and single-label classification:
  ``{"predictions": [{"class": ..., "confidence": ..., "x": ...}, ...]}``
* multi-label classification:
  ``{"predictions": {"<label>": {"confidence": ...}, ...}}``
* a single top result:
  ``{"top": {"class": ..., "confidence": ...}}`` or
  ``{"top": "<label>", "confidence": ...}``

The layout is detected once, then handed to the matching adapter.
"""

import math
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator

from src.api.detection.schemas import (
    Geometry,
    Prediction,
    PredictionSet,
    ResponseShape,
)


class RawPrediction(BaseModel):
    """A single prediction as the provider sends it."""

    label: str = Field(validation_alias=AliasChoices("class", "className", "label"))
    confidence: float = 0.0
    x: float | None = None
    y: float | None = None
    width: float | None = None
    height: float | None = None

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, value: float) -> float:
        return min(1.0, max(0.0, value))

    def to_prediction(self) -> Prediction:
        geometry = None
        if None not in (self.x, self.y, self.width, self.height):
            geometry = Geometry(
                center_x=self.x,
                center_y=self.y,
                width=self.width,
                height=self.height,
            )
        return Prediction(
            label=self.label, confidence=self.confidence, geometry=geometry
        )


class ImageInfo(BaseModel):
    width: int | None = None
    height: int | None = None

    @field_validator("width", "height", mode="before")
    @classmethod
    def coerce_dimension(cls, value: Any) -> int | None:
        # Some model types report dimensions as strings
        if value in (None, ""):
            return None
        dimension = int(float(value))
        return dimension if dimension > 0 else None


def to_percent(confidence: float) -> int:
    """Fraction to whole percent, rounding halves up."""
    return int(math.floor(confidence * 100 + 0.5))


def detect_response_shape(payload: dict[str, Any]) -> ResponseShape:
    predictions = payload.get("predictions")
    if isinstance(predictions, list) and predictions:
        return ResponseShape.RANKED_LIST
    if isinstance(predictions, dict) and predictions:
        return ResponseShape.CLASS_MAP
    if payload.get("top"):
        return ResponseShape.TOP_OBJECT
    return ResponseShape.EMPTY


def _from_ranked_list(payload: dict[str, Any]) -> list[Prediction]:
    return [
        RawPrediction.model_validate(item).to_prediction()
        for item in payload["predictions"]
        if isinstance(item, dict)
    ]


def _from_class_map(payload: dict[str, Any]) -> list[Prediction]:
    predictions = []
    for label, value in payload["predictions"].items():
        if isinstance(value, dict):
            raw = RawPrediction.model_validate({"class": label, **value})
        else:
            raw = RawPrediction(label=label, confidence=float(value))
        predictions.append(raw.to_prediction())
    return predictions


def _from_top(payload: dict[str, Any]) -> list[Prediction]:
    top = payload["top"]
    if isinstance(top, dict):
        raw = RawPrediction.model_validate(top)
    else:
        raw = RawPrediction(
            label=str(top), confidence=float(payload.get("confidence") or 0.0)
        )
    return [raw.to_prediction()]


_ADAPTERS = {
    ResponseShape.RANKED_LIST: _from_ranked_list,
    ResponseShape.CLASS_MAP: _from_class_map,
    ResponseShape.TOP_OBJECT: _from_top,
    ResponseShape.EMPTY: lambda payload: [],
}


def parse_prediction_set(payload: dict[str, Any]) -> PredictionSet:
    """Normalize a provider response into a PredictionSet."""
    shape = detect_response_shape(payload)
    predictions = _ADAPTERS[shape](payload)

    image = payload.get("image")
    image_info = (
        ImageInfo.model_validate(image) if isinstance(image, dict) else ImageInfo()
    )

    return PredictionSet(
        predictions=predictions,
        image_width=image_info.width,
        image_height=image_info.height,
        shape=shape,
    )
