"""Detection API schemas (combined models/requests)."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.api.core.messages import APIResponse


class CamelModel(BaseModel):
    """Serialized with camelCase keys, accepts either form on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Geometry(CamelModel):
    """Box in source-image pixels, center coordinates plus size."""

    center_x: float
    center_y: float
    width: float
    height: float


class Prediction(CamelModel):
    """One labeled output from a classifier."""

    label: str
    confidence: float = Field(ge=0.0, le=1.0)
    geometry: Geometry | None = None


class ResponseShape(str, Enum):
    """How an upstream model laid out its predictions."""

    RANKED_LIST = "ranked_list"
    CLASS_MAP = "class_map"
    TOP_OBJECT = "top_object"
    EMPTY = "empty"


class PredictionSet(CamelModel):
    predictions: list[Prediction]
    image_width: int | None = None
    image_height: int | None = None
    shape: ResponseShape = ResponseShape.RANKED_LIST

    @property
    def is_empty(self) -> bool:
        return not self.predictions


class VerificationSummary(CamelModel):
    label: str
    confidence_percent: int


class PrimaryDetection(CamelModel):
    label: str
    confidence_percent: int
    geometry: Geometry | None = None


class ScoredPrediction(CamelModel):
    label: str
    confidence_percent: int
    geometry: Geometry | None = None


class DetectionResult(CamelModel):
    """Unified payload returned by a successful detection."""

    verification: VerificationSummary
    primary: PrimaryDetection
    all_predictions: list[ScoredPrediction]
    image_data_uri: str
    image_width: int = Field(gt=0)
    image_height: int = Field(gt=0)
    timestamp: str


class DiseaseInfo(CamelModel):
    canonical_name: str
    description: str


class DiseaseStat(CamelModel):
    disease: str | None
    total_detections: int
    avg_confidence: float | None


DiseaseInfoResponse = APIResponse[DiseaseInfo]
DiseaseStatsResponse = APIResponse[list[DiseaseStat]]
