"""Database models for the detection API."""

from .base import Base
from .detections import DetectionLog

__all__ = ["Base", "DetectionLog"]
