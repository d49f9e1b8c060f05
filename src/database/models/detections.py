"""Detection audit model. Stores request metadata only, never image bytes."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class DetectionLog(Base):
    """One row per successful detection."""

    __tablename__ = "detections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    ip_address: Mapped[str] = mapped_column(String(64), default="unknown")
    verification_label: Mapped[str | None] = mapped_column(String, nullable=True)
    verification_confidence: Mapped[int | None] = mapped_column(
        Integer, nullable=True
    )
    disease_label: Mapped[str | None] = mapped_column(
        String, nullable=True, index=True
    )
    disease_confidence: Mapped[int | None] = mapped_column(Integer, nullable=True)
    image_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    image_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    image_width: Mapped[int | None] = mapped_column(Integer, nullable=True)
    image_height: Mapped[int | None] = mapped_column(Integer, nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, default=True)
