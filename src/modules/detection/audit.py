"""Best-effort audit log of detections (metadata only, no image data)."""

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.api.detection.schemas import DiseaseStat
from src.database.models import DetectionLog
from src.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DetectionAuditEntry:
    timestamp: datetime
    ip_address: str
    verification_label: str | None
    verification_confidence: int | None
    disease_label: str | None
    disease_confidence: int | None
    image_size: int | None
    image_type: str | None
    image_width: int | None
    image_height: int | None


class DetectionAuditLogger:
    """Writes DetectionLog rows. A missing database turns every call into a no-op."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None):
        self.session_factory = session_factory

    @property
    def is_configured(self) -> bool:
        return self.session_factory is not None

    async def log_detection(self, entry: DetectionAuditEntry) -> int | None:
        """Insert one audit row. Never raises; failures are only logged."""
        if self.session_factory is None:
            logger.info("Database not configured, skipping log")
            return None

        try:
            fields = asdict(entry)
            row = DetectionLog(created_at=fields.pop("timestamp"), **fields)
            async with self.session_factory() as session:
                session.add(row)
                await session.commit()
                await session.refresh(row)
            logger.info(f"Detection logged to database (ID: {row.id})")
            return row.id
        except Exception as e:
            logger.error(f"Database logging error: {e}")
            return None

    async def get_stats(self, days: int = 7) -> list[DiseaseStat]:
        """Detections per disease label over the last ``days`` days."""
        if self.session_factory is None:
            return []

        since = datetime.now(timezone.utc) - timedelta(days=days)
        total = func.count(DetectionLog.id).label("total_detections")
        stmt = (
            select(
                DetectionLog.disease_label,
                total,
                func.avg(DetectionLog.disease_confidence).label("avg_confidence"),
            )
            .where(DetectionLog.success.is_(True), DetectionLog.created_at >= since)
            .group_by(DetectionLog.disease_label)
            .order_by(desc(total))
        )

        try:
            async with self.session_factory() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as e:
            logger.error(f"Stats query error: {e}")
            return []

        return [
            DiseaseStat(
                disease=row.disease_label,
                total_detections=row.total_detections,
                avg_confidence=(
                    float(row.avg_confidence) if row.avg_confidence is not None else None
                ),
            )
            for row in rows
        ]
