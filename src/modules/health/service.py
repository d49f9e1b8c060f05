import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

import redis.asyncio as redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.rate_limiting import RateLimiter
from src.utils.logger import get_logger
from src.utils.settings.inference import InferenceSettings

logger = get_logger(__name__)


@dataclass
class HealthCheckResult:
    """Result of a health check."""

    service: str
    status: Literal["healthy", "unhealthy", "degraded"]
    connected: bool
    details: dict
    error: str | None = None


@dataclass
class OverallHealthStatus:
    """Overall health status with individual service results."""

    status: Literal["healthy", "degraded", "unhealthy"]
    services: dict[str, HealthCheckResult]
    timestamp: str


class HealthService:
    """Checks the collaborators this instance was started with.

    Database and Redis are optional; a check is only run when the
    corresponding collaborator is configured.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None,
        redis_client: redis.Redis | None,
        rate_limiter: RateLimiter | None,
        inference_settings: InferenceSettings,
    ):
        self.session_factory = session_factory
        self.redis = redis_client
        self.rate_limiter = rate_limiter
        self.inference_settings = inference_settings

    async def check_database_health(self) -> HealthCheckResult:
        """Database connection health check."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(text("SELECT 1 as test"))
                test_value = result.scalar()

            return HealthCheckResult(
                service="database",
                status="healthy",
                connected=True,
                details={"test_query_result": test_value},
            )
        except Exception as e:
            logger.error(f"Database health check error: {e}")
            return HealthCheckResult(
                service="database",
                status="degraded",
                connected=False,
                details={},
                error=str(e),
            )

    async def check_redis_health(self) -> HealthCheckResult:
        """Redis connection health check."""
        try:
            await self.redis.ping()
            return HealthCheckResult(
                service="redis", status="healthy", connected=True, details={}
            )
        except Exception as e:
            logger.error(f"Redis health check error: {e}")
            return HealthCheckResult(
                service="redis",
                status="unhealthy",
                connected=False,
                details={},
                error=str(e),
            )

    async def check_rate_limit_health(self) -> HealthCheckResult:
        """Reports the limiter's configuration without consuming quota."""
        if self.rate_limiter is None:
            return HealthCheckResult(
                service="rate_limit",
                status="unhealthy",
                connected=False,
                details={},
                error="Rate limiter not initialized",
            )

        return HealthCheckResult(
            service="rate_limit",
            status="healthy",
            connected=True,
            details={
                "enabled": self.rate_limiter.enabled,
                "limit": self.rate_limiter.limit,
                "window_seconds": self.rate_limiter.window_seconds,
                "backend": type(self.rate_limiter.store).__name__,
            },
        )

    async def check_inference_config(self) -> HealthCheckResult:
        """The model endpoints are only checked for presence, never called."""
        configured = self.inference_settings.is_configured
        return HealthCheckResult(
            service="inference",
            status="healthy" if configured else "degraded",
            connected=configured,
            details={"configured": configured},
            error=None if configured else "Missing inference configuration",
        )

    async def run_all_checks(self) -> OverallHealthStatus:
        """Run all health checks in parallel and return overall status."""
        tasks = [self.check_rate_limit_health(), self.check_inference_config()]
        if self.session_factory is not None:
            tasks.append(self.check_database_health())
        if self.redis is not None:
            tasks.append(self.check_redis_health())

        results = await asyncio.gather(*tasks, return_exceptions=True)

        services = {}
        overall_status: Literal["healthy", "degraded", "unhealthy"] = "healthy"

        for result in results:
            if isinstance(result, Exception):
                service_result = HealthCheckResult(
                    service=result.__class__.__name__,
                    status="unhealthy",
                    connected=False,
                    details={},
                    error=str(result),
                )
                overall_status = "unhealthy"
            else:
                service_result = result
                if service_result.status == "unhealthy":
                    overall_status = "unhealthy"
                elif (
                    service_result.status == "degraded" and overall_status == "healthy"
                ):
                    overall_status = "degraded"

            services[service_result.service] = service_result

        return OverallHealthStatus(
            status=overall_status,
            services=services,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
