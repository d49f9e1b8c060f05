import uvicorn
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from src.api.core.constants import RATE_LIMIT_EXPOSED_HEADERS, REQUEST_ID_HEADER
from src.api.core.exceptions.base import register_exception_handlers
from src.api.core.middleware.logging import logging_middleware
from src.api.core.middleware.security import SecurityHeadersMiddleware
from src.api.router import api_router
from src.core.rate_limiting import InMemoryQuotaStore, RateLimiter, RedisQuotaStore
from src.database.connection import (
    create_engine_from_settings,
    create_session_factory,
    create_tables,
)
from src.redis.client import close_redis_pool, get_redis_client
from src.utils.settings.app import AppSettings
from src.utils.settings.rate_limit import RateLimitSettings
from src.utils.settings.redis import RedisSettings
from src.utils.logger import setup_logging


app_settings = AppSettings()
is_production = app_settings.is_production


def build_rate_limiter(app: FastAPI) -> RateLimiter:
    settings = RateLimitSettings()
    if settings.RATE_LIMIT_BACKEND == "redis":
        app.state.redis_client = get_redis_client()
        store = RedisQuotaStore(
            app.state.redis_client, key_prefix=RedisSettings().REDIS_KEY_PREFIX
        )
    else:
        store = InMemoryQuotaStore()

    return RateLimiter(
        store,
        limit=settings.RATE_LIMIT_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
        enabled=not settings.RATE_LIMIT_PAUSED,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    settings = AppSettings()
    settings.validate_prod()
    logger = setup_logging(settings.is_production, settings.DEBUG)
    logger.info("Starting Calamansi Detection API...")

    app.state.redis_client = None
    app.state.rate_limiter = build_rate_limiter(app)
    if not app.state.rate_limiter.enabled:
        logger.warning("Rate limiting is paused")

    engine = create_engine_from_settings()
    if engine is not None:
        try:
            await create_tables(engine)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Database unavailable, audit logging disabled: {e}")
            await engine.dispose()
            engine = None
    else:
        logger.info("Database not configured, audit logging disabled")
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)

    yield

    # Shutdown
    logger.info("Shutting down Calamansi Detection API...")
    if app.state.engine is not None:
        await app.state.engine.dispose()
    if app.state.redis_client is not None:
        await close_redis_pool()


app = FastAPI(
    title="Calamansi Detection API",
    description="Calamansi plant verification and disease detection from photos",
    version=app_settings.API_VERSION,
    lifespan=lifespan,
    # Security: Disable docs in production
    docs_url=None if is_production else "/docs",
    redoc_url=None if is_production else "/redoc",
    openapi_url=None if is_production else "/openapi.json",
)

# Register global exception handlers
register_exception_handlers(app)

app.add_middleware(SecurityHeadersMiddleware, is_production=is_production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[app_settings.ALLOWED_ORIGIN],
    allow_origin_regex=app_settings.CORS_ORIGIN_REGEX or None,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=[*RATE_LIMIT_EXPOSED_HEADERS, REQUEST_ID_HEADER],
)
app.middleware("http")(logging_middleware)

app.include_router(api_router)


def run_dev_server():
    """Run development server with auto-reload."""
    uvicorn.run(
        "src.main:app", host="0.0.0.0", port=8010, reload=True, access_log=False
    )


def run_prod_server():
    """Run production server."""
    uvicorn.run(
        "src.main:app", host="0.0.0.0", port=8010, reload=False, access_log=False
    )
