from functools import wraps
from typing import Any, Callable

from fastapi import Request, Response

from src.api.core.exceptions.base import RateLimitError
from src.api.core.messages import MessageCode
from src.api.core.models.rate_limit import (
    ClientIdentifier,
    RateLimitClientType,
    RateLimitResult,
)
from src.core.rate_limiting import RateLimiter
from src.utils.logger import get_client_ip, get_logger


logger = get_logger(__name__)


def create_rate_limit_key(request: Request) -> ClientIdentifier:
    """Create rate limit client identifier from the caller's address."""
    return ClientIdentifier(
        client_type=RateLimitClientType.IP,
        client_id=get_client_ip(request),
    )


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Headers advertising the caller's quota."""
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
    }


async def check_rate_limit(
    request: Request, rate_limiter: RateLimiter
) -> RateLimitResult | None:
    """
    Check and consume the caller's quota.

    Args:
        request: FastAPI request object
        rate_limiter: Limiter owned by the application

    Returns:
        The result, or None when enforcement is paused

    Raises:
        RateLimitError: When rate limit is exceeded
    """
    if not rate_limiter.enabled:
        return None

    client_identifier = create_rate_limit_key(request)
    result = await rate_limiter.check_and_consume(client_identifier)

    if not result.is_allowed:
        reset_time = result.reset_datetime.isoformat()
        logger.warning(
            f"Rate limit exceeded for {client_identifier}: "
            f"{result.current_count}/{result.limit} in {result.window_seconds}s"
        )

        raise RateLimitError(
            MessageCode.RATE_LIMIT_EXCEEDED,
            details={"resetTime": reset_time},
            headers={
                **rate_limit_headers(result),
                "X-RateLimit-Reset": reset_time,
                "Retry-After": str(result.retry_after_seconds),
            },
        )

    return result


def rate_limit():
    """
    Rate limiting decorator for FastAPI endpoints.

    The limiter is read from ``request.app.state.rate_limiter``. When the
    endpoint also takes a ``response: Response`` parameter the quota headers
    are attached to successful responses.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            request: Request | None = kwargs.get("request")
            if request is None:
                request = next((a for a in args if isinstance(a, Request)), None)
            response: Response | None = kwargs.get("response")

            if not request:
                logger.error("Rate limit decorator: Request not found")
                return await func(*args, **kwargs)

            rate_limiter: RateLimiter | None = getattr(
                request.app.state, "rate_limiter", None
            )
            if rate_limiter is None:
                logger.warning(
                    "Rate limit decorator: no limiter on app state, skipping rate limit"
                )
                return await func(*args, **kwargs)

            result = await check_rate_limit(request, rate_limiter)
            if result is not None and response is not None:
                response.headers.update(rate_limit_headers(result))

            return await func(*args, **kwargs)

        return wrapper

    return decorator
