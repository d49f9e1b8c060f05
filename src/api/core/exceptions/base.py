"""Exception taxonomy and global exception handlers for the FastAPI application."""

import traceback
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..messages import ErrorType, MessageCode, get_default_message
from src.utils.logger import get_logger
from src.utils.settings.app import AppSettings

logger = get_logger(__name__)


class CalamansiException(Exception):
    """Base exception for the detection API with unified message codes."""

    error_type: ErrorType = ErrorType.SERVER_ERROR
    default_status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message_code: MessageCode,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        message: str | None = None,
    ):
        self.message_code = message_code
        self.status_code = status_code or self.default_status_code
        self.message: str = message or get_default_message(message_code)
        self.details = details or {}
        self.headers = headers or {}
        super().__init__(self.message)

    def to_response_dict(self) -> dict[str, Any]:
        """Convert exception to API response format.

        ``details`` are merged into the top level so clients can read
        fields such as ``resetTime`` or ``detected`` directly.
        """
        return {
            "error": self.message,
            "type": self.error_type.value,
            "code": self.message_code.value,
            **self.details,
        }


class ValidationError(CalamansiException):
    """Bad input the user can correct (400)."""

    error_type = ErrorType.VALIDATION_ERROR
    default_status_code = status.HTTP_400_BAD_REQUEST


class RateLimitError(CalamansiException):
    """Quota exhausted for the current window (429)."""

    error_type = ErrorType.RATE_LIMIT_ERROR
    default_status_code = status.HTTP_429_TOO_MANY_REQUESTS


class ModelError(CalamansiException):
    """Upstream model answered but produced nothing usable (500)."""

    error_type = ErrorType.MODEL_ERROR
    default_status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ServiceError(CalamansiException):
    """Upstream model unreachable, timed out or returned non-2xx (502)."""

    error_type = ErrorType.SERVICE_ERROR
    default_status_code = status.HTTP_502_BAD_GATEWAY


class ConfigError(CalamansiException):
    """Required configuration is missing (500)."""

    error_type = ErrorType.CONFIG_ERROR
    default_status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ServerError(CalamansiException):
    """Catch-all (500)."""

    error_type = ErrorType.SERVER_ERROR
    default_status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def _http_error_type(status_code: int) -> tuple[ErrorType, MessageCode]:
    if status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        return ErrorType.METHOD_ERROR, MessageCode.METHOD_NOT_ALLOWED
    if status_code == status.HTTP_404_NOT_FOUND:
        return ErrorType.NOT_FOUND_ERROR, MessageCode.NOT_FOUND
    if 400 <= status_code < 500:
        return ErrorType.VALIDATION_ERROR, MessageCode.BAD_REQUEST
    return ErrorType.SERVER_ERROR, MessageCode.INTERNAL_ERROR


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""

    @app.exception_handler(CalamansiException)
    async def calamansi_exception_handler(
        request: Request, exc: CalamansiException
    ) -> JSONResponse:
        """Handle the API's own exceptions."""
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            f"Request failed: {exc.message_code.value}",
            path=request.url.path,
            method=request.method,
            status_code=exc.status_code,
            error_type=exc.error_type.value,
        )

        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response_dict(),
            headers=exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle routing errors and multipart parse failures."""
        logger.warning(
            f"HTTP exception {exc.status_code}: {exc.detail}",
            path=request.url.path,
            method=request.method,
        )

        error_type, message_code = _http_error_type(exc.status_code)
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": str(exc.detail) or get_default_message(message_code),
                "type": error_type.value,
                "code": message_code.value,
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors."""
        try:
            serializable_errors = [
                {
                    "loc": list(error.get("loc", ())),
                    "msg": error.get("msg", ""),
                    "type": error.get("type", ""),
                }
                for error in exc.errors()
            ]
        except Exception:
            serializable_errors = [
                {"msg": "Validation error occurred", "type": "validation_error"}
            ]

        logger.warning(
            "Validation error occurred",
            path=request.url.path,
            method=request.method,
        )

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": get_default_message(MessageCode.INVALID_INPUT),
                "type": ErrorType.VALIDATION_ERROR.value,
                "code": MessageCode.INVALID_INPUT.value,
                "validation_errors": serializable_errors,
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle all other unhandled exceptions."""
        if isinstance(exc, CalamansiException):
            return await calamansi_exception_handler(request, exc)

        logger.error(
            f"Unhandled exception: {str(exc)}",
            path=request.url.path,
            method=request.method,
            exception_type=type(exc).__name__,
            traceback=traceback.format_exc(),
        )

        content: dict[str, Any] = {
            "error": get_default_message(MessageCode.INTERNAL_ERROR),
            "type": ErrorType.SERVER_ERROR.value,
            "code": MessageCode.INTERNAL_ERROR.value,
        }
        # Raw error text never leaves a production deployment
        if not AppSettings().is_production:
            content["details"] = str(exc)

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=content,
        )
