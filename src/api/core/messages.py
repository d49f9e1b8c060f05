"""Centralized message codes and default messages for API responses."""

from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel


class MessageCode(str, Enum):
    """Centralized message codes for API responses."""

    # Success codes
    SUCCESS = "SUCCESS"

    # Rate limiting
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    NO_IMAGE_PROVIDED = "NO_IMAGE_PROVIDED"
    EMPTY_FILE = "EMPTY_FILE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    INVALID_FILE_TYPE = "INVALID_FILE_TYPE"
    INVALID_IMAGE = "INVALID_IMAGE"
    IMAGE_TOO_SMALL = "IMAGE_TOO_SMALL"
    IMAGE_TOO_LARGE = "IMAGE_TOO_LARGE"
    NOT_EXPECTED_SUBJECT = "NOT_EXPECTED_SUBJECT"

    # Model errors
    VERIFICATION_NO_PREDICTIONS = "VERIFICATION_NO_PREDICTIONS"
    DISEASE_NO_PREDICTIONS = "DISEASE_NO_PREDICTIONS"

    # Service Errors
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"

    # Configuration
    CONFIG_ERROR = "CONFIG_ERROR"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    NOT_FOUND = "NOT_FOUND"
    BAD_REQUEST = "BAD_REQUEST"


class ErrorType(str, Enum):
    """Error categories reported to clients in the ``type`` field."""

    VALIDATION_ERROR = "validation_error"
    RATE_LIMIT_ERROR = "rate_limit_error"
    MODEL_ERROR = "model_error"
    SERVICE_ERROR = "service_error"
    CONFIG_ERROR = "config_error"
    SERVER_ERROR = "server_error"
    METHOD_ERROR = "method_error"
    NOT_FOUND_ERROR = "not_found_error"


# Default messages for each message code
DEFAULT_MESSAGES = {
    MessageCode.SUCCESS: "Operation completed successfully",
    # Rate limiting
    MessageCode.RATE_LIMIT_EXCEEDED: "Too many requests. Please try again later.",
    # Validation errors
    MessageCode.VALIDATION_ERROR: "Validation failed",
    MessageCode.INVALID_INPUT: "Invalid input provided",
    MessageCode.NO_IMAGE_PROVIDED: "No image file provided",
    MessageCode.EMPTY_FILE: "Uploaded file is empty",
    MessageCode.FILE_TOO_LARGE: "File size exceeds 10MB limit",
    MessageCode.INVALID_FILE_TYPE: "Invalid file type. Only JPEG, PNG, and WebP are allowed.",
    MessageCode.INVALID_IMAGE: "Failed to load image. The file may be corrupted.",
    MessageCode.IMAGE_TOO_SMALL: "Image is too small",
    MessageCode.IMAGE_TOO_LARGE: "Image is too large",
    MessageCode.NOT_EXPECTED_SUBJECT: "Image does not appear to be a calamansi plant. Please upload a clear photo of a calamansi.",
    # Model errors
    MessageCode.VERIFICATION_NO_PREDICTIONS: "Verification model returned no predictions",
    MessageCode.DISEASE_NO_PREDICTIONS: "Disease model returned no predictions",
    # Service Errors
    MessageCode.EXTERNAL_SERVICE_ERROR: "AI model service is temporarily unavailable. Please try again.",
    # Configuration
    MessageCode.CONFIG_ERROR: "Server configuration error",
    # Generic errors
    MessageCode.INTERNAL_ERROR: "An unexpected error occurred during detection",
    MessageCode.METHOD_NOT_ALLOWED: "Method not allowed",
    MessageCode.NOT_FOUND: "Resource not found",
    MessageCode.BAD_REQUEST: "Bad request",
}

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Envelope for the auxiliary endpoints (stats, disease lookup)."""

    message_code: MessageCode
    message: str
    data: T | None = None

    @classmethod
    def success(
        cls,
        message_code: MessageCode = MessageCode.SUCCESS,
        message: str | None = None,
        data: T | None = None,
    ) -> "APIResponse[T]":
        """Create a success response."""
        return cls(
            message_code=message_code,
            message=message or DEFAULT_MESSAGES.get(message_code, "Success"),
            data=data,
        )


def get_default_message(message_code: MessageCode) -> str:
    """Get default message for a message code."""
    return DEFAULT_MESSAGES.get(message_code, "Operation completed")
