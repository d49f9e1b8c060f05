"""Upload validation settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class UploadSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    MAX_FILE_SIZE: int = 10 * 1024 * 1024  # 10MB
    ALLOWED_TYPES: list[str] = [
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/webp",
    ]
    MIN_IMAGE_DIMENSION: int = 100
    MAX_IMAGE_DIMENSION: int = 4096
    ENFORCE_PIXEL_BOUNDS: bool = True

    # None means the system temp directory
    UPLOAD_TMP_DIR: str | None = None
