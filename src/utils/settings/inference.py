"""Inference provider settings configuration."""

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class InferenceSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Model 1 verifies the subject, model 2 classifies the disease
    ROBOFLOW_MODEL1_URL: str | None = None
    ROBOFLOW_MODEL2_URL: str | None = None
    ROBOFLOW_API_KEY: SecretStr | None = None
    INFERENCE_TIMEOUT: int = 30

    EXPECTED_SUBJECT: str = "calamansi"
    VERIFICATION_THRESHOLD: float = 0.5
    DEFAULT_IMAGE_SIZE: int = 640

    @property
    def is_configured(self) -> bool:
        return bool(
            self.ROBOFLOW_MODEL1_URL
            and self.ROBOFLOW_MODEL2_URL
            and self.ROBOFLOW_API_KEY
            and self.ROBOFLOW_API_KEY.get_secret_value()
        )
