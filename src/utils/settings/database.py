"""Database settings configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import SecretStr


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Audit logging is skipped entirely when unset
    DATABASE_URL: SecretStr | None = None
    DATABASE_SSL: bool = False

    @property
    def is_configured(self) -> bool:
        return bool(self.DATABASE_URL and self.DATABASE_URL.get_secret_value())

    @property
    def DATABASE_URL_ASYNC(self) -> str | None:
        """Derive async database URL from sync URL."""
        if not self.is_configured:
            return None
        url = self.DATABASE_URL.get_secret_value()
        # Convert postgresql:// (or the postgres:// alias) to postgresql+asyncpg://
        for prefix in ("postgresql://", "postgres://"):
            if url.startswith(prefix):
                return url.replace(prefix, "postgresql+asyncpg://", 1)
        return url
