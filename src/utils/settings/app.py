from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DEBUG: bool = False
    ENVIRONMENT: str = "DEV"
    API_VERSION: str = "0.1.0"

    # CORS: one explicit origin plus preview deployments
    ALLOWED_ORIGIN: str = "http://localhost:3000"
    CORS_ORIGIN_REGEX: str = r"https://.*\.vercel\.app"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.upper() == "PROD"

    def validate_prod(self) -> None:
        """Sanity checks for production environment."""
        if self.is_production and not self.ALLOWED_ORIGIN:
            raise ValueError("ALLOWED_ORIGIN must be set in production")
