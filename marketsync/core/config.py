from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Environment mode: dev or prod
    ENV: Literal["dev", "prod"] = "dev"

    # Database
    DATABASE_URL: str

    # Market data provider (Live Coin Watch)
    LIVECOINWATCH_API_KEY: str | None = None
    LIVECOINWATCH_BASE_URL: str = "https://api.livecoinwatch.com"
    PROVIDER_TIMEOUT_SECONDS: float = 10.0

    # Logging
    LOG_LEVEL: str = "INFO"
    SLACK_WEBHOOK_URL: str | None = None

    # Live snapshot sync
    LIVE_SYNC_ENABLED: bool = True
    LIVE_SYNC_INTERVAL_SECONDS: int = 30
    LIVE_SYNC_LIMIT: int = 100

    # Historical backfill/update sync
    HISTORY_SYNC_ENABLED: bool = True  # Kill-switch for the whole history job family
    HISTORY_BACKFILL_ON_START: bool = True
    HISTORY_UPDATE_INTERVAL_SECONDS: int = 60 * 60  # hourly
    UNIVERSE_LIMIT: int = 100

    # Provider pacing
    BACKFILL_TIMEFRAME_DELAY_SECONDS: float = 1.0
    BACKFILL_BATCH_SIZE: int = 10
    BACKFILL_BATCH_PAUSE_SECONDS: float = 5.0
    UPDATE_BATCH_SIZE: int = 20
    UPDATE_BATCH_PAUSE_SECONDS: float = 2.0

    # Docs Configuration
    DOCS_ENABLED: bool | None = None  # Override docs setting (None = auto based on ENV)

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",  # ignore unrelated keys in local .env
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENV == "prod"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENV == "dev"

    @property
    def debug_enabled(self) -> bool:
        """Debug mode is only enabled in development."""
        return self.is_development

    @property
    def effective_log_level(self) -> str:
        """Return appropriate log level based on environment."""
        if self.is_production:
            # In production, minimum INFO level (ignore DEBUG)
            return self.LOG_LEVEL if self.LOG_LEVEL.upper() != "DEBUG" else "INFO"
        return self.LOG_LEVEL

    @property
    def docs_enabled(self) -> bool:
        """Swagger/ReDoc docs enabled based on environment or override."""
        if self.DOCS_ENABLED is not None:
            return self.DOCS_ENABLED
        return self.is_development


settings = Settings()
