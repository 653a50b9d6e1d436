"""
Configuration Utility - Environment Variables Management

Centralized configuration loading from .env files using pydantic-settings.
Type-safe access to all environment variables with validation.

Usage:
    from utils.config import settings

    page_size = settings.PAGE_SIZE
    bucket = settings.BUCKET_NAME
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TAKEOFF_LOCATIONS = {
    "Brauneck (DE)": "9415",
    "Hochries (DE)": "9453",
    "Wank (DE)": "9438",
    "Kössen (AT)": "13309",
    "Blomberg (DE)": "9538",
    "Wallberg (DE)": "9136",
    "Sulzberg (DE)": "9675",
    "Hochfelln (DE)": "9294",
    "Stubaital - Kreuzjoch (AT)": "9410",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Credentials
    XC_USER: str = Field(default="")
    XC_PASS: str = Field(default="")
    XC_DEBUG: bool = Field(default=False)

    # API Configuration
    XC_API_BASE: str = Field(default="https://de.dhv-xc.de/api/")
    XC_TOKEN_PATH: str = Field(default="xc/login/status")
    XC_LOGIN_PATH: str = Field(default="xc/login/login")
    XC_LISTING_URL: str = Field(default="https://en.dhv-xc.de/api/fli/flights")
    XC_ARTIFACT_URL: str = Field(default="https://en.dhv-xc.de/flight/{flight_id}/igc")
    HTTP_TIMEOUT: float = Field(default=30.0)

    # Listing policy
    TAKEOFF_LOCATIONS: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_TAKEOFF_LOCATIONS))
    PAGE_SIZE: int = Field(default=500, gt=0)
    PAGE_DELAY_SECONDS: float = Field(default=5.0, ge=0)
    MAX_RECORDS: int | None = Field(default=None, gt=0)

    # Per-record work
    MAX_CONCURRENCY: int = Field(default=16, gt=0)
    ARTIFACT_MAX_RETRIES: int = Field(default=3, ge=0)
    SKIP_EXISTING: bool = Field(default=False)

    # File System Paths
    OUTPUT_DIR: str = Field(default="data")

    # Remote Store Configuration
    REMOTE_BACKEND: str = Field(default="gcs")
    BUCKET_NAME: str = Field(default="")

    # SFTP Configuration
    SFTP_HOST: str = Field(default="")
    SFTP_PORT: int = Field(default=22)
    SFTP_USERNAME: str = Field(default="")
    SFTP_KEY_PATH: str = Field(default="/run/secrets/id_rsa")
    SFTP_KEY_PASSPHRASE: str | None = Field(default=None)
    SFTP_REMOTE_BASE: str = Field(default="/upload")
    SFTP_TIMEOUT: int = Field(default=15)
    SFTP_RETRIES: int = Field(default=3)

    # Redis Configuration
    REDIS_URL: str = Field(default="")
    REDIS_MAX_CONNECTIONS: int = Field(default=10)
    REDIS_CHANNEL_RUNS: str = Field(default="harvester.runs")

    # Scheduler Configuration
    EXTRACT_SCHEDULE_CRON: str = Field(default="0 3 * * *")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="text")

    # Application Metadata
    APP_NAME: str = Field(default="xc-harvester")
    APP_VERSION: str = Field(default="0.1.0")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Singleton Settings instance
    """
    return Settings()


# Global settings instance
settings = get_settings()
