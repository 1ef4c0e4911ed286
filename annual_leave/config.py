import logging
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"


class Settings(BaseSettings):
    """Settings for the API and the daily update worker, read from the environment or ``.env``."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Annual Leave Ledger"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    database_url: str = "postgresql+asyncpg://annual_leave:annual_leave@db:5432/annual_leave"
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Actor recorded on rows written by the daily update.
    system_actor: str = "SYSTEM"
    # Lifetime of an admin grant that names no expire date.
    manual_grant_expire_days: int = 365
    daily_update_interval_seconds: int = 86400

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return level


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def configure_logging(settings: Settings | None = None) -> None:
    """Root logging setup shared by the API process and the worker."""
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
