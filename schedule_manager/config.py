"""Application settings loaded from environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env relative to the project root (one level above schedule_manager/)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    DATABASE_URL: str = "sqlite:///./schedules.db"
    AUTO_CREATE_TABLES: bool = True  # Alembic owns the schema when disabled
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000
    ROOT_PATH: str = ""  # Set when behind a reverse proxy with a path prefix
    LOG_LEVEL: str = "INFO"

    SCHEDULER_ENABLED: bool = True  # Rebuild timers from storage on startup
    BROADCAST_TIMEOUT_SECONDS: float = 5.0  # Per-consumer delivery budget
    RUN_TIMEOUT_MINUTES: int = 0  # 0 disables the stuck-run reaper
    RUN_REAPER_INTERVAL_SECONDS: float = 60.0


settings = Settings()
