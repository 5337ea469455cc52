"""Configuration management for pagelens."""
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env relative to the project root (where this package lives)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: Path = Field(default=Path("./logs"), alias="LOG_DIR")

    # Structure summaries
    default_max_depth: int = Field(default=3, ge=0, alias="DEFAULT_MAX_DEPTH")

    # Page driver budgets (milliseconds)
    query_timeout_ms: int = Field(default=5000, ge=0, alias="QUERY_TIMEOUT_MS")
    load_timeout_ms: int = Field(default=5000, ge=0, alias="LOAD_TIMEOUT_MS")

    # Browser
    headless: bool = Field(default=True, alias="HEADLESS")
    viewport_width: int = Field(default=1280, alias="VIEWPORT_WIDTH")
    viewport_height: int = Field(default=720, alias="VIEWPORT_HEIGHT")


def load_config():
    """Load and return application configuration."""
    return Settings()
