from pathlib import Path
from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.exceptions import ConfigError


def _env_files() -> list[str]:
    """Load .env from backend root (when running from services/thumbnail) then local .env."""
    base = Path(__file__).resolve().parent.parent.parent.parent  # backend root
    return [str(base / ".env"), ".env"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_env_files(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env_name: str = "development"
    log_level: Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"] = "INFO"

    # ── HTTP ──────────────────────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=1, le=65535)
    # Comma-separated in .env (e.g. CORS_ORIGINS=http://localhost:3000,http://localhost:8080)
    cors_origins: str = "*"

    # ── AWS ───────────────────────────────────────────────────────────────────
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_region: str = "us-east-1"
    s3_input_bucket: str = Field(min_length=1)   # originals land here
    s3_output_bucket: str = Field(min_length=1)  # thumbnails, same key as the original

    # ── Thumbnails ────────────────────────────────────────────────────────────
    thumbnail_max_width: int = Field(default=640, gt=0)
    thumbnail_max_height: int = Field(default=480, gt=0)
    jpeg_quality: int = Field(default=75, ge=1, le=95)
    upload_key_suffix: str = ".jpg"
    max_concurrent_jobs: int = Field(default=8, gt=0)

    # ── Live stream (SSE) ─────────────────────────────────────────────────────
    sse_queue_size: int = Field(default=64, gt=0)
    sse_keepalive_seconds: float = Field(default=15.0, gt=0)

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value

    @property
    def cors_origins_list(self) -> list[str]:
        return [x.strip() for x in self.cors_origins.split(",") if x.strip()]


def load_settings() -> Settings:
    """Read settings once at startup. Any invalid or missing value is fatal."""
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
