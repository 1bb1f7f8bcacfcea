from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_SQLITE_PATH = BASE_DIR / "frontdesk.db"
DEFAULT_SQLITE_URL = f"sqlite:///{DEFAULT_SQLITE_PATH}"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=BASE_DIR / ".env", env_prefix="FRONTDESK_", case_sensitive=False)

    api_token: str = Field(default="dev-token", description="Bearer token required for all staff API calls")
    database_url: str = Field(default=DEFAULT_SQLITE_URL, description="SQLAlchemy database URL")
    # Comma-separated values or '*' for all
    cors_origins: str = Field(default="*")
    environment: str = Field(default="development")

    # Admission codes. The window must match on the display device and the validator.
    public_origin: str = Field(default="http://localhost:8000", description="Origin embedded in the QR code URL")
    admission_window_ms: int = Field(default=300_000, description="Length of one admission time bucket")
    qr_pixel_size: int = Field(default=300)
    qr_margin: int = Field(default=2, description="Quiet zone in modules")
    issuer_scheduler_enabled: bool = Field(default=True)

    # Venue
    venue_timezone: str = Field(default="America/Vancouver", description="Zone used to key daily records")
    default_max_stay_time: int = Field(default=3600, description="Seconds before a visitor counts as overtime")

    # Rate limiting (per token+IP per minute)
    rate_limit_enabled: bool = Field(default=False)
    rate_limit_per_minute: int = Field(default=600)

    @field_validator("admission_window_ms")
    @classmethod
    def _positive_window(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("admission_window_ms must be positive")
        return value

    @property
    def cors_origins_list(self) -> List[str]:
        s = (self.cors_origins or "").strip()
        if not s or s == "*":
            return ["*"]
        return [part.strip() for part in s.split(",") if part.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
