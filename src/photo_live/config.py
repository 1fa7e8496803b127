"""Application configuration."""

import os

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from photo_live.domain.ingestion import ResolutionPreset

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class PresetSettings(BaseModel):
    """Bounding box and quality for a named resolution preset."""

    width: int = Field(gt=0)
    height: int = Field(gt=0)
    quality: int = Field(ge=1, le=100)


def _default_presets() -> dict[str, PresetSettings]:
    return {
        "thumbnail": PresetSettings(width=150, height=150, quality=80),
        "small": PresetSettings(width=400, height=400, quality=85),
        "medium": PresetSettings(width=800, height=800, quality=90),
        "large": PresetSettings(width=1200, height=1200, quality=95),
    }


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    admin_token: str
    storage_backend: str = "supabase"
    storage_bucket: str = "photos"
    local_storage_root: str = "./uploads"
    allowed_file_types: str = "jpg,jpeg,png,gif,webp"
    max_file_size: int = 50 * 1024 * 1024
    resolution_presets: dict[str, PresetSettings] = Field(
        default_factory=_default_presets
    )
    original_quality: int = Field(default=95, ge=1, le=100)
    default_watermark_opacity: float = Field(default=0.3, ge=0.0, le=1.0)
    default_watermark_text: str | None = None
    default_review_mode: bool = False
    ingestion_timeout_seconds: float = 60.0
    batch_concurrency: int = Field(default=4, ge=1)
    storage_retry_attempts: int = Field(default=3, ge=1)
    storage_retry_backoff_seconds: float = 0.2
    realtime_enabled: bool = True
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    def presets(self) -> list[ResolutionPreset]:
        """Return configured presets as domain objects."""
        return [
            ResolutionPreset(
                name=name,
                width=preset.width,
                height=preset.height,
                quality=preset.quality,
            )
            for name, preset in self.resolution_presets.items()
        ]


def parse_allowed_extensions(raw: str | None) -> frozenset[str]:
    """Parse the comma-separated extension allow-list from env."""
    if raw is None:
        return frozenset()
    extensions: set[str] = set()
    for chunk in raw.split(","):
        value = chunk.strip().lower().lstrip(".")
        if value:
            extensions.add(value)
    return frozenset(extensions)
