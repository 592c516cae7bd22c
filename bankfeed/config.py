"""Configuration management for the bank transaction pipeline."""

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class VisionProvider(str, Enum):
    """Supported vision extraction providers."""
    CLAUDE = "claude"
    NONE = "none"


DEFAULT_VISION_MODEL = "claude-sonnet-4-5"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Vision extraction
    vision_provider: VisionProvider = Field(
        VisionProvider.NONE,
        description="Vision provider used before the DOM fallback"
    )
    anthropic_api_key: Optional[SecretStr] = Field(None, description="Anthropic API key")
    vision_model: str = Field(DEFAULT_VISION_MODEL, description="Model used for screenshot extraction")
    vision_max_tokens: int = Field(4096, description="Maximum response tokens for vision extraction")
    vision_timeout_seconds: float = Field(90.0, description="Timeout for a single vision call")
    max_screenshots: int = Field(6, description="Max overlapping screenshots sent per scrape")
    debug_screenshot_dir: Optional[str] = Field(
        None,
        description="Where to save a screenshot when vision returns no rows"
    )

    # Structural extraction
    max_scraped_rows: int = Field(50, description="Cap on rows returned by DOM extraction")

    # Browser timing
    navigation_timeout_ms: int = Field(30000, description="Timeout for page loads")
    selector_timeout_ms: int = Field(10000, description="Timeout for resolving a recorded selector")
    settle_timeout_ms: int = Field(15000, description="Timeout for the page to settle after navigation")

    # Recording / playback
    playback_pace_factor: float = Field(1.0, description="Multiplier applied to recorded step delays")
    max_step_delay_ms: int = Field(3000, description="Upper bound on replayed inter-step delay")
    max_recorded_delay_ms: int = Field(10000, description="Upper bound on recorded inter-step delay")
    recipe_dir: str = Field("./recipes", description="Directory for persisted recipes")
    schedule_cron: Optional[str] = Field(
        None,
        description="Cron expression or named interval (hourly, every_4h, daily...) for unattended runs"
    )
    schedule_gap_seconds: float = Field(2.0, description="Pause between recipes in a scheduled run")

    # Reconciliation
    fuzzy_match_threshold: int = Field(70, description="Min description similarity (0-100) for fuzzy duplicates")
    date_tolerance_days: int = Field(1, description="Date window (+/- days) for fuzzy duplicates")

    # Logging
    log_level: str = Field("INFO", description="Log level")
    log_json: bool = Field(False, description="Emit JSON logs")


class VisionConfig(BaseModel):
    """Selects a vision provider and carries its credentials."""

    provider: VisionProvider = VisionProvider.NONE
    api_key: Optional[SecretStr] = None
    model: str = DEFAULT_VISION_MODEL
    max_tokens: int = 4096
    timeout_seconds: float = 90.0
    max_screenshots: int = 6
    debug_screenshot_dir: Optional[str] = None

    @property
    def enabled(self) -> bool:
        """True when a provider is selected and has credentials."""
        return self.provider != VisionProvider.NONE and bool(
            self.api_key and self.api_key.get_secret_value()
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "VisionConfig":
        settings = settings or get_settings()
        return cls(
            provider=settings.vision_provider,
            api_key=settings.anthropic_api_key,
            model=settings.vision_model,
            max_tokens=settings.vision_max_tokens,
            timeout_seconds=settings.vision_timeout_seconds,
            max_screenshots=settings.max_screenshots,
            debug_screenshot_dir=settings.debug_screenshot_dir,
        )


@lru_cache
def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
