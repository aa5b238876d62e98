"""
Configuration Management for NexoraCrew Finance

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: The API base URL is the only switch between remote mode
and demo mode. If it is set, everything goes over HTTP; if it is missing,
everything lives in the local key-value store. No other flag changes this.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiSettings(BaseSettings):
    """Remote REST API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="NEXORA_API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    base_url: Optional[str] = Field(
        default=None,
        description="Base URL of the REST API, e.g. http://localhost:4000/api"
    )

    @field_validator('base_url')
    @classmethod
    def normalize_base_url(cls, v: Optional[str]) -> Optional[str]:
        """Blank means not configured; trailing slashes are dropped."""
        if v is None:
            return None
        v = v.strip().rstrip("/")
        return v or None

    @property
    def is_configured(self) -> bool:
        return self.base_url is not None


class LocalStorageSettings(BaseSettings):
    """Demo mode storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="NEXORA_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    path: str = Field(
        default="~/.nexora/storage.json",
        description="JSON file holding the demo mode key-value store"
    )

    @property
    def resolved_path(self) -> Path:
        return Path(self.path).expanduser()


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Refresh
    poll_interval_seconds: float = Field(
        default=15.0,
        gt=0,
        description="How often remote mode re-pulls transactions"
    )

    # Attachments
    max_attachment_size_mb: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum attachment size in MB"
    )

    # Dashboard
    top_category_count: int = Field(
        default=6,
        ge=1,
        le=50,
        description="How many expense categories the breakdown keeps"
    )

    # Validation thresholds
    future_date_tolerance_days: int = Field(
        default=1,
        ge=0,
        description="How many days in the future a transaction date can be before we warn"
    )

    # Export
    export_filename_prefix: str = Field(
        default="NEXORACREW_Data",
        description="Prefix of exported spreadsheet file names"
    )

    @property
    def max_attachment_size_bytes(self) -> int:
        """Get max attachment size in bytes."""
        return self.max_attachment_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def api(self) -> ApiSettings:
        return ApiSettings()

    @property
    def local_storage(self) -> LocalStorageSettings:
        return LocalStorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()

    @property
    def demo_mode(self) -> bool:
        """True when no API endpoint is configured."""
        return not self.api.is_configured


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("api", "local_storage", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
