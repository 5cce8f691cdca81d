"""
Configuration Management for Kasa

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SupabaseSettings(BaseSettings):
    """Hosted backend (Supabase) connection configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SUPABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        ...,
        description="Project URL, e.g. https://xyz.supabase.co"
    )
    anon_key: str = Field(
        ...,
        description="Public anon key used for user sessions"
    )
    service_role_key: Optional[str] = Field(
        default=None,
        description="Service role key, server side only (user administration)"
    )

    # Storage bucket for receipt images
    receipts_bucket: str = Field(
        default="islem-gorselleri",
        description="Bucket holding uploaded receipt images"
    )

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def has_admin_access(self) -> bool:
        """Whether user administration can be performed."""
        return bool(self.service_role_key)


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="KASA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    site_url: str = Field(
        default="http://localhost:8501",
        description="Public URL of the app, used for email links"
    )

    # Receipt image limits
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum raw upload size in MB"
    )
    supported_image_formats: str = Field(
        default="jpg,jpeg,png,webp",
        description="Comma-separated list of supported image formats"
    )
    compressed_image_max_mb: float = Field(
        default=0.5,
        gt=0.0,
        le=10.0,
        description="Target size of a compressed receipt image in MB"
    )
    compressed_image_max_dimension: int = Field(
        default=1280,
        ge=100,
        le=8000,
        description="Longest side of a compressed receipt image in pixels"
    )

    # Listing limits
    transaction_fetch_limit: int = Field(
        default=10000,
        ge=1,
        description="Maximum number of transactions fetched for listings"
    )
    recent_transaction_count: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Number of transactions shown on the dashboard"
    )
    past_notification_count: int = Field(
        default=20,
        ge=1,
        description="Number of inactive notifications shown to admins"
    )

    # Auth
    min_password_length: int = Field(
        default=6,
        ge=6,
        description="Minimum length of a new password"
    )

    # Live transaction list
    live_refresh_seconds: int = Field(
        default=5,
        ge=1,
        le=300,
        description="How often an open transaction list checks for changes"
    )

    @field_validator("site_url")
    @classmethod
    def strip_site_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def supported_formats_list(self) -> list[str]:
        """Get supported formats as a list."""
        return [fmt.strip().lower() for fmt in self.supported_image_formats.split(",")]

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def compressed_image_max_bytes(self) -> int:
        return int(self.compressed_image_max_mb * 1024 * 1024)

    @property
    def password_reset_redirect(self) -> str:
        """Where the password reset email sends the user."""
        return f"{self.site_url}/reset-password"


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

    # Loaded lazily to allow partial configuration

    @property
    def supabase(self) -> SupabaseSettings:
        return SupabaseSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


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

    try:
        supabase = settings.supabase
        results["supabase"] = True
        results["supabase_admin"] = supabase.has_admin_access
        if not supabase.has_admin_access:
            results["supabase_admin_error"] = "SUPABASE_SERVICE_ROLE_KEY is not set"
    except Exception as e:
        results["supabase"] = False
        results["supabase_error"] = str(e)
        results["supabase_admin"] = False

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
