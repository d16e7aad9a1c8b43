"""
Configuration management for LeagueMail.

Provides centralized, validated configuration from environment variables
with proper type checking and defaults.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_bool(v) -> bool:
    if isinstance(v, str):
        return v.lower() in ("1", "true", "yes", "y")
    return bool(v)


class DirectoryConfig(BaseSettings):
    """Contact directory service configuration."""

    base_url: str = Field(default="http://localhost:3001/api", alias="LEAGUEMAIL_DIRECTORY_URL")
    api_token: Optional[str] = Field(default=None, alias="LEAGUEMAIL_API_TOKEN")
    timeout_seconds: float = Field(default=30.0, gt=0, alias="LEAGUEMAIL_DIRECTORY_TIMEOUT")

    # Retry settings for retryable failures
    max_retries: int = Field(default=3, ge=1, alias="LEAGUEMAIL_MAX_RETRIES")
    retry_initial_delay: float = Field(default=1.0, ge=0, alias="LEAGUEMAIL_RETRY_INITIAL_DELAY")
    retry_max_delay: float = Field(default=30.0, ge=0, alias="LEAGUEMAIL_RETRY_MAX_DELAY")

    model_config = SettingsConfigDict(env_prefix="", extra="ignore", populate_by_name=True)


class SelectionConfig(BaseSettings):
    """Recipient selection behaviour."""

    cache_capacity: int = Field(default=100, ge=1, alias="SELECTION_CACHE_CAPACITY")
    page_size: int = Field(default=25, ge=1, alias="SELECTION_PAGE_SIZE")
    search_debounce_seconds: float = Field(
        default=0.3, ge=0, alias="SELECTION_SEARCH_DEBOUNCE_SECONDS"
    )
    include_roles: bool = Field(default=True, alias="SELECTION_INCLUDE_ROLES")
    include_details: bool = Field(default=True, alias="SELECTION_INCLUDE_DETAILS")

    @field_validator("include_roles", "include_details", mode="before")
    @classmethod
    def parse_flags(cls, v):
        return _parse_bool(v)

    model_config = SettingsConfigDict(env_prefix="", extra="ignore", populate_by_name=True)


class Settings(BaseSettings):
    """Main application settings."""

    # Environment
    environment: str = Field(default="production", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # Component configurations
    directory: DirectoryConfig = Field(default_factory=DirectoryConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)

    @field_validator("debug", "log_json", mode="before")
    @classmethod
    def parse_flags(cls, v):
        return _parse_bool(v)

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


# Global settings instance
settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def reset_settings() -> None:
    """Forget the cached settings so the next call re-reads the environment."""
    global settings
    settings = None


def validate_required_settings() -> List[str]:
    """
    Validate that the settings needed to reach the directory service are present.

    Returns:
        List of missing or invalid settings
    """
    missing = []
    try:
        config = get_settings()

        if not config.directory.base_url:
            missing.append("LEAGUEMAIL_DIRECTORY_URL")
        elif not config.directory.base_url.startswith(("http://", "https://")):
            missing.append("LEAGUEMAIL_DIRECTORY_URL (must be an http(s) URL)")

        if not config.directory.api_token:
            missing.append("LEAGUEMAIL_API_TOKEN")

    except Exception as e:
        missing.append(f"Configuration error: {e}")

    return missing


def print_configuration_summary() -> None:
    """Print a summary of the current configuration for debugging."""
    try:
        config = get_settings()
        print("=== LeagueMail Configuration Summary ===")
        print(f"Environment: {config.environment}")
        print(f"Debug Mode: {config.debug}")
        print()
        print(f"Directory URL: {config.directory.base_url}")
        print(f"API Token: {'✓' if config.directory.api_token else '✗'}")
        print(f"Request Timeout: {config.directory.timeout_seconds}s")
        print(f"Max Attempts: {config.directory.max_retries}")
        print()
        print("Recipient Selection:")
        print(f"  Page Size: {config.selection.page_size}")
        print(f"  Selection Cache Capacity: {config.selection.cache_capacity}")
        print(f"  Search Debounce: {config.selection.search_debounce_seconds * 1000:.0f}ms")
        print("=" * 40)
    except Exception as e:
        print(f"Error loading configuration: {e}")
