"""
Configuration Management for PennyPath

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes the tunable behaviour of the ledger (matching strictness,
missing-record policy, storage backend, retry bounds) visible in one place.
"""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_keywords(value: str) -> list[str]:
    return [kw.strip().lower() for kw in value.split(",") if kw.strip()]


class MatchingSettings(BaseSettings):
    """Transfer-leg matching configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MATCHING_",
        extra="ignore"
    )

    strictness: str = Field(
        default="heuristic",
        pattern="^(heuristic|linked)$",
        description="heuristic: match by account/amount/day/text; linked: transfer_id only"
    )
    source_keywords: str = Field(
        default="transfer",
        description="Comma-separated description keywords marking a source leg"
    )
    destination_keywords: str = Field(
        default="transfer,top up",
        description="Comma-separated description keywords marking a destination leg"
    )

    @property
    def source_keywords_list(self) -> list[str]:
        return _split_keywords(self.source_keywords)

    @property
    def destination_keywords_list(self) -> list[str]:
        return _split_keywords(self.destination_keywords)


class StorageSettings(BaseSettings):
    """Ledger storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        extra="ignore"
    )

    backend: str = Field(
        default="memory",
        pattern="^(memory|json)$",
        description="Storage backend"
    )
    json_path: str = Field(
        default="pennypath-ledger.json",
        description="Ledger file used by the json backend"
    )

    # Bounded retry around concurrent-write conflicts
    conflict_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts (including the first) before a conflict is raised"
    )
    retry_wait_min_seconds: float = Field(default=0.5, ge=0.0)
    retry_wait_max_seconds: float = Field(default=5.0, ge=0.0)

    @model_validator(mode='after')
    def validate_wait_bounds(self) -> 'StorageSettings':
        if self.retry_wait_max_seconds < self.retry_wait_min_seconds:
            raise ValueError("retry_wait_max_seconds cannot be below retry_wait_min_seconds")
        return self


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

    # Logging
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )
    log_format: str = Field(
        default="json",
        pattern="^(json|console)$",
    )

    # What update_account/update_transaction do with an unknown id
    missing_account_policy: str = Field(
        default="ignore",
        pattern="^(ignore|raise)$",
        description="ignore: silently skip (logged); raise: NotFoundError"
    )


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
    def matching(self) -> MatchingSettings:
        return MatchingSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries for the failures.
    """
    results = {}

    settings = get_settings()

    for name in ("matching", "storage", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
