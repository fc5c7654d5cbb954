"""Configuration package."""

from pennypath.config.settings import (
    AppSettings,
    MatchingSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "MatchingSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
