"""Configuration package."""

from minabung.config.settings import (
    AppSettings,
    CloudinarySettings,
    GeminiSettings,
    MongoSettings,
    SecuritySettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CloudinarySettings",
    "GeminiSettings",
    "MongoSettings",
    "SecuritySettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
