"""Configuration helpers for the ACS email client."""

from .settings import DEFAULT_API_VERSION, DEFAULT_TOKEN_SCOPE, Settings, SettingsManager

__all__ = [
    "DEFAULT_API_VERSION",
    "DEFAULT_TOKEN_SCOPE",
    "Settings",
    "SettingsManager",
]
