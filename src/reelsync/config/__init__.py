"""Configuration module for reelsync."""

from .settings import (
    DatabaseSettings,
    ObservabilitySettings,
    Settings,
    SyncSettings,
    get_settings,
)

__all__ = [
    "DatabaseSettings",
    "ObservabilitySettings",
    "Settings",
    "SyncSettings",
    "get_settings",
]
